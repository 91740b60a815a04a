"""Middleware: клиент Афиши текущего пользователя."""
from typing import Any, Awaitable, Callable

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject, User

from afisha.config import Config
from afisha.services.client import ClientRegistry
from afisha.views import ScreenManager


class ClientMiddleware(BaseMiddleware):
    def __init__(self, registry: ClientRegistry, screens: ScreenManager, config: Config):
        self.registry = registry
        self.screens = screens
        self.config = config

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        data["config"] = self.config
        data["screens"] = self.screens

        user: User | None = data.get("event_from_user")
        if user is not None:
            data["client"] = await self.registry.get(user.id)
        return await handler(event, data)

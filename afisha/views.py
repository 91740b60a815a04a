"""Экраны: сообщение бота, привязанное к запросу кэша.

Экран подписывается на запрос и перерисовывает сообщение, когда меняется
значение (например, фоновая перезагрузка устаревших данных). В каждом чате
живёт один экран: новый экран закрывает предыдущий, после закрытия
обновления игнорируются.
"""
import asyncio
import logging
from typing import Callable

from aiogram.exceptions import TelegramBadRequest
from aiogram.types import InlineKeyboardMarkup, Message

from afisha.services.cache import Query, QueryResult
from afisha.services.client import AfishaClient

logger = logging.getLogger(__name__)

Rendered = tuple[str, InlineKeyboardMarkup | None]
Renderer = Callable[[QueryResult], Rendered]

LOADING_TEXT = "⏳ Загрузка..."


def state_text(result: QueryResult) -> str | None:
    """Текст для состояний без данных: загрузка или ошибка."""
    if result.is_success:
        return None
    if result.error is not None:
        return f"⚠️ {result.error}"
    return LOADING_TEXT


class Screen:
    def __init__(
        self,
        client: AfishaClient,
        message: Message,
        query: Query,
        render: Renderer,
    ):
        self._client = client
        self._message = message
        self._query = query
        self._render = render
        self._unsubscribe: Callable[[], None] | None = None
        self._last: Rendered | None = None
        self._pending: set[asyncio.Task] = set()
        self._lock = asyncio.Lock()
        self.disposed = False

    @property
    def query(self) -> Query:
        return self._query

    async def show(self) -> None:
        self._unsubscribe = self._client.cache.subscribe(self._query, self._on_update)
        await self._draw(self._client.read(self._query))

    def _on_update(self, result: QueryResult) -> None:
        if self.disposed:
            return
        task = asyncio.get_running_loop().create_task(self._refresh())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _refresh(self) -> None:
        # рисуем последнее состояние, а не то, с которым пришло уведомление
        result = self._client.cache.peek(self._query.key)
        if result is not None:
            await self._draw(result)

    async def _draw(self, result: QueryResult) -> None:
        async with self._lock:
            if self.disposed:
                return
            rendered = self._render(result)
            if rendered == self._last:
                return
            self._last = rendered
            text, markup = rendered
            try:
                await self._message.edit_text(text, reply_markup=markup)
            except TelegramBadRequest as exc:
                if "message is not modified" not in str(exc).lower():
                    logger.warning("Failed to redraw screen %s: %s", self._query.key.parts, exc)

    def dispose(self) -> None:
        if self.disposed:
            return
        self.disposed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for task in list(self._pending):
            task.cancel()


class ScreenManager:
    """Текущий экран каждого чата."""

    def __init__(self):
        self._screens: dict[int, Screen] = {}

    async def open(self, chat_id: int, screen: Screen) -> Screen:
        self.close(chat_id)
        self._screens[chat_id] = screen
        await screen.show()
        return screen

    def current(self, chat_id: int) -> Screen | None:
        return self._screens.get(chat_id)

    def close(self, chat_id: int) -> None:
        previous = self._screens.pop(chat_id, None)
        if previous is not None:
            previous.dispose()

    def close_all(self) -> None:
        for chat_id in list(self._screens):
            self.close(chat_id)

    async def show(
        self,
        client: AfishaClient,
        message: Message,
        query: Query,
        render: Renderer,
    ) -> Screen:
        return await self.open(message.chat.id, Screen(client, message, query, render))

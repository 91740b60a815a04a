"""Общие помощники обработчиков."""
from aiogram.types import Message

from afisha.models import City
from afisha.services.client import AfishaClient
from afisha.views import LOADING_TEXT


async def current_city(client: AfishaClient) -> City:
    return await client.load(client.queries.city(client.city_slug))


async def placeholder(message: Message) -> Message:
    """Новое сообщение бота, которое потом станет экраном."""
    return await message.answer(LOADING_TEXT)

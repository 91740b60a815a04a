"""Старт, главное меню, выбор города."""
import logging
from html import escape

from aiogram import F, Router
from aiogram.filters import Command, CommandStart
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from afisha.keyboards import cities_kb, main_kb
from afisha.keyboards.reply import CANCEL_BUTTON, CITY_BUTTON
from afisha.services.client import AfishaClient
from afisha.views import ScreenManager, state_text
from afisha.handlers.common import placeholder

logger = logging.getLogger(__name__)
router = Router()

WELCOME_TEXT = (
    "🎭 <b>Афиша Казахстана</b>\n\n"
    "События, акции и сообщества вашего города.\n"
    "Выберите раздел в меню ниже."
)

HELP_TEXT = (
    "🎭 Афиша: события города с фильтрами и поиском\n"
    "🏢 Каталог: места и бизнесы\n"
    "🔥 Акции: действующие скидки\n"
    "👥 Сообщество: сообщества и коллаборации\n"
    "👤 Профиль: вход, избранное, кабинет бизнеса\n"
    "📍 Город: смена города"
)


def _render_cities(selected: str | None):
    def render(result):
        text = state_text(result)
        if text:
            return text, None
        return "📍 Выберите город:", cities_kb(result.data, selected)

    return render


async def _show_cities(message: Message, client: AfishaClient, screens: ScreenManager):
    await screens.show(
        client,
        message,
        client.queries.cities(),
        _render_cities(client.session.selected_city),
    )


@router.message(CommandStart())
async def cmd_start(message: Message, client: AfishaClient, screens: ScreenManager, state: FSMContext):
    await state.clear()
    await message.answer(WELCOME_TEXT, reply_markup=main_kb())
    if not client.session.selected_city:
        await _show_cities(await placeholder(message), client, screens)


@router.message(Command("help"))
async def cmd_help(message: Message):
    await message.answer(HELP_TEXT, reply_markup=main_kb())


@router.message(F.text == CANCEL_BUTTON)
async def cancel(message: Message, state: FSMContext):
    await state.clear()
    await message.answer("Действие отменено.", reply_markup=main_kb())


@router.message(F.text == CITY_BUTTON)
async def city_menu(message: Message, client: AfishaClient, screens: ScreenManager):
    await _show_cities(await placeholder(message), client, screens)


@router.callback_query(F.data == "menu:city")
async def city_menu_callback(callback: CallbackQuery, client: AfishaClient, screens: ScreenManager):
    await callback.answer()
    await _show_cities(callback.message, client, screens)


@router.callback_query(F.data.startswith("city:"))
async def city_select(callback: CallbackQuery, client: AfishaClient, screens: ScreenManager):
    slug = callback.data.split(":", 1)[1]
    city = await client.load(client.queries.city(slug))
    await client.session.select_city(slug)
    screens.close(callback.message.chat.id)
    await callback.answer()
    await callback.message.edit_text(f"📍 Город: <b>{escape(city.name)}</b>")
    logger.info("User %s selected city %s", callback.from_user.id, slug)


@router.callback_query(F.data == "menu:main")
async def main_menu(callback: CallbackQuery, screens: ScreenManager):
    screens.close(callback.message.chat.id)
    await callback.answer()
    await callback.message.edit_text("Выберите раздел в меню ниже.")

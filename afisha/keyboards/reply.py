"""Reply-клавиатуры бота."""
from aiogram.types import KeyboardButton, ReplyKeyboardMarkup

EVENTS_BUTTON = "🎭 Афиша"
CATALOG_BUTTON = "🏢 Каталог"
PROMOTIONS_BUTTON = "🔥 Акции"
COMMUNITY_BUTTON = "👥 Сообщество"
PROFILE_BUTTON = "👤 Профиль"
CITY_BUTTON = "📍 Город"
CANCEL_BUTTON = "❌ Отмена"


def main_kb() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        keyboard=[
            [KeyboardButton(text=EVENTS_BUTTON)],
            [
                KeyboardButton(text=CATALOG_BUTTON),
                KeyboardButton(text=PROMOTIONS_BUTTON),
            ],
            [
                KeyboardButton(text=COMMUNITY_BUTTON),
                KeyboardButton(text=PROFILE_BUTTON),
            ],
            [KeyboardButton(text=CITY_BUTTON)],
        ],
        resize_keyboard=True,
    )


def cancel_kb() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        keyboard=[[KeyboardButton(text=CANCEL_BUTTON)]],
        resize_keyboard=True,
    )

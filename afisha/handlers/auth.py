"""Профиль: вход, регистрация, выход."""
import logging
from html import escape

from aiogram import F, Router
from aiogram.exceptions import TelegramBadRequest
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import CallbackQuery, Message

from afisha.errors import ApiError
from afisha.keyboards import auth_kb, cancel_kb, main_kb, profile_kb
from afisha.keyboards.reply import PROFILE_BUTTON
from afisha.models import Role
from afisha.services.client import AfishaClient
from afisha.views import ScreenManager

logger = logging.getLogger(__name__)
router = Router()

ROLE_TITLES = {
    Role.USER: "Житель",
    Role.BUSINESS: "Предприниматель",
    Role.MODERATOR: "Модератор",
    Role.ADMIN: "Администратор",
}

ANONYMOUS_TEXT = "👤 <b>Профиль</b>\n\nВойдите в аккаунт или создайте новый."


class LoginStates(StatesGroup):
    waiting_email = State()
    waiting_password = State()


class RegisterStates(StatesGroup):
    waiting_name = State()
    waiting_email = State()
    waiting_password = State()


def profile_view(client: AfishaClient):
    user = client.session.user
    if user is None:
        return ANONYMOUS_TEXT, auth_kb()
    text = (
        f"👤 <b>{escape(user.display_name)}</b>\n"
        f"📧 {escape(user.email)}\n"
        f"🏷 {ROLE_TITLES.get(user.role, user.role.value)}"
    )
    return text, profile_kb(user.can_moderate)


async def _drop_secret(message: Message) -> None:
    try:
        await message.delete()
    except TelegramBadRequest:
        logger.debug("Could not delete password message in chat %s", message.chat.id)


@router.message(F.text == PROFILE_BUTTON)
async def profile(message: Message, client: AfishaClient, screens: ScreenManager):
    screens.close(message.chat.id)
    text, kb = profile_view(client)
    await message.answer(text, reply_markup=kb)


@router.callback_query(F.data == "menu:profile")
async def profile_callback(callback: CallbackQuery, client: AfishaClient, screens: ScreenManager):
    screens.close(callback.message.chat.id)
    await callback.answer()
    text, kb = profile_view(client)
    await callback.message.edit_text(text, reply_markup=kb)


# --- вход ---


@router.callback_query(F.data == "auth:login")
async def login_start(callback: CallbackQuery, state: FSMContext):
    await callback.answer()
    await state.set_state(LoginStates.waiting_email)
    await callback.message.answer("📧 Введите email:", reply_markup=cancel_kb())


@router.message(LoginStates.waiting_email)
async def login_email(message: Message, state: FSMContext):
    await state.update_data(email=(message.text or "").strip())
    await state.set_state(LoginStates.waiting_password)
    await message.answer("🔑 Введите пароль:")


@router.message(LoginStates.waiting_password)
async def login_password(message: Message, client: AfishaClient, state: FSMContext):
    data = await state.get_data()
    password = message.text or ""
    await _drop_secret(message)
    await state.set_state(None)

    try:
        result = await client.mutations.login(data.get("email", ""), password)
    except ApiError as exc:
        await message.answer(f"❌ <b>Ошибка входа</b>\n{escape(str(exc))}", reply_markup=main_kb())
        return

    await message.answer(
        f"👋 Добро пожаловать, {escape(result.user.display_name)}!\nВы успешно вошли в аккаунт.",
        reply_markup=main_kb(),
    )


# --- регистрация ---


@router.callback_query(F.data == "auth:register")
async def register_start(callback: CallbackQuery, state: FSMContext):
    await callback.answer()
    await state.set_state(RegisterStates.waiting_name)
    await callback.message.answer("👤 Как вас зовут?", reply_markup=cancel_kb())


@router.message(RegisterStates.waiting_name)
async def register_name(message: Message, state: FSMContext):
    await state.update_data(name=(message.text or "").strip())
    await state.set_state(RegisterStates.waiting_email)
    await message.answer("📧 Введите email:")


@router.message(RegisterStates.waiting_email)
async def register_email(message: Message, state: FSMContext):
    await state.update_data(email=(message.text or "").strip())
    await state.set_state(RegisterStates.waiting_password)
    await message.answer("🔑 Придумайте пароль (не короче 6 символов):")


@router.message(RegisterStates.waiting_password)
async def register_password(message: Message, client: AfishaClient, state: FSMContext):
    data = await state.get_data()
    password = message.text or ""
    await _drop_secret(message)
    await state.set_state(None)

    try:
        await client.mutations.register(data.get("email", ""), password, name=data.get("name") or None)
    except ApiError as exc:
        await message.answer(f"❌ <b>Ошибка регистрации</b>\n{escape(str(exc))}", reply_markup=main_kb())
        return

    await message.answer("🎉 Регистрация успешна!\nДобро пожаловать в Афишу.", reply_markup=main_kb())


# --- выход ---


@router.callback_query(F.data == "auth:logout")
async def logout(callback: CallbackQuery, client: AfishaClient, screens: ScreenManager):
    screens.close(callback.message.chat.id)
    await client.mutations.logout()
    await callback.answer("Вы вышли из аккаунта")
    await callback.message.edit_text(ANONYMOUS_TEXT, reply_markup=auth_kb())

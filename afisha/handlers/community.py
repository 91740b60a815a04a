"""Сообщества и коллаборации."""
import logging
from html import escape

from aiogram import F, Router
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import CallbackQuery, Message

from afisha.keyboards import (
    back_kb,
    cancel_kb,
    collaboration_kb,
    collaborations_kb,
    communities_kb,
    community_kb,
    community_menu_kb,
    main_kb,
)
from afisha.keyboards.reply import COMMUNITY_BUTTON
from afisha.services.client import AfishaClient
from afisha.utils import formatting
from afisha.views import ScreenManager, state_text
from afisha.handlers.common import current_city

logger = logging.getLogger(__name__)
router = Router()

COMMUNITY_TEXT = "👥 <b>Сообщество</b>\n\nОбъединяйтесь по интересам и находите партнёров."


class RespondStates(StatesGroup):
    waiting_message = State()


@router.message(F.text == COMMUNITY_BUTTON)
async def community_menu(message: Message, screens: ScreenManager):
    screens.close(message.chat.id)
    await message.answer(COMMUNITY_TEXT, reply_markup=community_menu_kb())


@router.callback_query(F.data == "menu:community")
async def community_menu_callback(callback: CallbackQuery, screens: ScreenManager):
    screens.close(callback.message.chat.id)
    await callback.answer()
    await callback.message.edit_text(COMMUNITY_TEXT, reply_markup=community_menu_kb())


# --- сообщества ---


def _render_communities(city_name: str):
    def render(result):
        text = state_text(result)
        if text:
            return text, back_kb("menu:community")
        communities = result.data or []
        header = f"👥 <b>Сообщества · {escape(city_name)}</b>"
        if not communities:
            return f"{header}\n\nСообществ пока нет.", back_kb("menu:community")
        return header, communities_kb(communities)

    return render


def _render_community(result):
    text = state_text(result)
    if text:
        return text, back_kb("menu:communities")
    return formatting.community_card(result.data), community_kb(result.data)


@router.callback_query(F.data == "menu:communities")
async def communities(callback: CallbackQuery, client: AfishaClient, screens: ScreenManager):
    city = await current_city(client)
    await callback.answer()
    await screens.show(
        client,
        callback.message,
        client.queries.communities(city_id=city.id),
        _render_communities(city.name),
    )


@router.callback_query(F.data.startswith("community:"))
async def community_detail(callback: CallbackQuery, client: AfishaClient, screens: ScreenManager):
    community_id = callback.data.split(":", 1)[1]
    await callback.answer()
    await screens.show(client, callback.message, client.queries.community(community_id), _render_community)


@router.callback_query(F.data.startswith("join:"))
async def community_join(callback: CallbackQuery, client: AfishaClient):
    # экран сообщества подписан на кэш и перерисуется сам
    await client.mutations.join_community(callback.data.split(":", 1)[1])
    await callback.answer("Вы вступили в сообщество")


@router.callback_query(F.data.startswith("leave:"))
async def community_leave(callback: CallbackQuery, client: AfishaClient):
    await client.mutations.leave_community(callback.data.split(":", 1)[1])
    await callback.answer("Вы вышли из сообщества")


# --- коллаборации ---


def _render_collaborations(city_name: str):
    def render(result):
        text = state_text(result)
        if text:
            return text, back_kb("menu:community")
        collabs = result.data or []
        header = f"🤝 <b>Коллаборации · {escape(city_name)}</b>"
        if not collabs:
            return f"{header}\n\nОткрытых коллабораций нет.", back_kb("menu:community")
        return header, collaborations_kb(collabs)

    return render


def _render_collaboration(result):
    text = state_text(result)
    if text:
        return text, back_kb("menu:collabs")
    return formatting.collaboration_card(result.data), collaboration_kb(result.data)


@router.callback_query(F.data == "menu:collabs")
async def collaborations(callback: CallbackQuery, client: AfishaClient, screens: ScreenManager):
    city = await current_city(client)
    await callback.answer()
    await screens.show(
        client,
        callback.message,
        client.queries.collaborations(city_id=city.id, status="open"),
        _render_collaborations(city.name),
    )


@router.callback_query(F.data.startswith("collab:"))
async def collaboration_detail(callback: CallbackQuery, client: AfishaClient, screens: ScreenManager):
    collab_id = callback.data.split(":", 1)[1]
    await callback.answer()
    await screens.show(client, callback.message, client.queries.collaboration(collab_id), _render_collaboration)


@router.callback_query(F.data.startswith("respond:"))
async def respond_start(callback: CallbackQuery, client: AfishaClient, state: FSMContext):
    if not client.session.is_authenticated:
        await callback.answer("Войдите в аккаунт, чтобы откликнуться", show_alert=True)
        return
    await callback.answer()
    await state.set_state(RespondStates.waiting_message)
    await state.update_data(collab_id=callback.data.split(":", 1)[1])
    await callback.message.answer("✉️ Напишите сообщение для автора коллаборации:", reply_markup=cancel_kb())


@router.message(RespondStates.waiting_message)
async def respond_send(message: Message, client: AfishaClient, state: FSMContext):
    data = await state.get_data()
    await client.mutations.respond_to_collaboration(data["collab_id"], message.text or "")
    await state.set_state(None)
    await message.answer("✅ Отклик отправлен", reply_markup=main_kb())

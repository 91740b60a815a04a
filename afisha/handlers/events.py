"""Афиша: лента событий, фильтры, поиск, карточка и избранное."""
import dataclasses
import logging
from html import escape

from aiogram import F, Router
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import CallbackQuery, Message

from afisha.keyboards import (
    back_kb,
    event_detail_kb,
    events_kb,
    favorites_kb,
    filter_options_kb,
    main_kb,
)
from afisha.keyboards.reply import EVENTS_BUTTON
from afisha.models import EVENT_CATEGORIES, Role
from afisha.services.cache import Query
from afisha.services.client import AfishaClient
from afisha.services.filters import DATE_FILTERS, PRICE_FILTERS, EventFilters, apply_filters
from afisha.utils import formatting
from afisha.views import ScreenManager, state_text
from afisha.handlers.common import current_city, placeholder

logger = logging.getLogger(__name__)
router = Router()

FILTER_KINDS = ("category", "date", "price")


class SearchStates(StatesGroup):
    waiting_query = State()


async def _get_filters(state: FSMContext) -> EventFilters:
    data = await state.get_data()
    return EventFilters(**data.get("filters", {}))


async def _set_filters(state: FSMContext, filters: EventFilters) -> None:
    await state.update_data(filters=dataclasses.asdict(filters))


async def _events_query(client: AfishaClient, filters: EventFilters) -> tuple[Query, str]:
    city = await current_city(client)
    return client.queries.events(city_id=city.id, category=filters.server_category), city.name


def _render_events(filters: EventFilters, city_name: str):
    def render(result):
        text = state_text(result)
        if text:
            return text, back_kb()
        events = apply_filters(result.data or [], filters)
        title = f"🎭 Афиша · {escape(city_name)}"
        if filters.search:
            title += f" · «{escape(filters.search)}»"
        if result.is_fetching:
            title += " 🔄"
        return formatting.events_list(events, title), events_kb(events, filters)

    return render


async def _show_events(message: Message, client: AfishaClient, screens: ScreenManager, state: FSMContext):
    filters = await _get_filters(state)
    query, city_name = await _events_query(client, filters)
    await screens.show(client, message, query, _render_events(filters, city_name))


@router.message(F.text == EVENTS_BUTTON)
async def events_menu(message: Message, client: AfishaClient, screens: ScreenManager, state: FSMContext):
    await _show_events(await placeholder(message), client, screens, state)


@router.callback_query(F.data == "menu:events")
async def events_menu_callback(
    callback: CallbackQuery,
    client: AfishaClient,
    screens: ScreenManager,
    state: FSMContext,
):
    await callback.answer()
    await _show_events(callback.message, client, screens, state)


@router.callback_query(F.data == "events:refresh")
async def events_refresh(callback: CallbackQuery, client: AfishaClient, state: FSMContext):
    await callback.answer("Обновляю...")
    query, _ = await _events_query(client, await _get_filters(state))
    await client.cache.refetch(query)


# --- фильтры ---


@router.callback_query(F.data.in_({f"filter:{kind}" for kind in FILTER_KINDS}))
async def filter_options(callback: CallbackQuery, screens: ScreenManager, state: FSMContext):
    kind = callback.data.split(":", 1)[1]
    filters = await _get_filters(state)
    screens.close(callback.message.chat.id)
    await callback.answer()
    titles = {"category": "🏷 Категория", "date": "📅 Когда", "price": "💰 Цена"}
    await callback.message.edit_text(
        titles[kind],
        reply_markup=filter_options_kb(kind, getattr(filters, kind)),
    )


@router.callback_query(F.data.startswith("setf:"))
async def filter_set(
    callback: CallbackQuery,
    client: AfishaClient,
    screens: ScreenManager,
    state: FSMContext,
):
    _, kind, value = callback.data.split(":", 2)
    allowed = {
        "category": {"all", *EVENT_CATEGORIES},
        "date": DATE_FILTERS,
        "price": PRICE_FILTERS,
    }
    if kind not in allowed or value not in allowed[kind]:
        await callback.answer()
        return

    filters = dataclasses.replace(await _get_filters(state), **{kind: value})
    await _set_filters(state, filters)
    await callback.answer()
    await _show_events(callback.message, client, screens, state)


@router.callback_query(F.data == "filter:reset")
async def filter_reset(
    callback: CallbackQuery,
    client: AfishaClient,
    screens: ScreenManager,
    state: FSMContext,
):
    await _set_filters(state, EventFilters())
    await callback.answer("Фильтры сброшены")
    await _show_events(callback.message, client, screens, state)


@router.callback_query(F.data == "filter:search")
async def search_start(callback: CallbackQuery, state: FSMContext):
    await callback.answer()
    await state.set_state(SearchStates.waiting_query)
    await callback.message.answer("🔎 Введите название, место или организатора (или «-», чтобы сбросить):")


@router.message(SearchStates.waiting_query)
async def search_apply(message: Message, client: AfishaClient, screens: ScreenManager, state: FSMContext):
    text = (message.text or "").strip()
    search = "" if text == "-" else text
    filters = dataclasses.replace(await _get_filters(state), search=search)
    await state.set_state(None)
    await _set_filters(state, filters)
    await _show_events(await placeholder(message), client, screens, state)


# --- карточка события ---


def _render_event(client: AfishaClient, favorite: Query, owner_business_id: str | None = None):
    def render(result):
        text = state_text(result)
        if text:
            return text, back_kb("menu:events")
        status = client.cache.peek(favorite.key) if favorite.enabled else None
        is_favorite = bool(status and status.data and status.data.is_favorite)
        return (
            formatting.event_card(result.data, is_favorite),
            event_detail_kb(result.data, is_favorite, is_owner=_owns(result.data, owner_business_id)),
        )

    return render


def _owns(event, business_id: str | None) -> bool:
    return business_id is not None and event.business_id == business_id


async def _owner_business_id(client: AfishaClient) -> str | None:
    user = client.session.user
    if user is None or user.role != Role.BUSINESS:
        return None
    business = await client.load(client.queries.my_business())
    return business.id if business else None


async def _show_event(message: Message, client: AfishaClient, screens: ScreenManager, event_id: str):
    favorite = client.queries.favorite(event_id)
    if favorite.enabled:
        await client.load(favorite)
    render = _render_event(client, favorite, await _owner_business_id(client))
    await screens.show(client, message, client.queries.event(event_id), render)


@router.callback_query(F.data.startswith("event:"))
async def event_detail(callback: CallbackQuery, client: AfishaClient, screens: ScreenManager):
    await callback.answer()
    await _show_event(callback.message, client, screens, callback.data.split(":", 1)[1])


@router.callback_query(F.data.startswith("fav:"))
async def favorite_toggle(callback: CallbackQuery, client: AfishaClient, screens: ScreenManager):
    if not client.session.is_authenticated:
        await callback.answer("Войдите в аккаунт, чтобы добавлять события в избранное", show_alert=True)
        return

    event_id = callback.data.split(":", 1)[1]
    added = await client.mutations.toggle_favorite(event_id)
    await callback.answer("Добавлено в избранное" if added else "Удалено из избранного")
    await _show_event(callback.message, client, screens, event_id)


# --- избранное ---


def _render_favorites(result):
    text = state_text(result)
    if text:
        return text, back_kb("menu:profile")
    events = result.data or []
    if not events:
        return "❤️ В избранном пока пусто.", back_kb("menu:profile")
    return formatting.events_list(events, "❤️ Избранное"), favorites_kb(events)


@router.callback_query(F.data == "menu:favorites")
async def favorites(callback: CallbackQuery, client: AfishaClient, screens: ScreenManager):
    query = client.queries.favorite_events()
    if not query.enabled:
        await callback.answer("Войдите в аккаунт", show_alert=True)
        await callback.message.answer("👤 Раздел «Профиль» в меню ниже.", reply_markup=main_kb())
        return
    await callback.answer()
    await screens.show(client, callback.message, query, _render_favorites)

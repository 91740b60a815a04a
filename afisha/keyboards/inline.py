"""Инлайн-клавиатуры бота."""
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from afisha.models import (
    EVENT_CATEGORIES,
    Business,
    City,
    Collaboration,
    CollabStatus,
    Community,
    Event,
    Promotion,
)
from afisha.services import plans
from afisha.services.filters import DATE_FILTERS, PRICE_FILTERS, EventFilters

MAX_LIST_BUTTONS = 10


def _short(text: str, limit: int = 40) -> str:
    return text if len(text) <= limit else text[: limit - 1] + "…"


def back_kb(target: str = "menu:main") -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(InlineKeyboardButton(text="◀️ Назад", callback_data=target))
    return builder.as_markup()


def cities_kb(cities: list[City], selected: str | None) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    for city in cities:
        mark = "✅ " if city.slug == selected else ""
        builder.button(text=f"{mark}{city.name}", callback_data=f"city:{city.slug}")
    builder.adjust(2)
    return builder.as_markup()


# --- события ---


def events_kb(events: list[Event], filters: EventFilters) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    for event in events[:MAX_LIST_BUTTONS]:
        builder.row(
            InlineKeyboardButton(text=_short(event.title), callback_data=f"event:{event.id}")
        )

    category = "Категория"
    if filters.category != "all":
        category = EVENT_CATEGORIES.get(filters.category, ("Категория", ""))[0]
    builder.row(
        InlineKeyboardButton(text=f"🏷 {category}", callback_data="filter:category"),
        InlineKeyboardButton(text=f"📅 {DATE_FILTERS[filters.date]}", callback_data="filter:date"),
    )
    builder.row(
        InlineKeyboardButton(text=f"💰 {PRICE_FILTERS[filters.price]}", callback_data="filter:price"),
        InlineKeyboardButton(text="🔎 Поиск", callback_data="filter:search"),
    )
    if filters.is_active:
        builder.row(InlineKeyboardButton(text="✖️ Сбросить фильтры", callback_data="filter:reset"))
    builder.row(InlineKeyboardButton(text="🔄 Обновить", callback_data="events:refresh"))
    return builder.as_markup()


def filter_options_kb(kind: str, current: str) -> InlineKeyboardMarkup:
    if kind == "category":
        options = {"all": "Все категории"}
        options.update({slug: f"{icon} {label}" for slug, (label, icon) in EVENT_CATEGORIES.items()})
    elif kind == "date":
        options = DATE_FILTERS
    else:
        options = PRICE_FILTERS

    builder = InlineKeyboardBuilder()
    for value, label in options.items():
        mark = "✅ " if value == current else ""
        builder.button(text=f"{mark}{label}", callback_data=f"setf:{kind}:{value}")
    builder.adjust(2)
    builder.row(InlineKeyboardButton(text="◀️ Назад", callback_data="menu:events"))
    return builder.as_markup()


def event_detail_kb(event: Event, is_favorite: bool, is_owner: bool = False) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    fav_text = "💔 Убрать из избранного" if is_favorite else "❤️ В избранное"
    builder.row(InlineKeyboardButton(text=fav_text, callback_data=f"fav:{event.id}"))
    if is_owner:
        builder.row(
            InlineKeyboardButton(text="✏️ Название", callback_data=f"edit_event:{event.id}"),
            InlineKeyboardButton(text="🗑 Удалить", callback_data=f"del_event:{event.id}"),
        )
    builder.row(InlineKeyboardButton(text="◀️ К афише", callback_data="menu:events"))
    return builder.as_markup()


def favorites_kb(events: list[Event]) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    for event in events[:MAX_LIST_BUTTONS]:
        builder.row(
            InlineKeyboardButton(text=_short(event.title), callback_data=f"event:{event.id}")
        )
    builder.row(InlineKeyboardButton(text="◀️ Назад", callback_data="menu:profile"))
    return builder.as_markup()


# --- сообщество ---


def community_menu_kb() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(text="👥 Сообщества", callback_data="menu:communities"),
        InlineKeyboardButton(text="🤝 Коллаборации", callback_data="menu:collabs"),
    )
    return builder.as_markup()


def communities_kb(communities: list[Community]) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    for community in communities[:MAX_LIST_BUTTONS]:
        mark = "✅ " if community.is_member else ""
        builder.row(
            InlineKeyboardButton(
                text=f"{mark}{_short(community.name)}",
                callback_data=f"community:{community.id}",
            )
        )
    builder.row(InlineKeyboardButton(text="◀️ Назад", callback_data="menu:community"))
    return builder.as_markup()


def community_kb(community: Community) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    if community.is_member:
        builder.row(InlineKeyboardButton(text="🚪 Выйти", callback_data=f"leave:{community.id}"))
    else:
        builder.row(InlineKeyboardButton(text="➕ Вступить", callback_data=f"join:{community.id}"))
    builder.row(InlineKeyboardButton(text="◀️ Назад", callback_data="menu:communities"))
    return builder.as_markup()


def collaborations_kb(collabs: list[Collaboration]) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    for collab in collabs[:MAX_LIST_BUTTONS]:
        builder.row(
            InlineKeyboardButton(text=_short(collab.title), callback_data=f"collab:{collab.id}")
        )
    builder.row(InlineKeyboardButton(text="◀️ Назад", callback_data="menu:community"))
    return builder.as_markup()


def collaboration_kb(collab: Collaboration) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    if collab.status == CollabStatus.OPEN and not collab.has_responded:
        builder.row(
            InlineKeyboardButton(text="✉️ Откликнуться", callback_data=f"respond:{collab.id}")
        )
    builder.row(InlineKeyboardButton(text="◀️ Назад", callback_data="menu:collabs"))
    return builder.as_markup()


# --- профиль и авторизация ---


def auth_kb() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(text="🔑 Войти", callback_data="auth:login"),
        InlineKeyboardButton(text="📝 Регистрация", callback_data="auth:register"),
    )
    return builder.as_markup()


def profile_kb(can_moderate: bool) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(InlineKeyboardButton(text="❤️ Избранное", callback_data="menu:favorites"))
    builder.row(InlineKeyboardButton(text="🏢 Мой бизнес", callback_data="menu:business"))
    if can_moderate:
        builder.row(InlineKeyboardButton(text="🛡 Модерация", callback_data="admin:events"))
    builder.row(InlineKeyboardButton(text="🚪 Выйти", callback_data="auth:logout"))
    return builder.as_markup()


# --- кабинет бизнеса ---


def business_kb(business: Business) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    can_post = plans.posts_remaining(business) > 0
    if can_post:
        builder.row(
            InlineKeyboardButton(text="➕ Событие", callback_data="biz:new_event"),
            InlineKeyboardButton(text="➕ Акция", callback_data="biz:new_promo"),
        )
    lock = "" if plans.has_feature(business.tier, "ai_image_ideas") else "🔒 "
    builder.row(InlineKeyboardButton(text="🔥 Мои акции", callback_data="biz:promos"))
    builder.row(InlineKeyboardButton(text=f"{lock}✨ Идеи для изображений", callback_data="biz:ideas"))
    builder.row(InlineKeyboardButton(text="◀️ Назад", callback_data="menu:profile"))
    return builder.as_markup()


def my_promotions_kb(promotions: list[Promotion]) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    for promotion in promotions[:MAX_LIST_BUTTONS]:
        if promotion.is_active:
            toggle = InlineKeyboardButton(
                text=f"⏸ {_short(promotion.title, 30)}", callback_data=f"promo_pause:{promotion.id}"
            )
        else:
            toggle = InlineKeyboardButton(
                text=f"▶️ {_short(promotion.title, 30)}", callback_data=f"promo_resume:{promotion.id}"
            )
        builder.row(toggle, InlineKeyboardButton(text="🗑", callback_data=f"promo_del:{promotion.id}"))
    builder.row(InlineKeyboardButton(text="◀️ Назад", callback_data="menu:business"))
    return builder.as_markup()


def categories_kb(prefix: str) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    for slug, (label, icon) in EVENT_CATEGORIES.items():
        builder.button(text=f"{icon} {label}", callback_data=f"{prefix}:{slug}")
    builder.adjust(2)
    return builder.as_markup()


# --- модерация ---


def moderation_kb(events: list[Event]) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    for event in events[:MAX_LIST_BUTTONS]:
        builder.row(InlineKeyboardButton(text=_short(event.title), callback_data=f"event:{event.id}"))
        builder.row(
            InlineKeyboardButton(text="✅ Одобрить", callback_data=f"approve:{event.id}"),
            InlineKeyboardButton(text="❌ Отклонить", callback_data=f"reject:{event.id}"),
        )
    _admin_nav(builder)
    return builder.as_markup()


def _admin_nav(builder: InlineKeyboardBuilder) -> None:
    builder.row(
        InlineKeyboardButton(text="🎭 События", callback_data="admin:events"),
        InlineKeyboardButton(text="🏢 Бизнесы", callback_data="admin:businesses"),
        InlineKeyboardButton(text="🔥 Акции", callback_data="admin:promotions"),
    )


def admin_businesses_kb(businesses: list[Business]) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    for business in businesses[:MAX_LIST_BUTTONS]:
        if not business.is_verified:
            builder.row(
                InlineKeyboardButton(
                    text=f"✅ {_short(business.name, 30)}", callback_data=f"verify:{business.id}"
                )
            )
    _admin_nav(builder)
    return builder.as_markup()


def admin_promotions_kb(promotions: list[Promotion]) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    for promotion in promotions[:MAX_LIST_BUTTONS]:
        title = _short(promotion.title, 30)
        if promotion.is_active:
            button = InlineKeyboardButton(text=f"🚫 {title}", callback_data=f"mod_off:{promotion.id}")
        else:
            button = InlineKeyboardButton(text=f"↩️ {title}", callback_data=f"mod_on:{promotion.id}")
        builder.row(button)
    _admin_nav(builder)
    return builder.as_markup()

"""Модерация событий."""
import logging
from functools import wraps

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import CallbackQuery, Message

from afisha.config import Config
from afisha.keyboards import admin_businesses_kb, admin_promotions_kb, moderation_kb
from afisha.services.client import AfishaClient
from afisha.utils import formatting
from afisha.views import ScreenManager, state_text
from afisha.handlers.common import placeholder

logger = logging.getLogger(__name__)
router = Router()

STAT_TITLES = {
    "totalUsers": "👤 Пользователей",
    "totalEvents": "🎭 Событий",
    "pendingEvents": "⏳ На модерации",
    "totalBusinesses": "🏢 Бизнесов",
    "activePromotions": "🔥 Активных акций",
}


def can_moderate(client: AfishaClient, telegram_id: int, config: Config) -> bool:
    user = client.session.user
    if user is None:
        return False
    return user.can_moderate or telegram_id in config.ADMIN_IDS


def moderator_only(func):
    """Пропускает только вошедших модераторов (или ADMIN_IDS)."""
    @wraps(func)
    async def wrapper(event, *args, **kwargs):
        client: AfishaClient = kwargs["client"]
        config: Config = kwargs["config"]
        if not can_moderate(client, event.from_user.id, config):
            text = "❌ Доступ запрещен"
            if not client.session.is_authenticated:
                text += ". Войдите в аккаунт модератора"
            if isinstance(event, Message):
                await event.answer(text)
            elif isinstance(event, CallbackQuery):
                await event.answer(text, show_alert=True)
            return

        return await func(event, *args, **kwargs)
    return wrapper


def stats_text(stats: dict) -> str:
    lines = ["🛡 <b>Модерация</b>"]
    for key, title in STAT_TITLES.items():
        if key in stats:
            lines.append(f"{title}: {stats[key]}")
    return "\n".join(lines)


def _render_pending(header: str):
    def render(result):
        text = state_text(result)
        if text:
            return f"{header}\n\n{text}", None
        events = result.data or []
        if not events:
            return f"{header}\n\n✅ Очередь модерации пуста.", moderation_kb([])
        return formatting.events_list(events, header), moderation_kb(events)

    return render


async def _show_pending(message: Message, client: AfishaClient, screens: ScreenManager):
    stats = await client.load(client.queries.admin_stats())
    await screens.show(
        client,
        message,
        client.queries.admin_events(status="pending"),
        _render_pending(stats_text(stats or {})),
    )


@router.message(Command("admin"))
@moderator_only
async def admin_panel(message: Message, client: AfishaClient, config: Config, screens: ScreenManager):
    await _show_pending(await placeholder(message), client, screens)


@router.callback_query(F.data == "admin:events")
@moderator_only
async def admin_events(callback: CallbackQuery, client: AfishaClient, config: Config, screens: ScreenManager):
    await callback.answer()
    await _show_pending(callback.message, client, screens)


@router.callback_query(F.data.startswith("approve:"))
@moderator_only
async def approve(callback: CallbackQuery, client: AfishaClient, config: Config):
    event_id = callback.data.split(":", 1)[1]
    await client.mutations.approve_event(event_id)
    logger.info("Event %s approved by %s", event_id, callback.from_user.id)
    await callback.answer("Событие одобрено")


@router.callback_query(F.data.startswith("reject:"))
@moderator_only
async def reject(callback: CallbackQuery, client: AfishaClient, config: Config):
    event_id = callback.data.split(":", 1)[1]
    await client.mutations.reject_event(event_id)
    logger.info("Event %s rejected by %s", event_id, callback.from_user.id)
    await callback.answer("Событие отклонено")


# --- бизнесы ---


def _render_businesses(result):
    text = state_text(result)
    if text:
        return text, admin_businesses_kb([])
    businesses = result.data or []
    return formatting.businesses_review(businesses), admin_businesses_kb(businesses)


@router.callback_query(F.data == "admin:businesses")
@moderator_only
async def admin_businesses(callback: CallbackQuery, client: AfishaClient, config: Config, screens: ScreenManager):
    await callback.answer()
    await screens.show(
        client, callback.message, client.queries.admin_businesses(verified=False), _render_businesses
    )


@router.callback_query(F.data.startswith("verify:"))
@moderator_only
async def verify(callback: CallbackQuery, client: AfishaClient, config: Config):
    business_id = callback.data.split(":", 1)[1]
    await client.mutations.verify_business(business_id)
    logger.info("Business %s verified by %s", business_id, callback.from_user.id)
    await callback.answer("Бизнес верифицирован")


# --- акции ---


def _render_promotions(result):
    text = state_text(result)
    if text:
        return text, admin_promotions_kb([])
    promotions = result.data or []
    return (
        formatting.promotions_overview(promotions, "🔥 Акции"),
        admin_promotions_kb(promotions),
    )


@router.callback_query(F.data == "admin:promotions")
@moderator_only
async def admin_promotions(callback: CallbackQuery, client: AfishaClient, config: Config, screens: ScreenManager):
    await callback.answer()
    await screens.show(client, callback.message, client.queries.admin_promotions(), _render_promotions)


@router.callback_query(F.data.startswith("mod_off:") | F.data.startswith("mod_on:"))
@moderator_only
async def moderate_promotion(callback: CallbackQuery, client: AfishaClient, config: Config):
    action, promotion_id = callback.data.split(":", 1)
    is_active = action == "mod_on"
    await client.mutations.moderate_promotion(promotion_id, is_active)
    logger.info("Promotion %s set active=%s by %s", promotion_id, is_active, callback.from_user.id)
    await callback.answer("Акция снова в каталоге" if is_active else "Акция скрыта")

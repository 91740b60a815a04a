"""Каталог бизнесов и акции города."""
from datetime import datetime, timezone
from html import escape

from aiogram import F, Router
from aiogram.types import Message

from afisha.keyboards.reply import CATALOG_BUTTON, PROMOTIONS_BUTTON
from afisha.services.client import AfishaClient
from afisha.utils import formatting
from afisha.views import ScreenManager, state_text
from afisha.handlers.common import current_city, placeholder

router = Router()

MAX_CARDS = 10


def _render_businesses(city_name: str):
    def render(result):
        text = state_text(result)
        if text:
            return text, None
        businesses = result.data or []
        header = f"🏢 <b>Каталог · {escape(city_name)}</b>"
        if not businesses:
            return f"{header}\n\nВ каталоге пока никого нет.", None
        cards = [formatting.business_card(b) for b in businesses[:MAX_CARDS]]
        return "\n\n".join([header, *cards]), None

    return render


def active_promotions(promotions, now: datetime | None = None):
    now = now or datetime.now(timezone.utc)
    return [p for p in promotions if p.is_active and not p.is_expired(now)]


def _render_promotions(city_name: str):
    def render(result):
        text = state_text(result)
        if text:
            return text, None
        promotions = active_promotions(result.data or [])
        header = f"🔥 <b>Акции · {escape(city_name)}</b>"
        if not promotions:
            return f"{header}\n\nСейчас активных акций нет.", None
        cards = [formatting.promotion_card(p) for p in promotions[:MAX_CARDS]]
        return "\n\n".join([header, *cards]), None

    return render


@router.message(F.text == CATALOG_BUTTON)
async def catalog(message: Message, client: AfishaClient, screens: ScreenManager):
    city = await current_city(client)
    await screens.show(
        client,
        await placeholder(message),
        client.queries.businesses(city_id=city.id),
        _render_businesses(city.name),
    )


@router.message(F.text == PROMOTIONS_BUTTON)
async def promotions(message: Message, client: AfishaClient, screens: ScreenManager):
    city = await current_city(client)
    await screens.show(
        client,
        await placeholder(message),
        client.queries.promotions(city_id=city.id, active=True),
        _render_promotions(city.name),
    )

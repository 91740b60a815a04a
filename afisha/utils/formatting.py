"""Тексты карточек для сообщений бота (HTML)."""
from datetime import datetime
from html import escape

from afisha.models import (
    Business,
    Collaboration,
    Community,
    Event,
    ImageIdea,
    ModerationStatus,
    Promotion,
)
from afisha.services import plans
from afisha.services.filters import TZ

MONTHS = (
    "января", "февраля", "марта", "апреля", "мая", "июня",
    "июля", "августа", "сентября", "октября", "ноября", "декабря",
)

WEEKDAYS = ("пн", "вт", "ср", "чт", "пт", "сб", "вс")

STATUS_LABELS = {
    ModerationStatus.PENDING: "⏳ На модерации",
    ModerationStatus.APPROVED: "✅ Опубликовано",
    ModerationStatus.REJECTED: "❌ Отклонено",
    ModerationStatus.EXPIRED: "⌛ Прошло",
}


def format_date(dt: datetime, with_weekday: bool = True) -> str:
    local = dt.astimezone(TZ)
    text = f"{local.day} {MONTHS[local.month - 1]}"
    if with_weekday:
        text += f", {WEEKDAYS[local.weekday()]}"
    return text


def event_line(event: Event) -> str:
    return f"{format_date(event.date, with_weekday=False)} · {escape(event.title)}"


def event_card(event: Event, is_favorite: bool | None = None) -> str:
    lines = [f"<b>{escape(event.title)}</b>", event.category_label, ""]
    lines.append(f"📅 {format_date(event.date)}, {event.time}")
    if event.location:
        place = escape(event.location)
        if event.address:
            place += f", {escape(event.address)}"
        lines.append(f"📍 {place}")
    lines.append(f"💰 {event.price_label()}")
    if event.organizer:
        lines.append(f"👤 {escape(event.organizer.name)}")
    if event.description:
        lines += ["", escape(event.description)]
    if event.tags:
        lines += ["", " ".join(f"#{escape(tag)}" for tag in event.tags)]
    lines += ["", f"👁 {event.view_count}   🔖 {event.save_count}"]
    if event.status != ModerationStatus.APPROVED:
        lines.append(STATUS_LABELS[event.status])
    if is_favorite:
        lines.append("❤️ В избранном")
    return "\n".join(lines)


def events_list(events: list[Event], title: str) -> str:
    if not events:
        return f"<b>{title}</b>\n\nСобытий не найдено. Попробуйте изменить фильтры."
    lines = [f"<b>{title}</b>", ""]
    lines += [f"{i}. {event_line(e)}" for i, e in enumerate(events, 1)]
    return "\n".join(lines)


def business_card(business: Business) -> str:
    name = escape(business.name)
    if business.is_verified:
        name += " ✅"
    lines = [f"<b>{name}</b>"]
    if business.description:
        lines.append(escape(business.description))
    if business.address:
        lines.append(f"📍 {escape(business.address)}")
    if business.phone:
        lines.append(f"📞 {escape(business.phone)}")
    return "\n".join(lines)


def business_dashboard(business: Business) -> str:
    limit = plans.posts_limit(business.tier)
    remaining = plans.posts_remaining(business)
    lines = [
        business_card(business),
        "",
        f"💎 Тариф: {plans.PLAN_TITLES[business.tier]}",
        f"📝 Публикаций в этом месяце: {business.posts_this_month} из {limit}",
        f"Осталось: {remaining}",
    ]
    return "\n".join(lines)


def promotion_card(promotion: Promotion) -> str:
    lines = [f"<b>{escape(promotion.title)}</b>"]
    if promotion.discount:
        lines[0] = f"🔥 {escape(promotion.discount)} · " + lines[0]
    if promotion.business_name:
        lines.append(f"🏢 {escape(promotion.business_name)}")
    if promotion.description:
        lines.append(escape(promotion.description))
    if promotion.conditions:
        lines.append(f"<i>{escape(promotion.conditions)}</i>")
    lines.append(f"⏰ до {format_date(promotion.valid_until, with_weekday=False)}")
    return "\n".join(lines)


def promotions_overview(promotions: list[Promotion], title: str) -> str:
    """Акции списком с отметкой, видна ли акция в каталоге."""
    if not promotions:
        return f"<b>{title}</b>\n\nАкций пока нет."
    lines = [f"<b>{title}</b>", ""]
    for i, promotion in enumerate(promotions, 1):
        mark = "🟢" if promotion.is_active else "⚪️"
        line = f"{i}. {mark} {escape(promotion.title)}"
        if promotion.business_name:
            line += f" · {escape(promotion.business_name)}"
        line += f" · до {format_date(promotion.valid_until, with_weekday=False)}"
        lines.append(line)
    return "\n".join(lines)


def businesses_review(businesses: list[Business]) -> str:
    pending = [b for b in businesses if not b.is_verified]
    if not pending:
        return "🏢 <b>Бизнесы</b>\n\n✅ Все бизнесы проверены."
    lines = ["🏢 <b>Бизнесы на проверке</b>", ""]
    for i, business in enumerate(pending, 1):
        line = f"{i}. {escape(business.name)} · {plans.PLAN_TITLES[business.tier]}"
        if business.owner_name:
            line += f" · 👤 {escape(business.owner_name)}"
        lines.append(line)
    return "\n".join(lines)


def community_card(community: Community) -> str:
    lines = [f"<b>{escape(community.name)}</b>"]
    if community.is_private:
        lines[0] += " 🔒"
    if community.description:
        lines.append(escape(community.description))
    lines.append(f"👥 Участников: {community.members_count}")
    if community.is_member:
        lines.append("✅ Вы участник")
    return "\n".join(lines)


def collaboration_card(collab: Collaboration) -> str:
    lines = [f"<b>{escape(collab.title)}</b>"]
    if collab.creator:
        lines.append(f"👤 {escape(collab.creator.name)}")
    if collab.description:
        lines.append(escape(collab.description))
    if collab.budget:
        lines.append(f"💰 Бюджет: {escape(collab.budget)}")
    lines.append(f"📨 Откликов: {collab.response_count}")
    if collab.has_responded:
        lines.append("✅ Вы откликнулись")
    return "\n".join(lines)


FEATURE_HINTS = {
    "ai_image_ideas": "ИИ подберёт 3 лучших идеи с готовыми промптами",
}


def locked_feature_card(feature: str) -> str:
    required = plans.PLAN_TITLES[plans.FEATURE_TIERS[feature]]
    lines = [f"🔒 <b>{plans.FEATURE_TITLES[feature]}</b> · 👑 {required}"]
    if feature in FEATURE_HINTS:
        lines.append(FEATURE_HINTS[feature])
    lines.append(f"Доступно на тарифе {required}.")
    return "\n".join(lines)


def ideas_text(ideas: list[ImageIdea]) -> str:
    if not ideas:
        return "✨ Идей не нашлось. Добавьте описание и попробуйте ещё раз."
    lines = ["✨ <b>Идеи для изображения</b>"]
    for idea in ideas:
        lines += ["", f"<b>{idea.id}. {escape(idea.title)}</b>"]
        if idea.description:
            lines.append(escape(idea.description))
        lines.append(f"<code>{escape(idea.prompt)}</code>")
    return "\n".join(lines)

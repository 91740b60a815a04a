"""Кабинет бизнеса: тариф, публикации, изображения, ИИ-идеи."""
import io
import logging
from datetime import datetime
from html import escape

from aiogram import Bot, F, Router
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import CallbackQuery, Message

from afisha.errors import ConfigurationError, ValidationError
from afisha.keyboards import back_kb, business_kb, cancel_kb, categories_kb, main_kb, my_promotions_kb
from afisha.models import EVENT_CATEGORIES, Business
from afisha.services import plans
from afisha.services.client import AfishaClient
from afisha.services.filters import TZ
from afisha.utils import formatting
from afisha.views import ScreenManager, state_text

logger = logging.getLogger(__name__)
router = Router()

SKIP = "-"
EVENT_FOLDER = "afisha/events"
PROMOTION_FOLDER = "afisha/promotions"


class EventStates(StatesGroup):
    waiting_title = State()
    waiting_category = State()
    waiting_date = State()
    waiting_location = State()
    waiting_price = State()
    waiting_description = State()
    waiting_image = State()


class PromotionStates(StatesGroup):
    waiting_title = State()
    waiting_discount = State()
    waiting_valid_until = State()
    waiting_description = State()


class EditEventStates(StatesGroup):
    waiting_title = State()


def parse_local_datetime(text: str) -> datetime | None:
    """«25.12.2025 19:00» или «25.12.2025» по времени Алматы."""
    text = (text or "").strip()
    for fmt in ("%d.%m.%Y %H:%M", "%d.%m.%Y"):
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=TZ)
        except ValueError:
            continue
    return None


def parse_price(text: str) -> tuple[int | None, int | None]:
    """«0» или «-» бесплатно, «5000» или «5000-15000» диапазон."""
    text = (text or "").replace(" ", "").strip()
    if text in ("", SKIP, "0"):
        return None, None
    low, _, high = text.partition("-")
    if not low.isdigit() or (high and not high.isdigit()):
        raise ValidationError("Цена должна быть числом, например 5000 или 5000-15000", fields=("price",))
    return int(low), int(high) if high else None


def _optional(text: str | None) -> str | None:
    text = (text or "").strip()
    return None if text in ("", SKIP) else text


async def _my_business(client: AfishaClient) -> Business | None:
    return await client.load(client.queries.my_business())


def _render_dashboard(result):
    text = state_text(result)
    if text:
        return text, back_kb("menu:profile")
    if result.data is None:
        return (
            "🏢 У вас пока нет бизнеса.\nСоздайте его на сайте Афиши, и кабинет появится здесь.",
            back_kb("menu:profile"),
        )
    return formatting.business_dashboard(result.data), business_kb(result.data)


@router.callback_query(F.data == "menu:business")
async def dashboard(callback: CallbackQuery, client: AfishaClient, screens: ScreenManager):
    query = client.queries.my_business()
    if not query.enabled:
        await callback.answer("Войдите в аккаунт", show_alert=True)
        return
    await callback.answer()
    await screens.show(client, callback.message, query, _render_dashboard)


# --- ИИ-идеи ---


@router.callback_query(F.data == "biz:ideas")
async def image_ideas(callback: CallbackQuery, client: AfishaClient, screens: ScreenManager):
    business = await _my_business(client)
    if business is None:
        await callback.answer()
        return

    screens.close(callback.message.chat.id)
    if not plans.has_feature(business.tier, "ai_image_ideas"):
        await callback.answer()
        await callback.message.edit_text(
            formatting.locked_feature_card("ai_image_ideas"),
            reply_markup=back_kb("menu:business"),
        )
        return

    await callback.answer("Подбираю идеи...")
    try:
        ideas = await client.api.image_ideas(
            title=business.name,
            description=business.description,
            category=business.category,
        )
    except ConfigurationError:
        await callback.message.edit_text(
            "✨ ИИ-помощник временно недоступен. Попробуйте позже.",
            reply_markup=back_kb("menu:business"),
        )
        return
    await callback.message.edit_text(formatting.ideas_text(ideas), reply_markup=back_kb("menu:business"))


# --- мои акции ---


def _render_my_promotions(business: Business):
    def render(result):
        text = state_text(result)
        if text:
            return text, back_kb("menu:business")
        promotions = [p for p in result.data or [] if p.business_id == business.id]
        return formatting.promotions_overview(promotions, "🔥 Мои акции"), my_promotions_kb(promotions)

    return render


@router.callback_query(F.data == "biz:promos")
async def my_promotions(callback: CallbackQuery, client: AfishaClient, screens: ScreenManager):
    business = await _my_business(client)
    await callback.answer()
    if business is None:
        return
    query = client.queries.promotions(city_id=business.city_id)
    await screens.show(client, callback.message, query, _render_my_promotions(business))


@router.callback_query(F.data.startswith("promo_pause:") | F.data.startswith("promo_resume:"))
async def promotion_toggle(callback: CallbackQuery, client: AfishaClient):
    action, promotion_id = callback.data.split(":", 1)
    is_active = action == "promo_resume"
    await client.mutations.update_promotion(promotion_id, {"isActive": is_active})
    await callback.answer("Акция снова активна" if is_active else "Акция приостановлена")


@router.callback_query(F.data.startswith("promo_del:"))
async def promotion_delete(callback: CallbackQuery, client: AfishaClient):
    promotion_id = callback.data.split(":", 1)[1]
    await client.mutations.delete_promotion(promotion_id)
    logger.info("Promotion %s deleted by user %s", promotion_id, callback.from_user.id)
    await callback.answer("Акция удалена")


# --- правка и удаление события ---


@router.callback_query(F.data.startswith("del_event:"))
async def event_delete(callback: CallbackQuery, client: AfishaClient, screens: ScreenManager):
    event_id = callback.data.split(":", 1)[1]
    # карточка удалённого события больше не должна перерисовываться
    screens.close(callback.message.chat.id)
    await client.mutations.delete_event(event_id)
    logger.info("Event %s deleted by user %s", event_id, callback.from_user.id)
    await callback.answer("Событие удалено")
    await screens.show(client, callback.message, client.queries.my_business(), _render_dashboard)


@router.callback_query(F.data.startswith("edit_event:"))
async def event_edit_start(callback: CallbackQuery, state: FSMContext):
    await state.set_state(EditEventStates.waiting_title)
    await state.update_data(edit_event_id=callback.data.split(":", 1)[1])
    await callback.answer()
    await callback.message.answer("✏️ Новое название события:", reply_markup=cancel_kb())


@router.message(EditEventStates.waiting_title)
async def event_edit_title(message: Message, client: AfishaClient, state: FSMContext):
    title = (message.text or "").strip()
    if not title:
        await message.answer("Название не может быть пустым.")
        return
    data = await state.get_data()
    await state.set_state(None)
    await state.update_data(edit_event_id=None)

    event = await client.mutations.update_event(data["edit_event_id"], {"title": title})
    logger.info("Event %s renamed by user %s", event.id, message.from_user.id)
    await message.answer(f"✅ Событие переименовано: «{escape(event.title)}».", reply_markup=main_kb())


# --- новое событие ---


@router.callback_query(F.data == "biz:new_event")
async def event_start(callback: CallbackQuery, client: AfishaClient, state: FSMContext):
    business = await _my_business(client)
    if business is None:
        await callback.answer()
        return
    plans.require_post_quota(business)

    await callback.answer()
    await state.set_state(EventStates.waiting_title)
    await callback.message.answer("📝 Название события:", reply_markup=cancel_kb())


@router.message(EventStates.waiting_title)
async def event_title(message: Message, state: FSMContext):
    title = (message.text or "").strip()
    if not title:
        await message.answer("Название не может быть пустым.")
        return
    await state.update_data(event={"title": title})
    await state.set_state(EventStates.waiting_category)
    await message.answer("🏷 Выберите категорию:", reply_markup=categories_kb("newcat"))


@router.callback_query(EventStates.waiting_category, F.data.startswith("newcat:"))
async def event_category(callback: CallbackQuery, state: FSMContext):
    category = callback.data.split(":", 1)[1]
    if category not in EVENT_CATEGORIES:
        await callback.answer()
        return
    data = await state.get_data()
    await state.update_data(event={**data["event"], "category": category})
    await state.set_state(EventStates.waiting_date)
    await callback.answer()
    await callback.message.edit_text("📅 Дата и время, например 25.12.2025 19:00:")


@router.message(EventStates.waiting_date)
async def event_date(message: Message, state: FSMContext):
    date = parse_local_datetime(message.text)
    if date is None:
        await message.answer("Не понял дату. Формат: ДД.ММ.ГГГГ ЧЧ:ММ")
        return
    data = await state.get_data()
    await state.update_data(event={**data["event"], "date": date.isoformat(), "time": date.strftime("%H:%M")})
    await state.set_state(EventStates.waiting_location)
    await message.answer("📍 Место проведения (или «-»):")


@router.message(EventStates.waiting_location)
async def event_location(message: Message, state: FSMContext):
    data = await state.get_data()
    await state.update_data(event={**data["event"], "location": _optional(message.text)})
    await state.set_state(EventStates.waiting_price)
    await message.answer("💰 Цена в тенге: 5000, диапазон 5000-15000 или 0, если вход свободный:")


@router.message(EventStates.waiting_price)
async def event_price(message: Message, state: FSMContext):
    price, max_price = parse_price(message.text)
    data = await state.get_data()
    await state.update_data(
        event={**data["event"], "price": price, "maxPrice": max_price, "isFree": price is None}
    )
    await state.set_state(EventStates.waiting_description)
    await message.answer("📝 Описание (или «-»):")


@router.message(EventStates.waiting_description)
async def event_description(message: Message, state: FSMContext):
    data = await state.get_data()
    await state.update_data(event={**data["event"], "description": _optional(message.text)})
    await state.set_state(EventStates.waiting_image)
    await message.answer("🖼 Пришлите фото афиши, ссылку на изображение или «-»:")


@router.message(EventStates.waiting_image, F.photo)
async def event_image_upload(message: Message, bot: Bot, client: AfishaClient, state: FSMContext):
    photo = message.photo[-1]
    buffer = io.BytesIO()
    await bot.download(photo, destination=buffer)
    try:
        url = await client.api.upload_image(buffer.getvalue(), f"{photo.file_unique_id}.jpg", EVENT_FOLDER)
    except ConfigurationError:
        # загрузка на бэкенде не настроена: остаётся вариант со ссылкой
        await message.answer("Загрузка файлов сейчас недоступна. Пришлите ссылку на изображение или «-».")
        return
    await _finish_event(message, client, state, image=url)


@router.message(EventStates.waiting_image)
async def event_image_url(message: Message, client: AfishaClient, state: FSMContext):
    url = _optional(message.text)
    if url is not None:
        if not url.startswith(("http://", "https://")) or not await client.api.validate_image_url(url):
            await message.answer("Ссылка не похожа на изображение. Пришлите другую или «-».")
            return
    await _finish_event(message, client, state, image=url)


async def _finish_event(message: Message, client: AfishaClient, state: FSMContext, image: str | None):
    data = await state.get_data()
    payload = {**data["event"], "image": image}
    business = await _my_business(client)
    await state.set_state(None)
    await state.update_data(event=None)

    event = await client.mutations.create_event(payload, business=business)
    logger.info("Event %s created by user %s", event.id, message.from_user.id)
    await message.answer(
        f"✅ Событие «{escape(event.title)}» отправлено на модерацию.",
        reply_markup=main_kb(),
    )


# --- новая акция ---


@router.callback_query(F.data == "biz:new_promo")
async def promotion_start(callback: CallbackQuery, client: AfishaClient, state: FSMContext):
    business = await _my_business(client)
    if business is None:
        await callback.answer()
        return
    plans.require_post_quota(business)

    await callback.answer()
    await state.set_state(PromotionStates.waiting_title)
    await callback.message.answer("🔥 Название акции:", reply_markup=cancel_kb())


@router.message(PromotionStates.waiting_title)
async def promotion_title(message: Message, state: FSMContext):
    title = (message.text or "").strip()
    if not title:
        await message.answer("Название не может быть пустым.")
        return
    await state.update_data(promotion={"title": title})
    await state.set_state(PromotionStates.waiting_discount)
    await message.answer("🏷 Скидка, например «-20%» (или «-» без скидки):")


@router.message(PromotionStates.waiting_discount)
async def promotion_discount(message: Message, state: FSMContext):
    text = (message.text or "").strip()
    data = await state.get_data()
    discount = None if text == SKIP else text
    await state.update_data(promotion={**data["promotion"], "discount": discount})
    await state.set_state(PromotionStates.waiting_valid_until)
    await message.answer("⏰ Действует до (ДД.ММ.ГГГГ):")


@router.message(PromotionStates.waiting_valid_until)
async def promotion_valid_until(message: Message, state: FSMContext):
    valid_until = parse_local_datetime(message.text)
    if valid_until is None:
        await message.answer("Не понял дату. Формат: ДД.ММ.ГГГГ")
        return
    if valid_until.hour == 0 and valid_until.minute == 0:
        valid_until = valid_until.replace(hour=23, minute=59)
    data = await state.get_data()
    await state.update_data(promotion={**data["promotion"], "validUntil": valid_until.isoformat()})
    await state.set_state(PromotionStates.waiting_description)
    await message.answer("📝 Условия и описание (или «-»):")


@router.message(PromotionStates.waiting_description)
async def promotion_description(message: Message, client: AfishaClient, state: FSMContext):
    data = await state.get_data()
    payload = {**data["promotion"], "description": _optional(message.text)}
    business = await _my_business(client)
    await state.set_state(None)
    await state.update_data(promotion=None)

    promotion = await client.mutations.create_promotion(payload, business=business)
    logger.info("Promotion %s created by user %s", promotion.id, message.from_user.id)
    await message.answer(f"✅ Акция «{escape(promotion.title)}» опубликована.", reply_markup=main_kb())

"""Ошибки API в обработчиках: показываем пользователю сообщение бэкенда."""
import logging

from aiogram import Router
from aiogram.filters import ExceptionTypeFilter
from aiogram.types import ErrorEvent

from afisha.errors import ApiError, FeatureLockedError, ValidationError

logger = logging.getLogger(__name__)
router = Router()


@router.errors(ExceptionTypeFilter(ApiError))
async def on_api_error(event: ErrorEvent):
    exc = event.exception
    if not isinstance(exc, (ValidationError, FeatureLockedError)):
        logger.warning("API error in update %s: %s", event.update.update_id, exc)

    if event.update.callback_query:
        await event.update.callback_query.answer(f"⚠️ {exc}", show_alert=True)
    elif event.update.message:
        await event.update.message.answer(f"⚠️ {exc}")
    return True

"""Мутации: запись через API и согласование сессии и кэша.

Каждая мутация либо целиком применяет изменения к сессии и кэшу после
успешного ответа сервера, либо (при ошибке) ничего не меняет и
пробрасывает ошибку API как есть. Повторов нет.
"""
import dataclasses
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, TypeVar

from afisha.errors import UnauthorizedError, ValidationError
from afisha.models import (
    AuthResult,
    Business,
    Collaboration,
    Community,
    Event,
    FavoriteStatus,
    Promotion,
)
from afisha.services import plans
from afisha.services.api import AfishaApi
from afisha.services.cache import QueryCache, QueryKey
from afisha.services.queries import PUBLIC_RESOURCES, USER_KEY, VIEWER_SCOPED
from afisha.services.session import SessionStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

EVENT_REQUIRED = {"title": "название", "category": "категория", "date": "дата"}
PROMOTION_REQUIRED = {"title": "название", "validUntil": "срок действия"}


def _require(payload: dict, required: dict[str, str], title: str) -> None:
    missing = tuple(name for name in required if payload.get(name) in (None, ""))
    if missing:
        labels = ", ".join(required[name] for name in missing)
        raise ValidationError(f"{title}: {labels}", fields=missing)


def _serialize(payload: dict) -> dict:
    return {
        k: (v.isoformat() if isinstance(v, datetime) else v)
        for k, v in payload.items()
        if v is not None
    }


def _patch_items(data: Any, item_id: str, patch: Callable[[Any], Any]) -> Any:
    """Применить patch к объекту или к элементу списка с нужным id."""
    if isinstance(data, list):
        return [patch(item) if getattr(item, "id", None) == item_id else item for item in data]
    if getattr(data, "id", None) == item_id:
        return patch(data)
    return data


class Mutations:
    def __init__(
        self,
        api: AfishaApi,
        cache: QueryCache,
        session: SessionStore,
    ):
        self._api = api
        self._cache = cache
        self._session = session

    async def _guarded(self, call: Callable[[], Awaitable[T]]) -> T:
        try:
            return await call()
        except UnauthorizedError:
            if self._session.is_authenticated:
                logger.info("Token rejected by server, signing out")
                await self.logout()
            raise

    def _require_auth(self) -> None:
        if not self._session.is_authenticated:
            raise ValidationError("Войдите в аккаунт, чтобы продолжить", fields=("token",))

    # --- авторизация ---

    async def login(self, email: str, password: str) -> AuthResult:
        email = (email or "").strip()
        missing = tuple(n for n, v in (("email", email), ("password", password)) if not v)
        if missing:
            raise ValidationError("Введите email и пароль", fields=missing)

        result = await self._api.login(email, password)
        await self._sign_in(result)
        return result

    async def register(
        self,
        email: str,
        password: str,
        name: str | None = None,
        phone: str | None = None,
    ) -> AuthResult:
        email = (email or "").strip()
        missing = tuple(n for n, v in (("email", email), ("password", password)) if not v)
        if missing:
            raise ValidationError("Введите email и пароль", fields=missing)
        if len(password) < 6:
            raise ValidationError("Пароль должен быть не короче 6 символов", fields=("password",))

        result = await self._api.register(email, password, name=name, phone=phone)
        await self._sign_in(result)
        return result

    async def _sign_in(self, result: AuthResult) -> None:
        # сначала сохраняем, потом трогаем кэш: если запись в хранилище
        # упала, состояние вкладки не меняется
        await self._session.set(result)
        self._cache.set_data(USER_KEY, result.user)
        for prefix in VIEWER_SCOPED:
            self._cache.reset(prefix)

    async def logout(self) -> None:
        await self._session.clear()
        self._cache.set_data(USER_KEY, None)
        for prefix in VIEWER_SCOPED:
            self._cache.reset(prefix)
        for prefix in PUBLIC_RESOURCES:
            self._cache.invalidate(prefix)

    # --- избранное ---

    async def toggle_favorite(self, event_id: str) -> bool:
        self._require_auth()
        status = await self._guarded(lambda: self._api.toggle_favorite(event_id))
        user_id = self._session.user_id
        self._cache.set_data(
            QueryKey.of("favorite", event_id, user_id),
            FavoriteStatus(is_favorite=status.is_favorite, favorite_id=status.favorite_id),
        )
        self._cache.invalidate(("event", event_id))
        self._cache.invalidate(("favorites",))
        return status.is_favorite

    # --- сообщества ---

    async def join_community(self, community_id: str) -> None:
        self._require_auth()
        await self._guarded(lambda: self._api.join_community(community_id))
        self._patch_membership(community_id, is_member=True)

    async def leave_community(self, community_id: str) -> None:
        self._require_auth()
        await self._guarded(lambda: self._api.leave_community(community_id))
        self._patch_membership(community_id, is_member=False)

    def _patch_membership(self, community_id: str, is_member: bool) -> None:
        def patch(community: Community) -> Community:
            if community.is_member == is_member:
                return community
            delta = 1 if is_member else -1
            return dataclasses.replace(
                community,
                is_member=is_member,
                members_count=max(community.members_count + delta, 0),
            )

        updater = lambda data: _patch_items(data, community_id, patch)  # noqa: E731
        self._cache.update_data(("communities",), updater)
        self._cache.update_data(("community", community_id), updater)

    # --- коллаборации ---

    async def respond_to_collaboration(self, collab_id: str, message: str) -> None:
        self._require_auth()
        message = (message or "").strip()
        if not message:
            raise ValidationError("Напишите сообщение для отклика", fields=("message",))

        await self._guarded(lambda: self._api.respond_to_collaboration(collab_id, message))

        def patch(collab: Collaboration) -> Collaboration:
            if collab.has_responded:
                return collab
            return dataclasses.replace(
                collab,
                has_responded=True,
                response_count=collab.response_count + 1,
            )

        updater = lambda data: _patch_items(data, collab_id, patch)  # noqa: E731
        self._cache.update_data(("collaborations",), updater)
        self._cache.update_data(("collaboration", collab_id), updater)

    # --- публикации бизнеса ---

    def _check_quota(self, business: Business | None) -> None:
        if business is not None:
            plans.require_post_quota(business)

    def _after_publication(self) -> None:
        self._cache.invalidate(("business",))
        self._cache.invalidate(("admin",))

    async def create_event(self, payload: dict, business: Business | None = None) -> Event:
        self._require_auth()
        _require(payload, EVENT_REQUIRED, "Заполните обязательные поля")
        self._check_quota(business)
        if business is not None:
            payload = {"businessId": business.id, "cityId": business.city_id, **payload}

        event = await self._guarded(lambda: self._api.create_event(_serialize(payload)))
        self._cache.invalidate(("events",))
        self._after_publication()
        return event

    async def update_event(self, event_id: str, payload: dict) -> Event:
        self._require_auth()
        event = await self._guarded(lambda: self._api.update_event(event_id, _serialize(payload)))
        self._cache.set_data(QueryKey.of("event", event_id), event)
        self._cache.invalidate(("events",))
        self._after_publication()
        return event

    async def delete_event(self, event_id: str) -> None:
        self._require_auth()
        await self._guarded(lambda: self._api.delete_event(event_id))
        self._cache.remove(("event", event_id))
        self._cache.remove(("favorite", event_id))
        self._cache.invalidate(("events",))
        self._cache.invalidate(("favorites",))
        self._after_publication()

    async def create_promotion(self, payload: dict, business: Business | None = None) -> Promotion:
        self._require_auth()
        _require(payload, PROMOTION_REQUIRED, "Заполните обязательные поля")
        self._check_quota(business)
        if business is not None:
            payload = {"businessId": business.id, "cityId": business.city_id, **payload}

        promotion = await self._guarded(lambda: self._api.create_promotion(_serialize(payload)))
        self._cache.invalidate(("promotions",))
        self._after_publication()
        return promotion

    async def update_promotion(self, promotion_id: str, payload: dict) -> Promotion:
        self._require_auth()
        promotion = await self._guarded(
            lambda: self._api.update_promotion(promotion_id, _serialize(payload))
        )
        self._cache.invalidate(("promotions",))
        self._after_publication()
        return promotion

    async def delete_promotion(self, promotion_id: str) -> None:
        self._require_auth()
        await self._guarded(lambda: self._api.delete_promotion(promotion_id))
        self._cache.invalidate(("promotions",))
        self._after_publication()

    # --- модерация ---

    async def approve_event(self, event_id: str) -> None:
        self._require_auth()
        await self._guarded(lambda: self._api.approve_event(event_id))
        self._after_moderation(event_id)

    async def reject_event(self, event_id: str) -> None:
        self._require_auth()
        await self._guarded(lambda: self._api.reject_event(event_id))
        self._after_moderation(event_id)

    def _after_moderation(self, event_id: str) -> None:
        self._cache.invalidate(("admin", "events"))
        self._cache.invalidate(("admin", "stats"))
        self._cache.invalidate(("event", event_id))
        self._cache.invalidate(("events",))

    async def verify_business(self, business_id: str) -> None:
        self._require_auth()
        await self._guarded(lambda: self._api.verify_business(business_id))
        self._cache.invalidate(("admin", "businesses"))
        self._cache.invalidate(("admin", "stats"))
        self._cache.invalidate(("businesses",))

    async def moderate_promotion(self, promotion_id: str, is_active: bool) -> Promotion:
        """Скрыть акцию из каталога или вернуть её."""
        self._require_auth()
        promotion = await self._guarded(
            lambda: self._api.moderate_promotion(promotion_id, is_active)
        )
        self._cache.invalidate(("admin", "promotions"))
        self._cache.invalidate(("promotions",))
        return promotion

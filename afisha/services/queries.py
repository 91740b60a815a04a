"""Описания запросов: ключ кэша, загрузчик и окно свежести для каждого ресурса."""
import logging
import math

from afisha.config import Config
from afisha.errors import ApiError
from afisha.models import FavoriteStatus
from afisha.services.api import AfishaApi
from afisha.services.cache import Query, QueryKey
from afisha.services.session import SessionStore

logger = logging.getLogger(__name__)

USER_KEY = QueryKey.of("user")

# Данные, зависящие от того, кто смотрит (isFavorite, isMember, hasResponded,
# свой бизнес, модерация). При смене пользователя их нельзя показывать.
VIEWER_SCOPED = (
    ("favorite",),
    ("favorites",),
    ("communities",),
    ("community",),
    ("collaborations",),
    ("collaboration",),
    ("business",),
    ("admin",),
)

PUBLIC_RESOURCES = (
    ("cities",),
    ("city",),
    ("events",),
    ("event",),
    ("businesses",),
    ("promotions",),
)


class Queries:
    def __init__(self, api: AfishaApi, session: SessionStore, config: Config):
        self._api = api
        self._session = session
        self._config = config

    # --- справочники ---

    def cities(self) -> Query:
        return Query(
            key=QueryKey.of("cities"),
            fetcher=self._api.cities,
            stale_time=self._config.REFERENCE_STALE_TIME,
        )

    def city(self, slug: str | None) -> Query:
        return Query(
            key=QueryKey.of("city", slug),
            fetcher=lambda: self._api.city(slug),
            stale_time=self._config.REFERENCE_STALE_TIME,
            enabled=bool(slug),
        )

    # --- события ---

    def events(
        self,
        city_id: str | None = None,
        category: str | None = None,
        featured: bool | None = None,
    ) -> Query:
        params = {"cityId": city_id, "category": category, "featured": featured or None}
        return Query(
            key=QueryKey.of("events", params),
            fetcher=lambda: self._api.events(city_id=city_id, category=category, featured=featured),
            stale_time=self._config.LIST_STALE_TIME,
        )

    def event(self, event_id: str) -> Query:
        return Query(
            key=QueryKey.of("event", event_id),
            fetcher=lambda: self._api.event(event_id),
            stale_time=self._config.DETAIL_STALE_TIME,
            enabled=bool(event_id),
        )

    def favorite(self, event_id: str) -> Query:
        """Проверка «в избранном ли событие» для текущего зрителя.

        Для анонимного зрителя запрос выключен. Ошибка проверки не
        показывается пользователю: кнопка просто остаётся в состоянии
        «не в избранном».
        """
        user_id = self._session.user_id

        async def check() -> FavoriteStatus:
            try:
                return await self._api.favorite_status(event_id)
            except ApiError as exc:
                logger.debug("Favorite check for %s failed quietly: %s", event_id, exc)
                return FavoriteStatus(is_favorite=False)

        return Query(
            key=QueryKey.of("favorite", event_id, user_id),
            fetcher=check,
            # toggle пишет ответ сервера в эту же запись
            stale_time=self._config.LIST_STALE_TIME,
            enabled=user_id is not None,
        )

    def favorite_events(self) -> Query:
        user_id = self._session.user_id
        return Query(
            key=QueryKey.of("favorites", user_id),
            fetcher=self._api.favorite_events,
            stale_time=self._config.LIST_STALE_TIME,
            enabled=user_id is not None,
        )

    # --- бизнесы и акции ---

    def businesses(self, city_id: str | None = None, category: str | None = None) -> Query:
        return Query(
            key=QueryKey.of("businesses", {"cityId": city_id, "category": category}),
            fetcher=lambda: self._api.businesses(city_id=city_id, category=category),
            stale_time=self._config.LIST_STALE_TIME,
        )

    def my_business(self) -> Query:
        user_id = self._session.user_id
        return Query(
            key=QueryKey.of("business", "me", user_id),
            fetcher=self._api.my_business,
            stale_time=self._config.LIST_STALE_TIME,
            enabled=user_id is not None,
        )

    def promotions(self, city_id: str | None = None, active: bool | None = None) -> Query:
        return Query(
            key=QueryKey.of("promotions", {"cityId": city_id, "active": active or None}),
            fetcher=lambda: self._api.promotions(city_id=city_id, active=active),
            stale_time=self._config.LIST_STALE_TIME,
        )

    # --- сообщества ---

    def communities(self, city_id: str | None = None) -> Query:
        return Query(
            key=QueryKey.of("communities", {"cityId": city_id}),
            fetcher=lambda: self._api.communities(city_id=city_id),
            stale_time=self._config.LIST_STALE_TIME,
        )

    def community(self, community_id: str) -> Query:
        return Query(
            key=QueryKey.of("community", community_id),
            fetcher=lambda: self._api.community(community_id),
            stale_time=self._config.DETAIL_STALE_TIME,
        )

    def collaborations(self, city_id: str | None = None, status: str | None = None) -> Query:
        return Query(
            key=QueryKey.of("collaborations", {"cityId": city_id, "status": status}),
            fetcher=lambda: self._api.collaborations(city_id=city_id, status=status),
            stale_time=self._config.LIST_STALE_TIME,
        )

    def collaboration(self, collab_id: str) -> Query:
        return Query(
            key=QueryKey.of("collaboration", collab_id),
            fetcher=lambda: self._api.collaboration(collab_id),
            stale_time=self._config.DETAIL_STALE_TIME,
        )

    # --- пользователь ---

    def current_user(self) -> Query:
        async def from_session():
            return self._session.user

        return Query(key=USER_KEY, fetcher=from_session, stale_time=math.inf)

    # --- модерация ---

    def admin_stats(self) -> Query:
        return Query(
            key=QueryKey.of("admin", "stats"),
            fetcher=self._api.admin_stats,
            stale_time=self._config.ADMIN_STALE_TIME,
            enabled=self._session.is_authenticated,
        )

    def admin_events(self, status: str | None = "pending") -> Query:
        return Query(
            key=QueryKey.of("admin", "events", {"status": status}),
            fetcher=lambda: self._api.admin_events(status=status),
            stale_time=self._config.ADMIN_STALE_TIME,
            enabled=self._session.is_authenticated,
        )

    def admin_businesses(self, verified: bool | None = None) -> Query:
        return Query(
            key=QueryKey.of("admin", "businesses", {"verified": verified}),
            fetcher=lambda: self._api.admin_businesses(verified=verified),
            stale_time=self._config.ADMIN_STALE_TIME,
            enabled=self._session.is_authenticated,
        )

    def admin_promotions(self) -> Query:
        return Query(
            key=QueryKey.of("admin", "promotions"),
            fetcher=self._api.admin_promotions,
            stale_time=self._config.ADMIN_STALE_TIME,
            enabled=self._session.is_authenticated,
        )

"""HTTP-клиент API Афиши: каждый вызов делает ровно один запрос."""
import asyncio
import logging
from typing import Any, Callable, Type, TypeVar

import aiohttp

from afisha.errors import (
    ApiError,
    ConfigurationError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
)
from afisha.models import (
    AuthResult,
    Business,
    City,
    Collaboration,
    Community,
    Event,
    FavoriteStatus,
    ImageIdea,
    Promotion,
    UploadConfig,
    User,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

TokenProvider = Callable[[], "str | None"]


def _clean_params(params: dict | None) -> dict | None:
    if not params:
        return None
    cleaned = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        cleaned[key] = str(value)
    return cleaned or None


def _error_message(payload: Any, fallback: str) -> str:
    if isinstance(payload, dict):
        for field in ("message", "error"):
            value = payload.get(field)
            if isinstance(value, str) and value:
                return value
    return fallback


class AfishaApi:
    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider | None = None,
        timeout: float = 15.0,
        http: aiohttp.ClientSession | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._token_provider = token_provider or (lambda: None)
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._http = http
        self._owns_http = http is None

    async def _get_http(self) -> aiohttp.ClientSession:
        if self._http is None or self._http.closed:
            self._http = aiohttp.ClientSession()
            self._owns_http = True
        return self._http

    async def close(self) -> None:
        if self._owns_http and self._http is not None and not self._http.closed:
            await self._http.close()

    def _headers(self, auth: bool) -> dict:
        headers = {"Accept": "application/json"}
        token = self._token_provider() if auth else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        fallback: str,
        *,
        params: dict | None = None,
        json: Any = None,
        data: Any = None,
        auth: bool = True,
        service: str | None = None,
    ) -> Any:
        url = path if path.startswith("http") else f"{self._base_url}{path}"
        try:
            http = await self._get_http()
            async with http.request(
                method,
                url,
                params=_clean_params(params),
                json=json,
                data=data,
                headers=self._headers(auth),
                timeout=self._timeout,
            ) as resp:
                if not 200 <= resp.status < 300:
                    try:
                        payload = await resp.json(content_type=None)
                    except ValueError:
                        payload = None
                    message = _error_message(payload, fallback)
                    logger.warning("%s %s -> HTTP %d: %s", method, path, resp.status, message)
                    if resp.status == 401:
                        raise UnauthorizedError(message, resp.status, payload)
                    if resp.status == 403:
                        raise ForbiddenError(message, resp.status, payload)
                    if resp.status == 404:
                        raise NotFoundError(message, resp.status, payload)
                    if resp.status == 503 and service:
                        raise ConfigurationError(message, resp.status, payload)
                    raise ApiError(message, resp.status, payload)

                if resp.status == 204:
                    return None
                try:
                    return await resp.json(content_type=None)
                except ValueError as exc:
                    logger.warning("%s %s -> malformed JSON", method, path)
                    raise ApiError(fallback, resp.status) from exc

        except asyncio.TimeoutError as exc:
            logger.warning("%s %s -> timeout", method, path)
            raise ApiError("Сервер не ответил вовремя. Попробуйте ещё раз", None) from exc
        except aiohttp.ClientError as exc:
            logger.warning("%s %s -> %s", method, path, exc.__class__.__name__)
            raise ApiError("Нет соединения с сервером", None) from exc

    @staticmethod
    def _parse(model: Type[T], payload: Any, fallback: str) -> T:
        try:
            return model.from_api(payload)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ApiError(fallback) from exc

    @classmethod
    def _parse_list(cls, model: Type[T], payload: Any, fallback: str) -> list[T]:
        if not isinstance(payload, list):
            raise ApiError(fallback)
        return [cls._parse(model, item, fallback) for item in payload]

    # --- города ---

    async def cities(self) -> list[City]:
        msg = "Не удалось загрузить города"
        return self._parse_list(City, await self._request("GET", "/cities", msg), msg)

    async def city(self, slug: str) -> City:
        msg = "Не удалось загрузить город"
        return self._parse(City, await self._request("GET", f"/cities/{slug}", msg), msg)

    # --- события ---

    async def events(
        self,
        city_id: str | None = None,
        category: str | None = None,
        featured: bool | None = None,
        is_free: bool | None = None,
        from_date: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[Event]:
        msg = "Не удалось загрузить события"
        params = {
            "cityId": city_id,
            "category": category,
            "featured": featured or None,
            "isFree": is_free,
            "fromDate": from_date,
            "limit": limit,
            "offset": offset,
        }
        payload = await self._request("GET", "/events", msg, params=params)
        return self._parse_list(Event, payload, msg)

    async def event(self, event_id: str) -> Event:
        msg = "Не удалось загрузить событие"
        return self._parse(Event, await self._request("GET", f"/events/{event_id}", msg), msg)

    # --- избранное ---

    async def favorite_status(self, event_id: str) -> FavoriteStatus:
        msg = "Не удалось проверить избранное"
        payload = await self._request("GET", "/favorites/check", msg, params={"eventId": event_id})
        return self._parse(FavoriteStatus, payload, msg)

    async def toggle_favorite(self, event_id: str) -> FavoriteStatus:
        msg = "Не удалось обновить избранное"
        payload = await self._request("POST", "/favorites/toggle", msg, json={"eventId": event_id})
        return self._parse(FavoriteStatus, payload, msg)

    async def favorite_events(self) -> list[Event]:
        msg = "Не удалось загрузить избранное"
        payload = await self._request("GET", "/favorites/events", msg)
        if isinstance(payload, dict):
            payload = [item.get("event", item) for item in payload.get("favorites", [])]
        return self._parse_list(Event, payload, msg)

    # --- бизнесы и акции ---

    async def businesses(self, city_id: str | None = None, category: str | None = None) -> list[Business]:
        msg = "Не удалось загрузить каталог"
        payload = await self._request(
            "GET", "/businesses", msg, params={"cityId": city_id, "category": category}
        )
        return self._parse_list(Business, payload, msg)

    async def business(self, business_id: str) -> Business:
        msg = "Не удалось загрузить бизнес"
        return self._parse(Business, await self._request("GET", f"/businesses/{business_id}", msg), msg)

    async def my_business(self) -> Business | None:
        msg = "Не удалось загрузить ваш бизнес"
        try:
            payload = await self._request("GET", "/business/me", msg)
        except NotFoundError:
            return None
        return self._parse(Business, payload, msg)

    async def promotions(self, city_id: str | None = None, active: bool | None = None) -> list[Promotion]:
        msg = "Не удалось загрузить акции"
        payload = await self._request(
            "GET", "/promotions", msg, params={"cityId": city_id, "active": active or None}
        )
        return self._parse_list(Promotion, payload, msg)

    # --- сообщества и коллаборации ---

    async def communities(self, city_id: str | None = None) -> list[Community]:
        msg = "Не удалось загрузить сообщества"
        payload = await self._request("GET", "/communities", msg, params={"cityId": city_id})
        return self._parse_list(Community, payload, msg)

    async def community(self, community_id: str) -> Community:
        msg = "Не удалось загрузить сообщество"
        return self._parse(Community, await self._request("GET", f"/communities/{community_id}", msg), msg)

    async def join_community(self, community_id: str) -> None:
        await self._request("POST", f"/communities/{community_id}/join", "Не удалось вступить в сообщество")

    async def leave_community(self, community_id: str) -> None:
        await self._request("POST", f"/communities/{community_id}/leave", "Не удалось выйти из сообщества")

    async def collaborations(self, city_id: str | None = None, status: str | None = None) -> list[Collaboration]:
        msg = "Не удалось загрузить коллаборации"
        payload = await self._request(
            "GET", "/collaborations", msg, params={"cityId": city_id, "status": status}
        )
        return self._parse_list(Collaboration, payload, msg)

    async def collaboration(self, collab_id: str) -> Collaboration:
        msg = "Не удалось загрузить коллаборацию"
        payload = await self._request("GET", f"/collaborations/{collab_id}", msg)
        return self._parse(Collaboration, payload, msg)

    async def respond_to_collaboration(self, collab_id: str, message: str) -> None:
        await self._request(
            "POST",
            f"/collaborations/{collab_id}/respond",
            "Не удалось отправить отклик",
            json={"message": message},
        )

    # --- авторизация ---

    async def login(self, email: str, password: str) -> AuthResult:
        msg = "Не удалось войти"
        payload = await self._request(
            "POST", "/auth/login", msg, json={"email": email, "password": password}, auth=False
        )
        return self._parse(AuthResult, payload, msg)

    async def register(
        self,
        email: str,
        password: str,
        name: str | None = None,
        phone: str | None = None,
    ) -> AuthResult:
        msg = "Не удалось зарегистрироваться"
        body = {"email": email, "password": password}
        if name:
            body["name"] = name
        if phone:
            body["phone"] = phone
        payload = await self._request("POST", "/auth/register", msg, json=body, auth=False)
        return self._parse(AuthResult, payload, msg)

    async def me(self) -> User:
        msg = "Не удалось загрузить профиль"
        payload = await self._request("GET", "/auth/me", msg)
        if isinstance(payload, dict) and "user" in payload:
            payload = payload["user"]
        return self._parse(User, payload, msg)

    # --- публикации бизнеса ---

    async def create_event(self, payload: dict) -> Event:
        msg = "Не удалось создать событие"
        return self._parse(Event, await self._request("POST", "/business/events", msg, json=payload), msg)

    async def update_event(self, event_id: str, payload: dict) -> Event:
        msg = "Не удалось сохранить событие"
        data = await self._request("PUT", f"/business/events/{event_id}", msg, json=payload)
        return self._parse(Event, data, msg)

    async def delete_event(self, event_id: str) -> None:
        await self._request("DELETE", f"/business/events/{event_id}", "Не удалось удалить событие")

    async def create_promotion(self, payload: dict) -> Promotion:
        msg = "Не удалось создать акцию"
        data = await self._request("POST", "/business/promotions", msg, json=payload)
        return self._parse(Promotion, data, msg)

    async def update_promotion(self, promotion_id: str, payload: dict) -> Promotion:
        msg = "Не удалось сохранить акцию"
        data = await self._request("PUT", f"/business/promotions/{promotion_id}", msg, json=payload)
        return self._parse(Promotion, data, msg)

    async def delete_promotion(self, promotion_id: str) -> None:
        await self._request("DELETE", f"/business/promotions/{promotion_id}", "Не удалось удалить акцию")

    # --- загрузка изображений ---

    async def upload_config(self, folder: str = "afisha/general") -> UploadConfig:
        msg = "Загрузка изображений временно недоступна"
        payload = await self._request(
            "GET", "/upload/config", msg, params={"folder": folder}, service="upload"
        )
        if not isinstance(payload, dict) or not payload.get("cloudName") or not payload.get("url"):
            raise ConfigurationError(msg)
        return self._parse(UploadConfig, payload, msg)

    async def upload_image(self, content: bytes, filename: str, folder: str = "afisha/general") -> str:
        """Загрузить файл напрямую в хранилище изображений, вернуть URL."""
        config = await self.upload_config(folder)

        form = aiohttp.FormData()
        form.add_field("file", content, filename=filename)
        form.add_field("folder", config.folder)
        if config.is_signed:
            form.add_field("api_key", config.api_key)
            form.add_field("timestamp", str(config.timestamp))
            form.add_field("signature", config.signature)
        elif config.upload_preset:
            form.add_field("upload_preset", config.upload_preset)

        msg = "Не удалось загрузить изображение"
        payload = await self._request("POST", config.url, msg, data=form, auth=False, service="upload")
        url = payload.get("secure_url") if isinstance(payload, dict) else None
        if not url:
            raise ApiError(msg)
        return url

    async def validate_image_url(self, url: str) -> bool:
        msg = "Не удалось проверить ссылку"
        payload = await self._request("POST", "/upload/validate", msg, json={"url": url})
        return bool(isinstance(payload, dict) and payload.get("valid"))

    # --- ИИ ---

    async def image_ideas(
        self,
        title: str | None = None,
        description: str | None = None,
        category: str | None = None,
        date: str | None = None,
        location: str | None = None,
    ) -> list[ImageIdea]:
        msg = "Не удалось загрузить идеи"
        body = {
            k: v
            for k, v in {
                "title": title,
                "description": description,
                "category": category,
                "date": date,
                "location": location,
            }.items()
            if v
        }
        payload = await self._request("POST", "/ai/image-ideas", msg, json=body, service="ai")
        ideas = payload.get("ideas") if isinstance(payload, dict) else None
        return self._parse_list(ImageIdea, ideas, msg)

    # --- модерация ---

    async def admin_stats(self) -> dict:
        payload = await self._request("GET", "/admin/stats", "Не удалось загрузить статистику")
        if not isinstance(payload, dict):
            raise ApiError("Не удалось загрузить статистику")
        return payload

    async def admin_events(self, status: str | None = None) -> list[Event]:
        msg = "Не удалось загрузить события на модерации"
        payload = await self._request("GET", "/admin/events", msg, params={"status": status})
        if isinstance(payload, dict):
            payload = payload.get("events")
        return self._parse_list(Event, payload, msg)

    async def approve_event(self, event_id: str) -> None:
        await self._request("PATCH", f"/admin/events/{event_id}/approve", "Не удалось одобрить событие")

    async def reject_event(self, event_id: str) -> None:
        await self._request("PATCH", f"/admin/events/{event_id}/reject", "Не удалось отклонить событие")

    async def admin_businesses(self, verified: bool | None = None) -> list[Business]:
        msg = "Не удалось загрузить бизнесы"
        payload = await self._request("GET", "/admin/businesses", msg, params={"verified": verified})
        if isinstance(payload, dict):
            payload = payload.get("businesses")
        return self._parse_list(Business, payload, msg)

    async def verify_business(self, business_id: str) -> None:
        await self._request("PATCH", f"/admin/businesses/{business_id}/verify", "Не удалось верифицировать бизнес")

    async def admin_promotions(self) -> list[Promotion]:
        msg = "Не удалось загрузить акции"
        payload = await self._request("GET", "/admin/promotions", msg)
        if isinstance(payload, dict):
            payload = payload.get("promotions")
        return self._parse_list(Promotion, payload, msg)

    async def moderate_promotion(self, promotion_id: str, is_active: bool) -> Promotion:
        msg = "Не удалось обновить акцию"
        data = await self._request(
            "PATCH", f"/admin/promotions/{promotion_id}", msg, json={"isActive": is_active}
        )
        return self._parse(Promotion, data, msg)

import os
import sys
from collections import Counter
from datetime import datetime, timedelta, timezone

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

HERE = os.path.dirname(__file__)
ROOT = os.path.abspath(os.path.join(HERE, ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from afisha.config import Config
from afisha.services.client import AfishaClient
from afisha.storage import MemoryStorage


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _iso(days: int) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


USERS = {
    "aida@example.kz": {
        "password": "secret1",
        "token": "token-aida",
        "user": {"id": "u1", "email": "aida@example.kz", "name": "Аида", "role": "user"},
    },
    "marat@example.kz": {
        "password": "secret2",
        "token": "token-marat",
        "user": {"id": "u2", "email": "marat@example.kz", "name": "Марат", "role": "business"},
    },
    "lena@example.kz": {
        "password": "secret3",
        "token": "token-lena",
        "user": {"id": "u3", "email": "lena@example.kz", "name": "Лена", "role": "moderator"},
    },
}


class Backend:
    """Бэкенд-двойник: данные в памяти, счётчик запросов."""

    def __init__(self):
        self.calls: Counter = Counter()
        self.params: dict[str, dict] = {}
        self.favorites: dict[str, set[str]] = {"u1": {"e1"}}
        self.members: dict[str, set[str]] = {"c1": {"u1"}}
        self.upload_configured = False
        self.business_tier = "free"
        self.posts_this_month = 0
        self.cities = [
            {"id": "1", "name": "Алматы", "slug": "almaty"},
            {"id": "2", "name": "Астана", "slug": "astana"},
        ]
        self.events = [
            {
                "id": "e1",
                "title": "Джазовый вечер",
                "category": "concerts",
                "date": _iso(2),
                "location": "Дворец Республики",
                "price": 5000,
                "maxPrice": 15000,
                "cityId": "1",
                "businessId": "b1",
                "isApproved": True,
            },
            {
                "id": "e2",
                "title": "Лекция о космосе",
                "category": "education",
                "date": _iso(5),
                "isFree": True,
                "cityId": "1",
                "isApproved": True,
            },
            {
                "id": "e3",
                "title": "Марафон Астаны",
                "category": "sports",
                "date": _iso(10),
                "price": 3000,
                "cityId": "2",
                "isApproved": True,
            },
        ]
        self.pending_events = [
            {
                "id": "e4",
                "title": "Ночь кино",
                "category": "other",
                "date": _iso(7),
                "cityId": "1",
                "status": "pending",
            },
        ]
        self.collaborations = [
            {"id": "k1", "title": "Ищем фотографа", "category": "photo", "responseCount": 2},
        ]
        self.responses: dict[str, set[str]] = {}
        self.businesses = [
            {"id": "b1", "name": "Кофейня Марата", "category": "cafe", "tier": "free", "isVerified": False},
            {"id": "b2", "name": "Книжный дом", "category": "shop", "tier": "lite", "isVerified": True},
        ]
        self.promotions = [
            {
                "id": "p1",
                "businessId": "b1",
                "title": "Второй кофе в подарок",
                "validUntil": _iso(10),
                "cityId": "1",
                "isActive": True,
            },
            {
                "id": "p2",
                "businessId": "b2",
                "title": "Скидка на детективы",
                "validUntil": _iso(3),
                "cityId": "1",
                "isActive": True,
            },
        ]

    def user_for(self, request: web.Request) -> dict | None:
        header = request.headers.get("Authorization", "")
        token = header.removeprefix("Bearer ").strip()
        for account in USERS.values():
            if account["token"] == token:
                return account["user"]
        return None

    def require_user(self, request: web.Request) -> dict:
        user = self.user_for(request)
        if user is None:
            raise web.HTTPUnauthorized(
                text='{"message": "Требуется авторизация"}',
                content_type="application/json",
            )
        return user

    def require_moderator(self, request: web.Request) -> dict:
        user = self.require_user(request)
        if user["role"] not in ("moderator", "admin"):
            raise web.HTTPForbidden(
                text='{"error": "Доступ запрещен"}',
                content_type="application/json",
            )
        return user

    def require_owner(self, request: web.Request, items: list[dict]) -> dict:
        user = self.require_user(request)
        for item in items:
            if item["id"] == request.match_info["id"]:
                if user["role"] != "business" or item.get("businessId") != "b1":
                    raise web.HTTPForbidden(
                        text='{"error": "Это не ваша публикация"}',
                        content_type="application/json",
                    )
                return item
        raise web.HTTPNotFound(
            text='{"message": "Публикация не найдена"}',
            content_type="application/json",
        )

    def app(self) -> web.Application:
        @web.middleware
        async def count(request, handler):
            self.calls[f"{request.method} {request.path}"] += 1
            self.params[request.path] = dict(request.query)
            return await handler(request)

        app = web.Application(middlewares=[count])
        app.router.add_get("/cities", self.get_cities)
        app.router.add_get("/cities/{slug}", self.get_city)
        app.router.add_get("/events", self.get_events)
        app.router.add_get("/events/{id}", self.get_event)
        app.router.add_get("/favorites/check", self.check_favorite)
        app.router.add_post("/favorites/toggle", self.toggle_favorite)
        app.router.add_get("/favorites/events", self.favorite_events)
        app.router.add_post("/auth/login", self.login)
        app.router.add_post("/auth/register", self.register)
        app.router.add_get("/communities", self.get_communities)
        app.router.add_post("/communities/{id}/join", self.join)
        app.router.add_get("/collaborations", self.get_collaborations)
        app.router.add_post("/collaborations/{id}/respond", self.respond)
        app.router.add_get("/admin/events", self.admin_events)
        app.router.add_patch("/admin/events/{id}/approve", self.approve)
        app.router.add_get("/promotions", self.get_promotions)
        app.router.add_post("/business/events", self.create_event)
        app.router.add_put("/business/events/{id}", self.update_event)
        app.router.add_delete("/business/events/{id}", self.delete_event)
        app.router.add_put("/business/promotions/{id}", self.update_promotion)
        app.router.add_delete("/business/promotions/{id}", self.delete_promotion)
        app.router.add_get("/admin/stats", self.admin_stats)
        app.router.add_get("/admin/businesses", self.admin_businesses)
        app.router.add_patch("/admin/businesses/{id}/verify", self.verify_business)
        app.router.add_get("/admin/promotions", self.admin_promotions)
        app.router.add_patch("/admin/promotions/{id}", self.moderate_promotion)
        app.router.add_get("/business/me", self.my_business)
        app.router.add_get("/upload/config", self.upload_config)
        app.router.add_post("/ai/image-ideas", self.image_ideas)
        app.router.add_get("/broken", self.broken)
        return app

    async def get_cities(self, request):
        return web.json_response(self.cities)

    async def get_city(self, request):
        for city in self.cities:
            if city["slug"] == request.match_info["slug"]:
                return web.json_response(city)
        return web.json_response({"message": "Город не найден"}, status=404)

    async def get_events(self, request):
        events = self.events
        if "cityId" in request.query:
            events = [e for e in events if e["cityId"] == request.query["cityId"]]
        if "category" in request.query:
            events = [e for e in events if e["category"] == request.query["category"]]
        return web.json_response(events)

    async def get_event(self, request):
        for event in self.events:
            if event["id"] == request.match_info["id"]:
                saves = sum(event["id"] in favs for favs in self.favorites.values())
                return web.json_response({**event, "savesCount": saves})
        return web.json_response({"message": "Событие не найдено"}, status=404)

    async def check_favorite(self, request):
        user = self.require_user(request)
        event_id = request.query["eventId"]
        return web.json_response({"isFavorite": event_id in self.favorites.get(user["id"], set())})

    async def toggle_favorite(self, request):
        user = self.require_user(request)
        body = await request.json()
        favs = self.favorites.setdefault(user["id"], set())
        event_id = body["eventId"]
        if event_id in favs:
            favs.discard(event_id)
            return web.json_response({"isFavorite": False})
        favs.add(event_id)
        return web.json_response({"isFavorite": True, "favoriteId": f"f-{event_id}"})

    async def favorite_events(self, request):
        user = self.require_user(request)
        favs = self.favorites.get(user["id"], set())
        return web.json_response({"favorites": [{"event": e} for e in self.events if e["id"] in favs]})

    async def login(self, request):
        body = await request.json()
        account = USERS.get(body.get("email"))
        if account is None or account["password"] != body.get("password"):
            return web.json_response({"message": "Неверный email или пароль"}, status=401)
        return web.json_response({"token": account["token"], "user": account["user"]})

    async def register(self, request):
        body = await request.json()
        if body["email"] in USERS:
            return web.json_response({"error": "Пользователь уже существует"}, status=409)
        user = {"id": "u9", "email": body["email"], "name": body.get("name"), "role": "user"}
        return web.json_response({"token": "token-new", "user": user}, status=201)

    async def get_communities(self, request):
        user = self.user_for(request)
        members = self.members.get("c1", set())
        return web.json_response([
            {
                "id": "c1",
                "name": "Бегуны Алматы",
                "membersCount": len(members),
                "isMember": bool(user and user["id"] in members),
            }
        ])

    async def join(self, request):
        user = self.require_user(request)
        self.members.setdefault(request.match_info["id"], set()).add(user["id"])
        return web.json_response({"success": True})

    async def get_collaborations(self, request):
        user = self.user_for(request)
        result = []
        for collab in self.collaborations:
            responded = self.responses.get(collab["id"], set())
            result.append({
                **collab,
                "responseCount": collab["responseCount"] + len(responded),
                "hasResponded": bool(user and user["id"] in responded),
            })
        return web.json_response(result)

    async def respond(self, request):
        user = self.require_user(request)
        body = await request.json()
        if not body.get("message"):
            return web.json_response({"message": "Пустой отклик"}, status=400)
        self.responses.setdefault(request.match_info["id"], set()).add(user["id"])
        return web.json_response({"success": True}, status=201)

    async def admin_events(self, request):
        self.require_moderator(request)
        return web.json_response({"events": self.pending_events})

    async def approve(self, request):
        self.require_moderator(request)
        event_id = request.match_info["id"]
        for event in self.pending_events:
            if event["id"] == event_id:
                self.pending_events.remove(event)
                self.events.append({**event, "status": "approved", "isApproved": True})
                return web.json_response({"success": True})
        return web.json_response({"message": "Событие не найдено"}, status=404)

    async def get_promotions(self, request):
        promotions = self.promotions
        if "cityId" in request.query:
            promotions = [p for p in promotions if p["cityId"] == request.query["cityId"]]
        if request.query.get("active") == "true":
            promotions = [p for p in promotions if p["isActive"]]
        return web.json_response(promotions)

    async def create_event(self, request):
        self.require_user(request)
        body = await request.json()
        event = {**body, "id": f"e{len(self.events) + len(self.pending_events) + 1}", "status": "pending"}
        self.pending_events.append(event)
        return web.json_response(event, status=201)

    async def update_event(self, request):
        event = self.require_owner(request, self.events)
        event.update(await request.json())
        return web.json_response(event)

    async def delete_event(self, request):
        event = self.require_owner(request, self.events)
        self.events.remove(event)
        for favs in self.favorites.values():
            favs.discard(event["id"])
        return web.Response(status=204)

    async def update_promotion(self, request):
        promotion = self.require_owner(request, self.promotions)
        promotion.update(await request.json())
        return web.json_response(promotion)

    async def delete_promotion(self, request):
        promotion = self.require_owner(request, self.promotions)
        self.promotions.remove(promotion)
        return web.Response(status=204)

    async def admin_stats(self, request):
        self.require_moderator(request)
        return web.json_response({
            "totalEvents": len(self.events),
            "pendingEvents": len(self.pending_events),
            "totalBusinesses": len(self.businesses),
        })

    async def admin_businesses(self, request):
        self.require_moderator(request)
        businesses = self.businesses
        if request.query.get("verified") == "false":
            businesses = [b for b in businesses if not b["isVerified"]]
        return web.json_response({"businesses": businesses, "total": len(businesses)})

    async def verify_business(self, request):
        self.require_moderator(request)
        for business in self.businesses:
            if business["id"] == request.match_info["id"]:
                business["isVerified"] = True
                return web.json_response(business)
        return web.json_response({"message": "Бизнес не найден"}, status=404)

    async def admin_promotions(self, request):
        self.require_moderator(request)
        return web.json_response({"promotions": self.promotions, "total": len(self.promotions)})

    async def moderate_promotion(self, request):
        self.require_moderator(request)
        body = await request.json()
        for promotion in self.promotions:
            if promotion["id"] == request.match_info["id"]:
                promotion["isActive"] = body["isActive"]
                return web.json_response(promotion)
        return web.json_response({"message": "Акция не найдена"}, status=404)

    async def my_business(self, request):
        user = self.require_user(request)
        if user["role"] != "business":
            return web.json_response({"message": "Бизнес не найден"}, status=404)
        return web.json_response({
            "id": "b1",
            "ownerId": user["id"],
            "name": "Кофейня Марата",
            "category": "cafe",
            "cityId": "1",
            "tier": self.business_tier,
            "postsThisMonth": self.posts_this_month,
        })

    async def upload_config(self, request):
        if not self.upload_configured:
            return web.json_response({"error": "Cloudinary не настроен"}, status=503)
        return web.json_response({
            "url": str(request.url.with_path("/upload/file").with_query(None)),
            "cloudName": "demo",
            "folder": request.query.get("folder", "afisha/general"),
            "uploadPreset": "unsigned",
        })

    async def image_ideas(self, request):
        return web.json_response({
            "ideas": [{"id": 1, "title": "Закат", "prompt": "sunset over the mountains"}],
        })

    async def broken(self, request):
        return web.Response(text="<html>oops</html>", content_type="text/html")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend():
    return Backend()


@pytest.fixture
async def server(backend):
    server = TestServer(backend.app())
    await server.start_server()
    yield server
    await server.close()


@pytest.fixture
def config(server):
    return Config(API_URL=str(server.make_url("")), BOT_TOKEN="test")


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
async def client(config, storage, clock):
    client = AfishaClient(config, storage, clock=clock)
    await client.start()
    yield client
    await client.close()

import dataclasses
import json

import pytest

from afisha.config import Config
from afisha.errors import UnauthorizedError
from afisha.services.client import ClientRegistry
from afisha.storage import CITY_KEY, TOKEN_KEY, USER_KEY, MemoryStorage


async def test_city_slug_defaults(client):
    assert client.city_slug == "almaty"
    await client.session.select_city("astana")
    assert client.city_slug == "astana"


async def test_load_signs_out_when_token_rejected(config, backend):
    storage = MemoryStorage({
        TOKEN_KEY: "revoked",
        USER_KEY: json.dumps({"id": "u1", "email": "aida@example.kz"}),
        CITY_KEY: "almaty",
    })
    registry = ClientRegistry(config, storage_factory=lambda user_id: _ready(storage))
    try:
        client = await registry.get(100)
        assert client.session.is_authenticated

        with pytest.raises(UnauthorizedError):
            await client.load(client.queries.favorite_events())

        assert not client.session.is_authenticated
        assert storage.snapshot() == {CITY_KEY: "almaty"}
    finally:
        await registry.close()


async def _ready(storage):
    return storage


async def test_registry_reuses_clients_per_user(config):
    created = []

    async def factory(user_id):
        created.append(user_id)
        return MemoryStorage()

    registry = ClientRegistry(config, storage_factory=factory)
    try:
        first = await registry.get(1)
        assert await registry.get(1) is first
        assert await registry.get(2) is not first
        assert created == [1, 2]
        assert len(registry) == 2
    finally:
        await registry.close()
    assert len(registry) == 0


async def test_clients_share_public_data_source_but_not_sessions(config):
    registry = ClientRegistry(config, storage_factory=lambda user_id: _ready(MemoryStorage()))
    try:
        aida = await registry.get(1)
        guest = await registry.get(2)
        await aida.mutations.login("aida@example.kz", "secret1")

        cities = await guest.load(guest.queries.cities())
        assert [c.slug for c in cities] == ["almaty", "astana"]
        assert not guest.session.is_authenticated
    finally:
        await registry.close()


async def test_idle_clients_are_evicted(config, clock):
    registry = ClientRegistry(config, clock=clock)
    try:
        aida = await registry.get(1)
        await aida.mutations.login("aida@example.kz", "secret1")
        await registry.get(2)

        clock.advance(config.CLIENT_IDLE_TIME)
        await registry.get(3)
        assert len(registry) == 1

        # сессия хранится отдельно от клиента и переживает пересборку
        rebuilt = await registry.get(1)
        assert rebuilt is not aida
        assert rebuilt.session.user_id == "u1"
    finally:
        await registry.close()


async def test_registry_stays_bounded_under_many_users(config, clock):
    registry = ClientRegistry(config, clock=clock)
    step = config.CLIENT_IDLE_TIME / 10
    try:
        for user_id in range(500):
            await registry.get(user_id)
            clock.advance(step)
        assert len(registry) <= 11
    finally:
        await registry.close()


async def test_recently_used_client_is_kept(config, clock):
    registry = ClientRegistry(config, clock=clock)
    try:
        first = await registry.get(1)
        clock.advance(config.CLIENT_IDLE_TIME - 1)
        assert await registry.get(1) is first
        clock.advance(config.CLIENT_IDLE_TIME - 1)
        await registry.get(2)
        assert await registry.get(1) is first
    finally:
        await registry.close()


def test_fingerprint_tracks_cache_windows():
    config = Config()
    assert config.fingerprint() == Config().fingerprint()
    assert len(config.fingerprint()) == 12

    assert dataclasses.replace(config, LIST_STALE_TIME=60.0).fingerprint() != config.fingerprint()
    assert dataclasses.replace(config, BOT_TOKEN="other").fingerprint() == config.fingerprint()


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("BOT_TOKEN", "123:abc")
    monkeypatch.setenv("API_URL", "https://api.example.kz/")
    monkeypatch.setenv("ADMIN_IDS", "1, 2,x")
    monkeypatch.setenv("LIST_STALE_TIME", "60")
    monkeypatch.setenv("CLIENT_IDLE_TIME", "900")

    config = Config.from_env()

    assert config.API_URL == "https://api.example.kz"
    assert config.ADMIN_IDS == (1, 2)
    assert config.LIST_STALE_TIME == 60.0
    assert config.CLIENT_IDLE_TIME == 900.0
    assert config.masked_summary()["BOT_TOKEN"] == "***"


def test_config_requires_bot_token(monkeypatch):
    monkeypatch.delenv("BOT_TOKEN", raising=False)
    monkeypatch.delenv("TOKEN", raising=False)
    with pytest.raises(RuntimeError, match="BOT_TOKEN"):
        Config.from_env()
    assert Config.from_env(require_bot=False).BOT_TOKEN is None

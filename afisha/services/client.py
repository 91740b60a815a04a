"""Сборка слоя данных: один AfishaClient на вкладку (пользователя бота)."""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable

import aiohttp

from afisha.config import Config
from afisha.errors import UnauthorizedError
from afisha.services.api import AfishaApi
from afisha.services.cache import Query, QueryCache, QueryResult
from afisha.services.mutations import Mutations
from afisha.services.queries import Queries
from afisha.services.session import SessionStore
from afisha.storage import LocalStorage, MemoryStorage, RedisStorage, get_redis, tab_namespace

logger = logging.getLogger(__name__)

StorageFactory = Callable[[int], Awaitable[LocalStorage]]


class AfishaClient:
    def __init__(
        self,
        config: Config,
        storage: LocalStorage,
        http: aiohttp.ClientSession | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.session = SessionStore(storage)
        self.api = AfishaApi(
            config.API_URL,
            token_provider=lambda: self.session.token,
            timeout=config.API_TIMEOUT,
            http=http,
        )
        self.cache = QueryCache(cache_time=config.CACHE_TIME, clock=clock)
        self.queries = Queries(self.api, self.session, config)
        self.mutations = Mutations(self.api, self.cache, self.session)

    async def start(self) -> "AfishaClient":
        await self.session.init()
        return self

    async def close(self) -> None:
        self.cache.remove()
        await self.api.close()

    def read(self, query: Query) -> QueryResult:
        return self.cache.read(query)

    async def load(self, query: Query) -> Any:
        """Значение запроса; отказ сервера принять токен завершает сессию."""
        try:
            return await self.cache.ensure(query)
        except UnauthorizedError:
            if self.session.is_authenticated:
                logger.info("Token rejected while loading %s, signing out", query.key.parts)
                await self.mutations.logout()
            raise

    @property
    def city_slug(self) -> str:
        return self.session.selected_city or self.config.DEFAULT_CITY


class ClientRegistry:
    """Клиенты по пользователям Telegram с общей HTTP-сессией.

    Клиент, к которому не обращались дольше CLIENT_IDLE_TIME, закрывается:
    сессия лежит в хранилище, и при следующем обращении клиент собирается
    заново.
    """

    def __init__(
        self,
        config: Config,
        storage_factory: StorageFactory | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._config = config
        self._clock = clock
        self._memory: dict[int, MemoryStorage] = {}
        self._storage_factory = storage_factory or self._default_storage_factory()
        self._clients: dict[int, AfishaClient] = {}
        self._last_used: dict[int, float] = {}
        self._http: aiohttp.ClientSession | None = None
        self._lock = asyncio.Lock()

    def _default_storage_factory(self) -> StorageFactory:
        if not self._config.REDIS_URL:
            logger.warning("REDIS_URL is not set, sessions are kept in memory")
            return self._memory_storage

        async def redis_storage(user_id: int) -> LocalStorage:
            redis = await get_redis(self._config.REDIS_URL)
            return RedisStorage(redis, tab_namespace(user_id))

        return redis_storage

    async def _memory_storage(self, user_id: int) -> LocalStorage:
        # переживает пересборку клиента, иначе вытеснение разлогинит
        return self._memory.setdefault(user_id, MemoryStorage())

    def _get_http(self) -> aiohttp.ClientSession:
        if self._http is None or self._http.closed:
            self._http = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._config.API_TIMEOUT),
            )
        return self._http

    async def get(self, user_id: int) -> AfishaClient:
        client = self._clients.get(user_id)
        if client is not None:
            self._last_used[user_id] = self._clock()
            return client

        async with self._lock:
            client = self._clients.get(user_id)
            if client is None:
                await self._evict_idle()
                storage = await self._storage_factory(user_id)
                client = AfishaClient(self._config, storage, http=self._get_http())
                await client.start()
                self._clients[user_id] = client
                logger.info("Client created for user %s", user_id)
            self._last_used[user_id] = self._clock()
            return client

    async def _evict_idle(self) -> int:
        now = self._clock()
        idle = [
            user_id
            for user_id, used in self._last_used.items()
            if now - used >= self._config.CLIENT_IDLE_TIME
        ]
        for user_id in idle:
            client = self._clients.pop(user_id)
            del self._last_used[user_id]
            await client.close()
        if idle:
            logger.info("Closed %d idle clients, %d left", len(idle), len(self._clients))
        return len(idle)

    def __len__(self) -> int:
        return len(self._clients)

    async def close(self) -> None:
        for client in self._clients.values():
            await client.close()
        self._clients.clear()
        self._last_used.clear()
        if self._http is not None and not self._http.closed:
            await self._http.close()
        self._http = None

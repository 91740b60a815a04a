"""Локальное key/value хранилище вкладки: token, user, selectedCity."""
from abc import ABC, abstractmethod
from typing import Mapping

import redis.asyncio as aioredis

TOKEN_KEY = "token"
USER_KEY = "user"
CITY_KEY = "selectedCity"


class LocalStorage(ABC):
    @abstractmethod
    async def get(self, key: str) -> str | None:
        ...

    @abstractmethod
    async def set_many(self, values: Mapping[str, str]) -> None:
        """Записать все значения разом: либо все, либо ни одного."""

    @abstractmethod
    async def delete(self, *keys: str) -> None:
        ...

    async def set(self, key: str, value: str) -> None:
        await self.set_many({key: value})


class MemoryStorage(LocalStorage):
    def __init__(self, initial: Mapping[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})
        self.writes = 0

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set_many(self, values: Mapping[str, str]) -> None:
        self.writes += 1
        self._data.update(values)

    async def delete(self, *keys: str) -> None:
        self.writes += 1
        for key in keys:
            self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)


class RedisStorage(LocalStorage):
    def __init__(self, redis: aioredis.Redis, namespace: str):
        self._redis = redis
        self._namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    async def get(self, key: str) -> str | None:
        return await self._redis.get(self._key(key))

    async def set_many(self, values: Mapping[str, str]) -> None:
        async with self._redis.pipeline(transaction=True) as pipe:
            for key, value in values.items():
                pipe.set(self._key(key), value)
            await pipe.execute()

    async def delete(self, *keys: str) -> None:
        if not keys:
            return
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.delete(*(self._key(k) for k in keys))
            await pipe.execute()


def tab_namespace(user_id: int) -> str:
    return f"afisha:tab:{user_id}"

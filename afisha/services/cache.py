"""Кэш запросов: окна свежести, stale-while-revalidate, порядок ответов.

Каждая запись кэша хранит номер последнего *начатого* запроса. Ответ
(или ошибка) запроса, который был начат раньше, отбрасывается, даже если
пришёл позже: иначе медленный старый ответ затёр бы свежие данные.

Задачи загрузки принадлежат кэшу, а не тому, кто их ждёт: отмена
ожидающего (например, закрытого экрана) не отменяет загрузку.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[Any]]


def _freeze(part: Any) -> Any:
    if isinstance(part, dict):
        return tuple(
            sorted(
                ((k, _freeze(v)) for k, v in part.items() if v is not None),
                key=lambda kv: kv[0],
            )
        )
    if isinstance(part, (list, tuple)):
        return tuple(_freeze(p) for p in part)
    return part


@dataclass(frozen=True)
class QueryKey:
    parts: tuple

    @classmethod
    def of(cls, *parts: Any) -> "QueryKey":
        return cls(tuple(_freeze(p) for p in parts))

    @property
    def resource(self) -> str:
        return self.parts[0]

    def startswith(self, prefix: "QueryKey | tuple") -> bool:
        if not isinstance(prefix, QueryKey):
            prefix = QueryKey.of(*prefix)
        return self.parts[: len(prefix.parts)] == prefix.parts


@dataclass
class Query:
    key: QueryKey
    fetcher: Fetcher
    stale_time: float = 0.0
    enabled: bool = True


@dataclass(frozen=True)
class QueryResult:
    data: Any = None
    error: Exception | None = None
    is_loading: bool = False
    is_fetching: bool = False
    is_stale: bool = True
    updated_at: float | None = None

    @property
    def is_success(self) -> bool:
        return self.updated_at is not None


Listener = Callable[[QueryResult], None]


class _Entry:
    def __init__(self, key: QueryKey, now: float):
        self.key = key
        self.data: Any = None
        self.error: Exception | None = None
        self.updated_at: float | None = None
        self.invalidated = False
        self.seq = 0
        self.task: asyncio.Task | None = None
        self.fetcher: Fetcher | None = None
        self.stale_time = 0.0
        self.enabled = True
        self.listeners: list[Listener] = []
        self.last_seen = now

    @property
    def is_active(self) -> bool:
        return bool(self.listeners)


class QueryCache:
    def __init__(
        self,
        cache_time: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._cache_time = cache_time
        self._clock = clock
        self._entries: dict[QueryKey, _Entry] = {}

    # --- чтение ---

    def read(self, query: Query) -> QueryResult:
        """Снимок состояния; при необходимости запускает загрузку в фоне."""
        self.collect_garbage()
        entry = self._observe(query)
        if query.enabled and self._is_stale(entry) and entry.task is None:
            self._start_fetch(entry)
        return self._snapshot(entry)

    async def ensure(self, query: Query) -> Any:
        """Значение запроса.

        Свежие данные возвращаются без запроса в сеть. Устаревшие данные
        возвращаются сразу, а в фоне запускается ровно одна перезагрузка.
        Если данных нет, ждём загрузку и пробрасываем её ошибку.
        """
        self.collect_garbage()
        entry = self._observe(query)
        if not query.enabled or not self._is_stale(entry):
            return entry.data

        if entry.updated_at is not None:
            if entry.task is None:
                self._start_fetch(entry)
            return entry.data

        if entry.task is None:
            self._start_fetch(entry)
        await self._settle(entry)

        if entry.updated_at is not None:
            return entry.data
        if entry.error is not None:
            raise entry.error
        # запись сбросили, пока мы ждали
        return await self.ensure(query)

    async def refetch(self, query: Query) -> QueryResult:
        """Принудительная перезагрузка; вытесняет запрос, который уже идёт."""
        entry = self._observe(query)
        self._start_fetch(entry)
        await self._settle(entry)
        return self._snapshot(entry)

    async def settle(self, key: QueryKey) -> QueryResult | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        await self._settle(entry)
        return self._snapshot(entry)

    def peek(self, key: QueryKey) -> QueryResult | None:
        entry = self._entries.get(key)
        return self._snapshot(entry) if entry is not None else None

    def __contains__(self, key: QueryKey) -> bool:
        return key in self._entries

    # --- подписки ---

    def subscribe(self, target: Query | QueryKey, listener: Listener) -> Callable[[], None]:
        if isinstance(target, Query):
            entry = self._observe(target)
        else:
            entry = self._get_or_create(target)
        entry.listeners.append(listener)

        def unsubscribe() -> None:
            if listener in entry.listeners:
                entry.listeners.remove(listener)
                if not entry.listeners:
                    entry.last_seen = self._clock()

        return unsubscribe

    def is_active(self, key: QueryKey) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.is_active

    # --- запись ---

    def set_data(self, key: QueryKey, data: Any) -> None:
        entry = self._get_or_create(key)
        self._supersede(entry)
        entry.data = data
        entry.error = None
        entry.updated_at = self._clock()
        entry.invalidated = False
        self._notify(entry)

    def update_data(self, prefix: QueryKey | tuple, updater: Callable[[Any], Any]) -> int:
        """Точечно поправить данные во всех записях с префиксом ключа."""
        patched = 0
        for entry in self._match(prefix):
            if entry.updated_at is None:
                continue
            self._supersede(entry)
            entry.data = updater(entry.data)
            patched += 1
            self._notify(entry)
        return patched

    def invalidate(self, prefix: QueryKey | tuple | None = None) -> None:
        """Пометить записи устаревшими; активные перезагружаются в фоне."""
        for entry in self._match(prefix):
            entry.invalidated = True
            if self._can_refetch(entry):
                self._start_fetch(entry)
            else:
                self._supersede(entry)

    def reset(self, prefix: QueryKey | tuple | None = None) -> None:
        """Забыть данные записей; активные загружаются заново."""
        for entry in self._match(prefix):
            entry.data = None
            entry.error = None
            entry.updated_at = None
            entry.invalidated = False
            if self._can_refetch(entry):
                self._start_fetch(entry)
            else:
                self._supersede(entry)
                self._notify(entry)

    def remove(self, prefix: QueryKey | tuple | None = None) -> None:
        for entry in self._match(prefix):
            self._supersede(entry)
            entry.listeners.clear()
            self._entries.pop(entry.key, None)

    def collect_garbage(self) -> int:
        now = self._clock()
        expired = [
            key
            for key, entry in self._entries.items()
            if not entry.is_active
            and entry.task is None
            and now - entry.last_seen >= self._cache_time
        ]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Evicted %d cache entries", len(expired))
        return len(expired)

    # --- внутреннее ---

    def _get_or_create(self, key: QueryKey) -> _Entry:
        entry = self._entries.get(key)
        if entry is None:
            entry = _Entry(key, self._clock())
            self._entries[key] = entry
        return entry

    def _observe(self, query: Query) -> _Entry:
        entry = self._get_or_create(query.key)
        entry.fetcher = query.fetcher
        entry.stale_time = query.stale_time
        entry.enabled = query.enabled
        entry.last_seen = self._clock()
        return entry

    def _match(self, prefix: QueryKey | tuple | None) -> list[_Entry]:
        if prefix is None:
            return list(self._entries.values())
        return [e for e in self._entries.values() if e.key.startswith(prefix)]

    def _is_stale(self, entry: _Entry) -> bool:
        if entry.updated_at is None or entry.invalidated:
            return True
        return self._clock() - entry.updated_at >= entry.stale_time

    def _can_refetch(self, entry: _Entry) -> bool:
        return entry.is_active and entry.enabled and entry.fetcher is not None

    def _snapshot(self, entry: _Entry) -> QueryResult:
        fetching = entry.task is not None
        return QueryResult(
            data=entry.data,
            error=entry.error,
            is_loading=fetching and entry.updated_at is None,
            is_fetching=fetching,
            is_stale=self._is_stale(entry),
            updated_at=entry.updated_at,
        )

    def _supersede(self, entry: _Entry) -> None:
        if entry.task is not None:
            entry.seq += 1
            entry.task = None

    def _start_fetch(self, entry: _Entry) -> asyncio.Task:
        if entry.fetcher is None:
            raise RuntimeError(f"No fetcher registered for {entry.key.parts}")
        entry.seq += 1
        entry.task = asyncio.get_running_loop().create_task(
            self._run(entry, entry.seq, entry.fetcher)
        )
        self._notify(entry)
        return entry.task

    async def _run(self, entry: _Entry, seq: int, fetcher: Fetcher) -> None:
        try:
            data = await fetcher()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if entry.seq != seq:
                logger.debug("Discarding superseded error for %s: %s", entry.key.parts, exc)
                return
            entry.error = exc
            entry.task = None
            self._notify(entry)
            return

        if entry.seq != seq:
            logger.debug(
                "Discarding superseded result for %s (#%d, latest #%d)",
                entry.key.parts,
                seq,
                entry.seq,
            )
            return

        entry.data = data
        entry.error = None
        entry.updated_at = self._clock()
        entry.invalidated = False
        entry.task = None
        self._notify(entry)

    async def _settle(self, entry: _Entry) -> None:
        while entry.task is not None:
            await asyncio.shield(entry.task)

    def _notify(self, entry: _Entry) -> None:
        if not entry.listeners:
            return
        result = self._snapshot(entry)
        for listener in list(entry.listeners):
            try:
                listener(result)
            except Exception:
                logger.exception("Query listener failed for %s", entry.key.parts)

from .connection import get_redis, close_redis
from .local import (
    LocalStorage,
    MemoryStorage,
    RedisStorage,
    tab_namespace,
    TOKEN_KEY,
    USER_KEY,
    CITY_KEY,
)

__all__ = [
    "get_redis",
    "close_redis",
    "LocalStorage",
    "MemoryStorage",
    "RedisStorage",
    "tab_namespace",
    "TOKEN_KEY",
    "USER_KEY",
    "CITY_KEY",
]

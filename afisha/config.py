import hashlib
import os
from dataclasses import dataclass
from typing import Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

DEFAULT_API_URL = "https://afisha-bekend-production.up.railway.app"


@dataclass(frozen=True)
class Config:
    API_URL: str = DEFAULT_API_URL
    BOT_TOKEN: Optional[str] = None
    REDIS_URL: Optional[str] = None

    ADMIN_IDS: Tuple[int, ...] = ()

    API_TIMEOUT: float = 15.0

    # окна свежести кэша, секунды
    REFERENCE_STALE_TIME: float = 600.0
    LIST_STALE_TIME: float = 300.0
    DETAIL_STALE_TIME: float = 0.0
    ADMIN_STALE_TIME: float = 120.0
    CACHE_TIME: float = 300.0
    # клиент вкладки без обращений дольше этого закрывается
    CLIENT_IDLE_TIME: float = 1800.0

    DEFAULT_CITY: str = "almaty"

    @classmethod
    def from_env(cls, require_bot: bool = True) -> "Config":
        token = os.getenv("BOT_TOKEN") or os.getenv("TOKEN")

        if require_bot and not token:
            raise RuntimeError("BOT_TOKEN не найден")

        api_url = (os.getenv("API_URL") or DEFAULT_API_URL).rstrip("/")

        admin_ids = tuple(
            int(x.strip())
            for x in os.getenv("ADMIN_IDS", "").split(",")
            if x.strip().isdigit()
        )

        return cls(
            API_URL=api_url,
            BOT_TOKEN=token,
            REDIS_URL=os.getenv("REDIS_URL") or None,
            ADMIN_IDS=admin_ids,
            API_TIMEOUT=float(os.getenv("API_TIMEOUT", "15")),
            REFERENCE_STALE_TIME=float(os.getenv("REFERENCE_STALE_TIME", "600")),
            LIST_STALE_TIME=float(os.getenv("LIST_STALE_TIME", "300")),
            DETAIL_STALE_TIME=float(os.getenv("DETAIL_STALE_TIME", "0")),
            ADMIN_STALE_TIME=float(os.getenv("ADMIN_STALE_TIME", "120")),
            CACHE_TIME=float(os.getenv("CACHE_TIME", "300")),
            CLIENT_IDLE_TIME=float(os.getenv("CLIENT_IDLE_TIME", "1800")),
            DEFAULT_CITY=os.getenv("DEFAULT_CITY", "almaty"),
        )

    def masked_summary(self) -> dict:
        token = self.BOT_TOKEN or ""
        masked_token = token[:6] + "..." + token[-4:] if len(token) > 10 else "***"

        return {
            "API_URL": self.API_URL,
            "BOT_TOKEN": masked_token,
            "REDIS_URL": "***" if self.REDIS_URL else "memory",
            "ADMIN_IDS": self.ADMIN_IDS,
            "API_TIMEOUT": self.API_TIMEOUT,
            "REFERENCE_STALE_TIME": self.REFERENCE_STALE_TIME,
            "LIST_STALE_TIME": self.LIST_STALE_TIME,
            "DETAIL_STALE_TIME": self.DETAIL_STALE_TIME,
            "ADMIN_STALE_TIME": self.ADMIN_STALE_TIME,
            "CACHE_TIME": self.CACHE_TIME,
            "CLIENT_IDLE_TIME": self.CLIENT_IDLE_TIME,
            "DEFAULT_CITY": self.DEFAULT_CITY,
        }

    def fingerprint(self) -> str:
        """Короткий хэш настроек кэша: меняется, если поменялись окна свежести."""
        parts = [
            f"REFERENCE_STALE_TIME={self.REFERENCE_STALE_TIME}",
            f"LIST_STALE_TIME={self.LIST_STALE_TIME}",
            f"DETAIL_STALE_TIME={self.DETAIL_STALE_TIME}",
            f"ADMIN_STALE_TIME={self.ADMIN_STALE_TIME}",
            f"CACHE_TIME={self.CACHE_TIME}",
        ]
        payload = "|".join(parts)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:12]

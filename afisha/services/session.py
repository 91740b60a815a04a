"""Сессия вкладки: токен, пользователь и выбранный город."""
import json
import logging
from enum import Enum

from afisha.models import AuthResult, User
from afisha.storage import LocalStorage, TOKEN_KEY, USER_KEY, CITY_KEY

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"


class SessionStore:
    """Единственный владелец токена и пользователя вкладки.

    Сохранённое состояние читается один раз в init() и считается
    недоверенным: битый JSON или пользователь без токена сбрасываются в
    анонимную сессию. Дальше чтение синхронное. Меняют сессию только
    set() (успешный вход/регистрация) и clear() (выход или отказ сервера
    принять токен).
    """

    def __init__(self, storage: LocalStorage):
        self._storage = storage
        self._token: str | None = None
        self._user: User | None = None
        self._city: str | None = None
        self._ready = False

    async def init(self) -> None:
        token = await self._storage.get(TOKEN_KEY)
        raw_user = await self._storage.get(USER_KEY)
        self._city = await self._storage.get(CITY_KEY)

        user = None
        if raw_user:
            try:
                user = User.from_api(json.loads(raw_user))
            except (ValueError, KeyError, TypeError) as exc:
                logger.warning("Persisted user is corrupted, dropping session: %s", exc)

        if token and user:
            self._token = token
            self._user = user
        elif token or raw_user:
            await self._storage.delete(TOKEN_KEY, USER_KEY)

        self._ready = True

    def _check_ready(self) -> None:
        if not self._ready:
            raise RuntimeError("SessionStore.init() has not been awaited")

    @property
    def token(self) -> str | None:
        self._check_ready()
        return self._token

    @property
    def user(self) -> User | None:
        self._check_ready()
        return self._user

    @property
    def selected_city(self) -> str | None:
        self._check_ready()
        return self._city

    @property
    def state(self) -> SessionState:
        if self.token and self.user:
            return SessionState.AUTHENTICATED
        return SessionState.ANONYMOUS

    @property
    def is_authenticated(self) -> bool:
        return self.state == SessionState.AUTHENTICATED

    @property
    def user_id(self) -> str | None:
        user = self.user
        return user.id if user else None

    async def set(self, auth: AuthResult) -> None:
        self._check_ready()
        await self._storage.set_many({
            TOKEN_KEY: auth.token,
            USER_KEY: json.dumps(auth.user.to_dict(), ensure_ascii=False),
        })
        self._token = auth.token
        self._user = auth.user
        logger.info("Session: user %s signed in", auth.user.id)

    async def clear(self) -> None:
        self._check_ready()
        await self._storage.delete(TOKEN_KEY, USER_KEY)
        if self._user:
            logger.info("Session: user %s signed out", self._user.id)
        self._token = None
        self._user = None

    async def select_city(self, slug: str) -> None:
        self._check_ready()
        await self._storage.set(CITY_KEY, slug)
        self._city = slug

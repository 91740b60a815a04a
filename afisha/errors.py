"""Ошибки слоя доступа к данным."""
from typing import Any


class ApiError(Exception):
    """Единый тип ошибки обращений к API: сеть, таймаут, не-2xx, битый ответ."""

    def __init__(self, message: str, status: int | None = None, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.payload = payload

    def __str__(self) -> str:
        return self.message


class UnauthorizedError(ApiError):
    pass


class ForbiddenError(ApiError):
    """Недостаточно прав: не модератор, чужой бизнес."""


class NotFoundError(ApiError):
    pass


class ConfigurationError(ApiError):
    """Внешний сервис (загрузка, почта, ИИ) не настроен на бэкенде."""


class ValidationError(ApiError):
    def __init__(self, message: str, fields: tuple[str, ...] = ()):
        super().__init__(message)
        self.fields = fields


class FeatureLockedError(ApiError):
    def __init__(self, message: str, feature: str, required_tier: str):
        super().__init__(message)
        self.feature = feature
        self.required_tier = required_tier

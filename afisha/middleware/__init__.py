from .client import ClientMiddleware

__all__ = ["ClientMiddleware"]

from .api import AfishaApi
from .cache import Query, QueryCache, QueryKey, QueryResult
from .client import AfishaClient, ClientRegistry
from .mutations import Mutations
from .queries import Queries
from .session import SessionState, SessionStore

__all__ = [
    "AfishaApi",
    "Query",
    "QueryCache",
    "QueryKey",
    "QueryResult",
    "AfishaClient",
    "ClientRegistry",
    "Mutations",
    "Queries",
    "SessionState",
    "SessionStore",
]

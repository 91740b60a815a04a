from aiogram import Router

from .errors import router as errors_router
from .start import router as start_router
from .events import router as events_router
from .catalog import router as catalog_router
from .community import router as community_router
from .auth import router as auth_router
from .business import router as business_router
from .moderation import router as moderation_router


def setup_routers() -> Router:
    root = Router()

    root.include_router(errors_router)
    root.include_router(start_router)
    root.include_router(events_router)
    root.include_router(catalog_router)
    root.include_router(community_router)
    root.include_router(auth_router)
    root.include_router(business_router)
    root.include_router(moderation_router)

    return root

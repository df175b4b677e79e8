"""FastAPI API endpoints under /api.

Endpoint groups: settings (health, status, reload, settings) and users
(chat interception, toggle, confirm/cancel, option select, outbox). The
users group is the command surface a game server bridge talks to.
"""

from fastapi import APIRouter

from .settings import router as settings_router
from .users import router as users_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(users_router)

"""FastAPI API endpoints under /api.

Endpoint groups: settings (health, settings, models, check-connection) and
chat (direct chat, calls, listening together). Partners travel in the
request body; the host application owns them.
"""

from fastapi import APIRouter

from .chat import router as chat_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(chat_router)

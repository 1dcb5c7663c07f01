"""Health check, settings, model list and connection check endpoints."""

from fastapi import APIRouter, HTTPException, Request
from pydantic import ValidationError

from pocket_chat import storage
from pocket_chat.errors import ConfigurationError, LLMError

from .models import ModelsBody

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/settings")
async def get_settings():
    """Get global settings."""
    return storage.get_settings()


@router.patch("/settings")
async def update_settings(body: dict):
    """Update global settings (partial merge)."""
    try:
        return storage.update_settings(body)
    except ValidationError as e:
        raise HTTPException(422, str(e))


@router.post("/models")
async def list_models(body: ModelsBody, request: Request):
    """List model ids from the given endpoint, or from the configured one."""
    pipeline = request.app.state.pipeline
    try:
        models = await pipeline.list_models(body.api_url, body.api_key)
    except ConfigurationError as e:
        raise HTTPException(400, str(e))
    except LLMError as e:
        raise HTTPException(502, str(e))
    return {"models": models}


@router.post("/check-connection")
async def check_connection(request: Request):
    """Quick check against the configured endpoint's /models."""
    result = await request.app.state.pipeline.check_connection()
    return {"success": result.success, "message": result.message, "models": result.models}

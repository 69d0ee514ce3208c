"""Router – health check."""

from fastapi import APIRouter

from src.app.config import settings

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness / readiness probe."""
    return {
        "status": "ok",
        "model": settings.gemini_model,
        "api_key_configured": bool(settings.gemini_api_key),
    }

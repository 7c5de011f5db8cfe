from fastapi import APIRouter

from smarthealth import __version__
from smarthealth.config import settings
from smarthealth.repositories import sessions

router = APIRouter(tags=["health"])


@router.get("/health")
def health() -> dict:
    return {
        "status": "ok",
        "service": settings.brand.service_name,
        "version": __version__,
        "voice_provider": settings.voice.provider,
        "active_sessions": sessions.count(),
    }

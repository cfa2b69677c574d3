"""Health-check router."""

from fastapi import APIRouter

router = APIRouter(tags=["health"])


@router.get("/api/health")
async def health_check():
    """Liveness"""
    return {"ok": True}

"""
Health Routes

Liveness check for load balancers; touches neither the database nor the
embeddings provider.
"""

from fastapi import APIRouter

router = APIRouter(tags=["health"])


@router.get("/health", summary="Liveness check")
async def health() -> dict:
    return {"status": "ok"}

from fastapi import APIRouter

from originality.api.v1.endpoints import originality

api_router = APIRouter()

api_router.include_router(originality.router, prefix="/originality", tags=["Originality"])

__all__ = ["api_router"]

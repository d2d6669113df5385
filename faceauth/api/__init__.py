"""API v1 router initialization."""
from fastapi import APIRouter

from .face_auth import router as face_auth_router

# Create v1 router
router = APIRouter()

router.include_router(
    face_auth_router,
    prefix="/face-auth",
    tags=["face-auth"]
)

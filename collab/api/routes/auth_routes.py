"""
Authentication Routes

GET /auth/me - Echo the verified identity (sign-in itself is external)
"""

from fastapi import APIRouter, Depends

from collab.core.auth import get_current_user
from collab.schemas.schemas import IdentityResponse

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.get("/me", response_model=IdentityResponse)
async def get_me(viewer: dict = Depends(get_current_user)):
    """Get current authenticated user's identity from the token."""
    return IdentityResponse(**viewer)

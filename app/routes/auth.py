"""Authentication routes."""
from fastapi import APIRouter, Depends

from app.core.security import CurrentUser, get_current_user


router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.get("/me", response_model=CurrentUser)
def get_me(current_user: CurrentUser = Depends(get_current_user)):
    """
    Get current authenticated user information.

    Protected endpoint - requires valid JWT token.
    """
    return current_user

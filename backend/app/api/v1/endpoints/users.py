"""
User API endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.middleware import require_authentication
from app.controllers.user_controller import UserController
from app.db.session import get_db
from app.models.user import User
from app.schemas.user import UserResponse

router = APIRouter()


@router.get("/me", response_model=UserResponse)
async def get_me(
    current_user: User = Depends(require_authentication),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    """Current user with plan and monthly usage."""
    controller = UserController(db)
    return await controller.get_me(current_user)

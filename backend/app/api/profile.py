"""Endpoints for reading and updating the current user's profile."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_user
from app.database import get_db
from app.models import User
from app.schemas import ApiResponse, UserProfileUpdate, UserRead, UserStats
from app.services import users as user_service

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("", response_model=ApiResponse[UserRead])
def read_profile(current_user: User = Depends(get_current_user)) -> ApiResponse[UserRead]:
    return ApiResponse(message="Profile retrieved successfully", data=UserRead.model_validate(current_user))


@router.put("", response_model=ApiResponse[UserRead])
def update_profile(
    payload: UserProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ApiResponse[UserRead]:
    user = user_service.update_user(db, current_user.id, payload.changes())
    return ApiResponse(message="Profile updated successfully", data=UserRead.model_validate(user))


@router.get("/stats", response_model=ApiResponse[UserStats])
def read_profile_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ApiResponse[UserStats]:
    stats = user_service.get_user_stats(db, current_user.id)
    return ApiResponse(message="User statistics retrieved successfully", data=UserStats.model_validate(stats))

# pyright: reportMissingTypeStubs=false
"""
Authentication API endpoints.

Handles email/password login and the current-user lookup.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from core.database import get_db
from auth.dependencies import UserContext, get_current_user
from services.feature_access_service import FeatureAccessService
from services.user_service import UserService
from api.responses import UserResponse

logger = logging.getLogger(__name__)

router = APIRouter()


class LoginRequest(BaseModel):
    """Request model for email/password login."""
    email: str
    password: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class CurrentUserResponse(BaseModel):
    """Response model for the authenticated user."""
    user_id: int
    email: str
    role: str
    name: Optional[str] = None
    features: List[str]


@router.post("/login", summary="Log in with email and password")
async def login(
    request: LoginRequest,
    db: Session = Depends(get_db)
) -> LoginResponse:
    """
    Authenticate a user and return an access token.

    The email is trimmed and lowercased before lookup. Inactive users are
    rejected like unknown ones.
    """
    user = UserService.authenticate(db, request.email, request.password)
    token = UserService.create_access_token(user)
    logger.info(f"User {user.id} logged in")
    return LoginResponse(
        access_token=token,
        user=UserResponse.model_validate(user),
    )


@router.get("/me", summary="Get the current user")
async def get_me(
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> CurrentUserResponse:
    """Return the user behind the token and the features their role may open."""
    features = FeatureAccessService.get_feature_access(db).get(current_user.role, [])
    return CurrentUserResponse(
        user_id=current_user.user_id,
        email=current_user.email,
        role=current_user.role,
        name=current_user.name,
        features=features,
    )

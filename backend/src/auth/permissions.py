# pyright: reportMissingTypeStubs=false
from typing import Callable

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from auth.dependencies import UserContext, get_current_user
from core.database import get_db
from services.feature_access_service import FeatureAccessService


def require_feature(feature: str) -> Callable[..., UserContext]:
    """
    Dependency that ensures the user's role may open a functional area.

    Admins always pass. Other roles follow the stored feature access map,
    falling back to the defaults when nothing is stored for the role.

    Args:
        feature: Feature key, e.g. "inventory"

    Returns:
        Dependency function that can be used with FastAPI Depends()
    """
    def dependency(
        current_user: UserContext = Depends(get_current_user),
        db: Session = Depends(get_db),
    ) -> UserContext:
        if current_user.is_admin():
            return current_user

        if FeatureAccessService.user_can_access(db, current_user.role, feature):
            return current_user

        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Permesso negato"
        )

    return dependency

"""
Role feature access model.

Stores which functional areas each role may open. When a role has no rows,
the built-in fallback permissions apply.
"""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base


class RoleFeatureAccess(Base):
    """One allowed (role, feature) pair."""

    __tablename__ = "role_feature_access"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    role: Mapped[str] = mapped_column(String(20), index=True)
    """Role the feature is granted to."""

    feature: Mapped[str] = mapped_column(String(50))
    """Feature key, e.g. 'agenda' or 'finance'."""

    __table_args__ = (
        UniqueConstraint('role', 'feature', name='uq_role_feature_access'),
    )

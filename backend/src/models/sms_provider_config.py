"""
SMS provider credentials stored in the database.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base


class SmsProviderConfig(Base):
    """
    ClickSend credentials saved from the admin settings.

    There is at most one row, keyed 'clicksend'. When it is present it takes
    precedence over the CLICKSEND_* environment variables.
    """

    __tablename__ = "sms_provider_configs"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    """Provider key, always 'clicksend'."""

    username: Mapped[str] = mapped_column(String(255))
    api_key: Mapped[str] = mapped_column(String(255))

    sender: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    """Optional sender id shown to the recipient."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

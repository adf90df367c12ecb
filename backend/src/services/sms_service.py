"""
SMS delivery through the ClickSend HTTP API.

Every attempt is logged in sms_logs. Credentials saved from the admin settings
take precedence over the CLICKSEND_* environment variables. Without any
credentials the send is simulated: it is logged with status SIMULATED and
nothing leaves the server.
"""

import logging
from typing import List, NamedTuple, Optional

import httpx
from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from core.config import CLICKSEND_USERNAME, CLICKSEND_API_KEY, CLICKSEND_SENDER
from models import SmsLog, SmsProviderConfig
from services.audit_service import AuditService
from services.email_service import NotificationDeliveryError

logger = logging.getLogger(__name__)

CLICKSEND_SEND_URL = "https://rest.clicksend.com/v3/sms/send"
CLICKSEND_CONFIG_ID = "clicksend"


class ClickSendCredentials(NamedTuple):
    username: str
    api_key: str
    sender: Optional[str]
    source: str
    """'database' or 'environment'."""


def mask_secret(value: Optional[str], show: int = 3) -> str:
    """Keep the first `show` and the last two characters of a secret."""
    if not value:
        return ""
    trimmed = value.strip()
    if len(trimmed) <= show:
        return "*" * len(trimmed)
    return f"{trimmed[:show]}{'*' * max(0, len(trimmed) - show - 2)}{trimmed[-2:]}"


class SmsService:
    """Service for sending SMS messages."""

    @staticmethod
    def get_credentials(db: Session) -> Optional[ClickSendCredentials]:
        """Stored credentials first, then the environment; None when neither is set."""
        config = db.query(SmsProviderConfig).filter(SmsProviderConfig.id == CLICKSEND_CONFIG_ID).first()
        if config and config.username and config.api_key:
            return ClickSendCredentials(config.username, config.api_key, config.sender, "database")
        if CLICKSEND_USERNAME and CLICKSEND_API_KEY:
            return ClickSendCredentials(CLICKSEND_USERNAME, CLICKSEND_API_KEY, CLICKSEND_SENDER or None, "environment")
        return None

    @staticmethod
    def save_config(db: Session, actor, username: str, api_key: str, sender: Optional[str] = None) -> SmsProviderConfig:
        """
        Create or replace the stored ClickSend credentials.

        Raises:
            HTTPException: 400 when username or API key is empty
        """
        username = (username or "").strip()
        api_key = (api_key or "").strip()
        if not username or not api_key:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Inserisci username e API key."
            )

        config = db.query(SmsProviderConfig).filter(SmsProviderConfig.id == CLICKSEND_CONFIG_ID).first()
        if config is None:
            config = SmsProviderConfig(id=CLICKSEND_CONFIG_ID, username=username, api_key=api_key)
            db.add(config)
        config.username = username
        config.api_key = api_key
        config.sender = (sender or "").strip() or None

        AuditService.log_audit(db, actor, "sms_provider.updated", "SmsProviderConfig", CLICKSEND_CONFIG_ID,
                               {"username": username})
        db.commit()
        logger.info("ClickSend credentials updated")
        return config

    @staticmethod
    def _send_via_clicksend(credentials: Optional[ClickSendCredentials], to: str, body: str) -> str:
        if credentials is None:
            return "SIMULATED"

        message = {"source": "api", "body": body, "to": to}
        if credentials.sender:
            message["from"] = credentials.sender

        response = httpx.post(
            CLICKSEND_SEND_URL,
            auth=(credentials.username, credentials.api_key),
            json={"messages": [message]},
            timeout=10.0,
        )
        if response.status_code >= 400:
            raise NotificationDeliveryError(f"ClickSend error {response.status_code}: {response.text}")
        return "SENT"

    @staticmethod
    def send_sms(
        db: Session,
        to: Optional[str],
        body: str,
        template_id: Optional[int] = None,
        patient_id: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> str:
        """
        Send an SMS and log the attempt.

        The log row is committed before a failure is raised so the failed
        attempt stays visible.

        Returns:
            'SENT' or 'SIMULATED'

        Raises:
            NotificationDeliveryError: empty recipient or provider failure
        """
        if not to:
            raise NotificationDeliveryError("Numero destinatario mancante")

        error: Optional[str] = None
        try:
            sms_status = SmsService._send_via_clicksend(SmsService.get_credentials(db), to, body)
            if sms_status == "SIMULATED":
                logger.info(f"SMS simulated (ClickSend not configured) to {to}")
        except (NotificationDeliveryError, httpx.HTTPError) as e:
            sms_status = "FAILED"
            error = str(e)
            logger.error(f"SMS to {to} failed: {error}")

        db.add(SmsLog(
            to=to,
            body=body,
            status=sms_status,
            error=error,
            template_id=template_id,
            patient_id=patient_id,
            user_id=user_id,
        ))
        db.commit()

        if sms_status == "FAILED":
            raise NotificationDeliveryError(error or "Invio SMS fallito")
        return sms_status

    @staticmethod
    def list_logs(db: Session, limit: int = 200) -> List[SmsLog]:
        return db.query(SmsLog).order_by(SmsLog.created_at.desc(), SmsLog.id.desc()).limit(limit).all()

"""
Template service for email and SMS templates.

Email templates are addressed by a stable name. The built-in defaults are
inserted on first use, so code can always rely on 'welcome' or
'appointment-reminder' existing.
"""

import logging
from typing import Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from core.config import CLINIC_NAME, FRONTEND_URL
from models import EmailTemplate, SmsTemplate
from services.audit_service import AuditService
from services.email_service import EmailService
from utils.template_utils import create_button, render_email_html, replace_placeholders

logger = logging.getLogger(__name__)

DEFAULT_EMAIL_TEMPLATES: List[Dict[str, str]] = [
    {
        "name": "welcome",
        "title": "Benvenuto",
        "description": "Email di benvenuto per nuovi pazienti.",
        "category": "Onboarding",
        "subject": "Benvenuto in {{clinicName}}",
        "body": "Ciao {{patientName}},\n\nBenvenuto nello studio {{clinicName}}.\n\n{{customNote}}\n\n{{button}}\n\nPer maggiori informazioni visita {{websiteUrl}}.",
        "button_color": "#059669",
    },
    {
        "name": "appointment-reminder",
        "title": "Promemoria appuntamento",
        "description": "Promemoria per appuntamenti programmati.",
        "category": "Promemoria",
        "subject": "Promemoria appuntamento {{appointmentDate}}",
        "body": "Ciao {{patientName}},\n\nTi ricordiamo il tuo appuntamento il {{appointmentDate}} alle {{appointmentTime}} con {{doctorName}}.\n\n{{button}}\n\nA presto,\n{{clinicName}}.",
        "button_color": "#0f766e",
    },
    {
        "name": "follow-up",
        "title": "Follow-up",
        "description": "Messaggio di follow-up dopo la visita.",
        "category": "Post-visita",
        "subject": "Come è andata la visita?",
        "body": "Ciao {{patientName}},\n\nGrazie per la visita presso {{clinicName}}.\nSe hai bisogno di altro supporto, rispondi a questa email.\n\n{{customNote}}\n\n{{button}}",
        "button_color": "#1d4ed8",
    },
    {
        "name": "invoice-ready",
        "title": "Fattura pronta",
        "description": "Avviso che la fattura è disponibile.",
        "category": "Billing",
        "subject": "La tua fattura è disponibile",
        "body": "Ciao {{patientName}},\n\nLa tua fattura è pronta.\n\n{{button}}\n\nGrazie,\n{{clinicName}}.",
        "button_color": "#16a34a",
    },
]

PREVIEW_DATA: Dict[str, str] = {
    "patientName": "Mario Rossi",
    "doctorName": "Dr. Giulia Bianchi",
    "appointmentDate": "12/03/2026",
    "appointmentTime": "09:30",
    "clinicName": CLINIC_NAME,
    "websiteUrl": FRONTEND_URL,
    "customNote": "Ricorda di arrivare 10 minuti prima.",
}


def base_template_data() -> Dict[str, str]:
    """Placeholders available in every email."""
    return {
        "clinicName": CLINIC_NAME,
        "websiteUrl": FRONTEND_URL,
        "customNote": "",
        "button": "",
    }


class EmailTemplateService:
    """Service class for email templates."""

    @staticmethod
    def ensure_default_templates(db: Session) -> None:
        """Insert missing default templates. Existing templates are never overwritten."""
        existing = {name for (name,) in db.query(EmailTemplate.name).all()}
        missing = [t for t in DEFAULT_EMAIL_TEMPLATES if t["name"] not in existing]
        for template in missing:
            db.add(EmailTemplate(**template))
        if missing:
            db.commit()
            logger.info(f"Inserted default email templates: {[t['name'] for t in missing]}")

    @staticmethod
    def list_templates(db: Session) -> List[EmailTemplate]:
        EmailTemplateService.ensure_default_templates(db)
        return db.query(EmailTemplate).order_by(EmailTemplate.category, EmailTemplate.name).all()

    @staticmethod
    def get_by_name(db: Session, name: str) -> Optional[EmailTemplate]:
        """
        Resolve a template by exact name, then by id, then by case-insensitive name.
        """
        normalized = (name or "").strip()
        if not normalized:
            return None
        EmailTemplateService.ensure_default_templates(db)

        template = db.query(EmailTemplate).filter(EmailTemplate.name == normalized).first()
        if template is None and normalized.isdigit():
            template = db.query(EmailTemplate).filter(EmailTemplate.id == int(normalized)).first()
        if template is None:
            template = db.query(EmailTemplate).filter(
                func.lower(EmailTemplate.name) == normalized.lower()
            ).first()
        return template

    @staticmethod
    def update_template(
        db: Session,
        actor,
        name: str,
        subject: str,
        body: str,
        button_color: Optional[str] = None,
    ) -> EmailTemplate:
        if not (subject or "").strip() or not (body or "").strip():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Oggetto e testo sono obbligatori"
            )
        template = EmailTemplateService.get_by_name(db, name)
        if template is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Template email non trovato"
            )
        template.subject = subject
        template.body = body
        template.button_color = button_color or None
        AuditService.log_audit(db, actor, "emailTemplate.updated", "EmailTemplate", template.id, {"name": template.name})
        db.commit()
        return template

    @staticmethod
    def render(
        template: EmailTemplate,
        data: Dict[str, str],
        subject_override: Optional[str] = None,
        body_override: Optional[str] = None,
    ) -> Dict[str, str]:
        """Render subject, text body and HTML for a template."""
        values = {**base_template_data(), **data}
        subject = replace_placeholders(subject_override if subject_override is not None else template.subject, values)
        body = replace_placeholders(body_override if body_override is not None else template.body, values)
        html = render_email_html(body, template.button_color, values.get("clinicName"))
        return {"subject": subject, "body": body, "html": html}

    @staticmethod
    def send_email_template(
        db: Session,
        to: str,
        template_name: str,
        data: Dict[str, str],
        subject_override: Optional[str] = None,
        body_override: Optional[str] = None,
    ) -> None:
        """
        Render a template and send it.

        Raises:
            HTTPException: 404 if the template does not exist
            NotificationDeliveryError: delivery failed
        """
        template = EmailTemplateService.get_by_name(db, template_name)
        if template is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Template email non trovato"
            )
        rendered = EmailTemplateService.render(template, data, subject_override, body_override)
        EmailService.send_email_with_html(to, rendered["subject"], rendered["body"], rendered["html"])

    @staticmethod
    def send_test_email(
        db: Session,
        to: str,
        template_name: str,
        subject: Optional[str] = None,
        body: Optional[str] = None,
        button_color: Optional[str] = None,
    ) -> None:
        """Send a template filled with preview data, including a sample button."""
        data = {
            **PREVIEW_DATA,
            "button": create_button("Apri dettaglio", FRONTEND_URL, button_color),
        }
        EmailTemplateService.send_email_template(db, to, template_name, data, subject, body)


class SmsTemplateService:
    """Service class for SMS templates."""

    @staticmethod
    def list_templates(db: Session) -> List[SmsTemplate]:
        return db.query(SmsTemplate).order_by(SmsTemplate.name).all()

    @staticmethod
    def create_template(db: Session, actor, name: str, body: str) -> SmsTemplate:
        name = (name or "").strip()
        body = (body or "").strip()
        if not name or not body:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Nome e testo sono obbligatori"
            )
        template = SmsTemplate(name=name, body=body)
        db.add(template)
        db.flush()
        AuditService.log_audit(db, actor, "smsTemplate.created", "SmsTemplate", template.id, {"name": name})
        db.commit()
        return template

    @staticmethod
    def delete_template(db: Session, actor, template_id: int) -> None:
        template = db.query(SmsTemplate).filter(SmsTemplate.id == template_id).first()
        if template is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Template SMS non trovato"
            )
        db.delete(template)
        AuditService.log_audit(db, actor, "smsTemplate.deleted", "SmsTemplate", template_id)
        db.commit()

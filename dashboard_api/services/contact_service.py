"""
Trade Dashboard - Contact Form Service
"""

import logging
import re
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard_api.models.db_models import ContactMessage

logger = logging.getLogger(__name__)

BUNDLE_PERSONA = "2-in-1 Trader's Essential Bundle"

ALLOWED_PERSONAS = {
    BUNDLE_PERSONA,
    "ALGO Simulator",
    "Both / Not sure",
    "Select a product",
}

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
BUNDLE_PATTERN = re.compile(r"^2\s*-?\s*in\s*-?\s*1\s+trader'?s?\s+essential\s+bundle$", re.IGNORECASE)


class ContactValidationError(ValueError):
    """Submission rejected; message is user-facing."""


def canonicalize_persona(persona: Optional[str]) -> str:
    """Normalize quotes, dashes and spacing; map bundle spellings to one name."""
    if not persona:
        return ""
    value = re.sub("[\u2018\u2019\u2032]", "'", str(persona))
    value = re.sub("[\u2010-\u2015]", "-", value)
    value = re.sub(r"\s+", " ", value).strip()
    if BUNDLE_PATTERN.match(value):
        return BUNDLE_PERSONA
    return value


def _text(data: Dict[str, Any], key: str) -> str:
    return str(data.get(key) or "").strip()


def _is_phone_like(value: str) -> bool:
    return len(re.sub(r"\D", "", value or "")) >= 8


def validate_contact(data: Dict[str, Any]) -> str:
    """
    Validate a submission.

    Returns:
        Canonical persona.

    Raises:
        ContactValidationError: With the first problem found.
    """
    if not _text(data, 'first_name'):
        raise ContactValidationError("firstName is required")
    if not _text(data, 'last_name'):
        raise ContactValidationError("lastName is required")
    if not EMAIL_PATTERN.match(_text(data, 'email')):
        raise ContactValidationError("Valid email is required")
    if _text(data, 'company') and not _is_phone_like(_text(data, 'company')):
        raise ContactValidationError("Mobile number looks invalid")

    persona = canonicalize_persona(data.get('persona'))
    if persona not in ALLOWED_PERSONAS:
        raise ContactValidationError("Please select a valid product")

    if data.get('agree') is not True:
        raise ContactValidationError("You must agree to Terms & Privacy")
    if _text(data, 'website'):
        raise ContactValidationError("Spam detected")  # honeypot field
    return persona


class ContactService:
    """Stores contact form submissions."""

    async def submit(
        self,
        db: AsyncSession,
        data: Dict[str, Any],
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
        referer: Optional[str] = None
    ) -> Tuple[int, str]:
        """
        Validate and store a submission.

        Returns:
            (message id, canonical persona)

        Raises:
            ContactValidationError: Invalid submission.
            SQLAlchemyError: Write failed.
        """
        persona = validate_contact(data)

        message = ContactMessage(
            first_name=_text(data, 'first_name'),
            last_name=_text(data, 'last_name'),
            email=_text(data, 'email').lower(),
            mobile=_text(data, 'company'),
            persona=persona,
            persona_label=_text(data, 'persona_label') or None,
            message=_text(data, 'message'),
            agree=True,
            ip=ip,
            user_agent=user_agent,
            referer=referer,
        )
        db.add(message)
        try:
            await db.commit()
            await db.refresh(message)
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"[CONTACT] Failed to store submission: {e}")
            raise

        logger.info(f"[CONTACT] Stored message {message.id} ({persona})")
        return message.id, persona


# Global service instance
contact_service = ContactService()

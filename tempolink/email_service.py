"""
Transactional email via Resend.

Emails are rendered from templates stored in Resend; this module only picks
the template and fills its variables.
"""

import logging
from typing import Optional

import resend

from .config import APP_URL, INVITE_TEMPLATE_ID, RESEND_API_KEY, RESEND_FROM_EMAIL, RESEND_FROM_NAME
from .models import Invite, User

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class EmailSendError(Exception):
    """Raised when Resend rejects or fails a send"""


def get_sender() -> str:
    return f"{RESEND_FROM_NAME} <{RESEND_FROM_EMAIL}>"


def send_template_email(to: str, template_id: str, variables: dict, subject: Optional[str] = None) -> dict:
    """Send a Resend-hosted template to a single recipient"""
    if not RESEND_API_KEY:
        raise EmailSendError("RESEND_API_KEY not configured")

    email_data = {
        "from": get_sender(),
        "to": [to],
        "template": {"id": template_id, "variables": variables},
    }
    if subject:
        email_data["subject"] = subject

    try:
        logger.info(f"📧 Sending '{template_id}' email via Resend to: {to}")
        response = resend.Emails.send(email_data)
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {to}: {e}")
        raise EmailSendError(f"Failed to send email: {str(e)}") from e


def build_signup_url(invite: Invite) -> str:
    return f"{APP_URL.rstrip('/')}/sign-up?role={invite.role.lower()}&invitationId={invite.id}"


def build_invite_variables(invite: Invite, teacher_user: Optional[User]) -> dict:
    teacher_name = teacher_user.full_name if teacher_user else ""
    return {
        "student_name": invite.full_name,
        "teacher_name": teacher_name or "Your teacher",
        "you": "your child" if invite.role == "PARENT" else "you",
        "signup_url": build_signup_url(invite),
    }


def send_invite_email(invite: Invite, teacher_user: Optional[User]) -> dict:
    """Invite a prospective student or parent to sign up with their teacher"""
    return send_template_email(
        to=invite.email,
        template_id=INVITE_TEMPLATE_ID,
        variables=build_invite_variables(invite, teacher_user),
    )

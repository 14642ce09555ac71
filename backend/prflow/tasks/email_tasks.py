"""PRFlow — Outbound email Celery tasks."""
import logging
import smtplib
from email.message import EmailMessage

from prflow.config import get_settings
from prflow.worker import celery_app

logger = logging.getLogger(__name__)


def build_approval_request_email(
    recipients: list[str],
    requisition_number: str,
    department: str,
    location: str,
    approval_link: str,
) -> EmailMessage:
    settings = get_settings()
    msg = EmailMessage()
    msg["Subject"] = f"Purchase request {requisition_number} awaiting approval"
    msg["From"] = settings.EMAIL_FROM
    msg["To"] = ", ".join(recipients)
    msg.set_content(
        f"A new purchase request {requisition_number} has been submitted for "
        f"{department} ({location}) and is awaiting approval.\n\n"
        f"Review it here: {approval_link}\n"
    )
    return msg


@celery_app.task(bind=True, max_retries=3, default_retry_delay=60)
def send_approval_request_email(
    self,
    recipients: list[str],
    requisition_number: str,
    department: str,
    location: str,
    approval_link: str,
) -> None:
    """Email the approvers of a department/location about a new request."""
    settings = get_settings()
    msg = build_approval_request_email(recipients, requisition_number, department, location, approval_link)

    if not settings.SMTP_HOST:
        logger.info("[EMAIL SIMULATION] To %s: %s", msg["To"], msg["Subject"])
        return

    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=10) as smtp:
            smtp.starttls()
            if settings.SMTP_USER:
                smtp.login(settings.SMTP_USER, settings.SMTP_PASSWORD or "")
            smtp.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        delay = (2 ** self.request.retries) * 30
        logger.warning("Email for %s failed, retrying in %ss: %s", requisition_number, delay, exc)
        raise self.retry(exc=exc, countdown=delay)
    logger.info("Approval email for %s sent to %d recipients", requisition_number, len(recipients))

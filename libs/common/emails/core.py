"""
Core email sending utilities over SMTP.
"""

import asyncio
import smtplib
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional, Sequence, Union

from libs.common.config import get_settings
from libs.common.logging import get_logger

logger = get_logger(__name__)


def split_recipients(value: Union[str, Sequence[str], None]) -> list[str]:
    """Accept a comma separated setting or a list of addresses."""
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [address.strip() for address in value if address and address.strip()]


def _deliver(sender: str, recipients: list[str], message: str) -> None:
    """Blocking SMTP conversation; run in a worker thread."""
    settings = get_settings()
    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as server:
        if settings.SMTP_STARTTLS:
            server.starttls()
        if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
            server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
        server.sendmail(sender, recipients, message)


async def send_email(
    to_email: Union[str, Sequence[str]],
    subject: str,
    body: str,
    html_body: Optional[str] = None,
    from_email: Optional[str] = None,
    from_name: Optional[str] = None,
    attachment: Optional[bytes] = None,
    attachment_name: Optional[str] = None,
) -> bool:
    """
    Send an email over the configured SMTP relay.

    Args:
        to_email: Recipient address, or several
        subject: Email subject line
        body: Plain text body
        html_body: Optional HTML body (if not provided, plain text is used)
        from_email: Sender email (defaults to DEFAULT_FROM_EMAIL)
        from_name: Sender name (defaults to DEFAULT_FROM_NAME)
        attachment: Optional PDF bytes to attach
        attachment_name: File name for the attachment

    Returns:
        True if email was sent successfully, False otherwise
    """
    settings = get_settings()
    recipients = split_recipients(to_email)
    if not recipients:
        logger.warning(f"No recipients for email: {subject}")
        return False

    if not settings.SMTP_HOST:
        logger.warning("SMTP_HOST not configured - email not sent")
        logger.info(f"Would have sent email to {recipients}: {subject}")
        return False

    sender_email = from_email or settings.DEFAULT_FROM_EMAIL
    sender_name = from_name or settings.DEFAULT_FROM_NAME

    try:
        if html_body:
            content = MIMEMultipart("alternative")
            content.attach(MIMEText(body, "plain"))
            content.attach(MIMEText(html_body, "html"))
        else:
            content = MIMEText(body, "plain")

        if attachment:
            msg = MIMEMultipart("mixed")
            msg.attach(content)
            part = MIMEApplication(attachment, _subtype="pdf")
            part.add_header(
                "Content-Disposition",
                "attachment",
                filename=attachment_name or "attachment.pdf",
            )
            msg.attach(part)
        else:
            msg = content

        msg["Subject"] = subject
        msg["From"] = f"{sender_name} <{sender_email}>"
        msg["To"] = ", ".join(recipients)

        logger.info(f"Sending email to {recipients}: {subject}")

        await asyncio.to_thread(_deliver, sender_email, recipients, msg.as_string())

        logger.info(f"Email sent successfully to {recipients}")
        return True

    except smtplib.SMTPAuthenticationError as e:
        logger.error(f"SMTP authentication failed: {e}")
        return False
    except smtplib.SMTPException as e:
        logger.error(f"SMTP error sending email: {e}")
        return False
    except OSError as e:
        logger.error(f"Failed to send email: {type(e).__name__}: {e}")
        return False

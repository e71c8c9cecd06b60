import logging
from email.utils import parseaddr
from typing import Dict, List, Optional

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import (
    Cc,
    From,
    Header,
    HtmlContent,
    Mail,
    PlainTextContent,
    ReplyTo,
    Subject,
    To,
)

from devicewatch.core.settings import settings
from devicewatch.services.audit import log_email_send

logger = logging.getLogger("devicewatch.email")

# SendGrid rejects these as custom headers; they map onto message fields
_RESERVED_HEADERS = {"reply-to", "cc"}


def get_sendgrid_client() -> Optional[SendGridAPIClient]:
    """Get SendGrid client if configured and log diagnostics (without leaking key)."""
    api_key = settings.sendgrid_api_key
    if not api_key:
        logger.warning("[email] SENDGRID_API_KEY missing from environment")
        return None
    logger.debug(f"[email] SendGrid key loaded (length={len(api_key)})")
    if api_key.startswith("your_"):
        logger.warning("[email] SENDGRID_API_KEY appears to be a placeholder (starts with 'your_')")
        return None
    try:
        return SendGridAPIClient(api_key)
    except Exception as e:
        logger.error(f"[email] Failed to instantiate SendGrid client: {e}")
        return None


def build_message(
    recipients: List[str],
    subject: str,
    body: str,
    headers: Dict[str, str],
    html: Optional[str] = None,
    from_email: Optional[str] = None,
) -> Mail:
    message = Mail(
        from_email=From(from_email or settings.email_from_address, settings.site_name),
        to_emails=[To(address) for address in recipients],
        subject=Subject(subject),
        plain_text_content=PlainTextContent(body),
        html_content=HtmlContent(html or body),
    )

    lowered = {address.lower() for address in recipients}
    for name, value in headers.items():
        key = name.lower()
        if key == "reply-to":
            reply_name, reply_address = parseaddr(value)
            if reply_address:
                message.reply_to = ReplyTo(reply_address, reply_name or None)
        elif key == "cc":
            # SendGrid refuses an address that appears in both To and Cc
            if value.lower() not in lowered:
                message.add_cc(Cc(value))
        elif key not in _RESERVED_HEADERS:
            message.add_header(Header(name, value))
    return message


def send_security_email(
    recipients: List[str],
    subject: str,
    body: str,
    headers: Optional[Dict[str, str]] = None,
    html: Optional[str] = None,
    from_email: Optional[str] = None,
) -> bool:
    """Send one message to all ``recipients``. Never raises.

    Logging levels:
    - INFO: success
    - WARNING: configuration issues / skipped send
    - ERROR: failed send attempt with response diagnostics
    """
    diagnostics = {
        "to": len(recipients),
        "subject": subject[:120],
        "from_default": settings.email_from_address,
    }
    if not recipients:
        logger.warning(f"[email] Skipping send (no recipients) diagnostics={diagnostics}")
        return False

    client = get_sendgrid_client()
    if not client:
        logger.warning(f"[email] Skipping send (client unavailable) diagnostics={diagnostics}")
        log_email_send("new_device", recipients=len(recipients), sent=False)
        return False

    try:
        message = build_message(recipients, subject, body, headers or {}, html, from_email)
        logger.debug(
            f"[email] Sending message payload_summary={{'to': {len(recipients)}, "
            f"'subject': {subject[:120]!r}, 'plain_len': {len(body)}}}"
        )
        response = client.send(message)

        body_snippet = None
        try:
            if getattr(response, "body", None):
                raw = response.body.decode() if hasattr(response.body, "decode") else str(response.body)
                body_snippet = raw[:500]
        except Exception as decode_err:  # pragma: no cover
            body_snippet = f"<decode_error {decode_err}>"

        status = getattr(response, "status_code", None)
        if status in (200, 202):
            logger.info(f"[email] Sent to={len(recipients)} recipients status={status}")
            log_email_send("new_device", recipients=len(recipients), sent=True)
            return True

        logger.error(f"[email] Failed send status={status} body_snippet={body_snippet}")
        log_email_send("new_device", recipients=len(recipients), sent=False)
        return False
    except Exception as e:
        logger.error(f"[email] Exception during send: {e}", exc_info=True)
        log_email_send("new_device", recipients=len(recipients), sent=False)
        return False


def email_configured() -> bool:
    return get_sendgrid_client() is not None

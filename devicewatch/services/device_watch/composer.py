"""
Notification composer for new-device advisories.

Builds the subject, plain body, HTML alternative and headers for one
notification. The plain body is the source of truth; the HTML version is
rendered from its paragraphs.
"""

import html
import logging
import os
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from email_validator import EmailNotValidError, validate_email
from jinja2 import Environment, FileSystemLoader, select_autoescape

from .types import ComposedMessage, DecisionContext, Identity

logger = logging.getLogger("devicewatch.device_watch")

DEFAULT_SUBJECT_TEMPLATE = (
    "[{site_name}] Automated security advisory: {display_name} has logged in "
    "from an unknown device"
)

# Positional fields:
# 0 display name, 1 site name, 2 site URL, 3 remote address, 4 hostname,
# 5 location, 6 user agent, 7 login name, 8 install date
DEFAULT_MESSAGE_TEMPLATE = """Hello,

This is an automated email to all {1} site moderators to inform you that {0} has logged into {2} from a device that we don't recognize or that had last been used before {8} when this monitoring was first enabled.

It's likely that {0} simply logged in from a new web browser or computer (in which case this email can be safely ignored), but there is also a chance that their account has been compromised and someone else has logged into their account.

Here are some details about the login to help verify if it was legitimate:

Username: {7}
IP Address: {3}
Hostname: {4}
Guessed Location: {5}
Browser User Agent: {6}

If you believe that this log in was unauthorized, please reply to this e-mail right away and we will work with you to remove {0}'s access.

You should also advise {0} to change their password immediately if you feel this log in was unauthorized.

Feel free to also reply to this e-mail if you have any questions whatsoever.

- {1} Security Team
"""

TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), "..", "..", "templates", "email")


def _ordinal(day: int) -> str:
    if 10 <= day % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
    return f"{day}{suffix}"


def format_install_date(timestamp: int) -> str:
    """``1792195200`` -> ``October 17th, 2026`` (UTC)."""
    dt = datetime.fromtimestamp(int(timestamp), tz=timezone.utc)
    return f"{dt.strftime('%B')} {_ordinal(dt.day)}, {dt.year}"


def site_url(app_url: str) -> str:
    return app_url if app_url.endswith("/") else app_url + "/"


def get_email_template_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(TEMPLATE_DIR),
        autoescape=select_autoescape(["html", "xml"]),
    )


def render_html(body: str, subject: str, site_name: str) -> str:
    """Render the HTML alternative; a ``<pre>`` block if the template fails."""
    paragraphs = [p.strip() for p in body.split("\n\n") if p.strip()]
    try:
        template = get_email_template_env().get_template("new_device.html")
        return template.render(subject=subject, site_name=site_name, paragraphs=paragraphs)
    except Exception as e:
        logger.error(f"[device_watch] failed to render new device email template: {e}")
        return f"<pre>{html.escape(body)}</pre>"


def is_valid_email(address: Optional[str]) -> bool:
    if not address:
        return False
    try:
        validate_email(address, check_deliverability=False)
        return True
    except EmailNotValidError:
        return False


def build_headers(identity: Identity, policy) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    if policy.reply_to_address:
        name = policy.reply_to_name
        headers["Reply-To"] = f'"{name}" <{policy.reply_to_address}>' if name else policy.reply_to_address

    cc = policy.cc_address(identity)
    if is_valid_email(cc):
        headers["Cc"] = cc
    elif cc:
        logger.info(f"[device_watch] not copying invalid address user_id={identity.id}")

    return dict(policy.headers(headers, identity) or {})


def compose(
    identity: Identity,
    context: DecisionContext,
    install_timestamp: int,
    policy,
) -> ComposedMessage:
    subject = policy.subject_template(identity).format(
        site_name=policy.site_name,
        display_name=identity.display_name,
    )
    body = policy.message_template(identity).format(
        identity.display_name,
        policy.site_name,
        site_url(policy.app_url),
        context.remote_address,
        context.hostname,
        context.location.human,
        context.user_agent,
        identity.login_name,
        format_install_date(install_timestamp),
    )
    return ComposedMessage(
        subject=subject,
        body=body,
        html=render_html(body, subject, policy.site_name),
        headers=build_headers(identity, policy),
    )


def dedupe_addresses(addresses: Iterable[Optional[str]]) -> List[str]:
    seen = set()
    result = []
    for address in addresses:
        address = (address or "").strip()
        if not address or address.lower() in seen:
            continue
        seen.add(address.lower())
        result.append(address)
    return result


def recipients(policy) -> List[str]:
    """Admin address plus moderators, passed through the policy hook."""
    base = dedupe_addresses([policy.admin_email, *policy.moderator_emails])
    return dedupe_addresses(policy.recipients(base) or [])

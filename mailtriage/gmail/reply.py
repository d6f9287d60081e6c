"""Canned replies keyed by triage category."""
import base64
import re
from email.message import EmailMessage
from typing import Mapping

from mailtriage.models import Category, Message

REPLY_TEMPLATES = {
    Category.INTERESTED: "Thank you for the opportunity. What are the next steps?",
    Category.NOT_INTERESTED: "Thanks for your response :) ",
    Category.MORE_INFORMATION: "Thanks for your response. What else could I help you with?",
}
DEFAULT_REPLY = "Thank you for your email."


def _one_line(value: str) -> str:
    """Header values may not contain CR or LF."""
    return re.sub(r"[\r\n]+", " ", value or "").strip()


def reply_text(
    category: Category,
    templates: Mapping[Category, str] = REPLY_TEMPLATES,
    default: str = DEFAULT_REPLY,
) -> str:
    """Reply body for a category; unmapped categories get the default."""
    return templates.get(category, default)


def compose_reply(
    message: Message,
    category: Category,
    templates: Mapping[Category, str] = REPLY_TEMPLATES,
    default: str = DEFAULT_REPLY,
) -> str:
    """
    Build a reply to `message` and return it encoded for messages.send.

    The result is the URL-safe base64 of the RFC 822 text with padding
    stripped, which is what the Gmail API expects in the `raw` field.
    """
    ref = _one_line(message.rfc_message_id or message.id)

    email = EmailMessage()
    email["To"] = _one_line(message.sender)
    email["Subject"] = f"Re: {_one_line(message.subject)}"
    email["In-Reply-To"] = ref
    email["References"] = ref
    email.set_content(reply_text(category, templates, default), charset="utf-8")

    return base64.urlsafe_b64encode(email.as_bytes()).decode().rstrip("=")

"""Gmail integration."""
from .auth import Authenticator
from .client import GmailClient, extract_plain_body, parse_message
from .labels import LabelManager
from .reply import compose_reply, reply_text, REPLY_TEMPLATES, DEFAULT_REPLY
from .triage import Classifier, parse_label

__all__ = [
    "Authenticator",
    "GmailClient",
    "extract_plain_body",
    "parse_message",
    "LabelManager",
    "compose_reply",
    "reply_text",
    "REPLY_TEMPLATES",
    "DEFAULT_REPLY",
    "Classifier",
    "parse_label",
]

"""Gmail API client."""
import base64
import logging
from typing import Any, Dict, Iterable, List, Optional

import httplib2
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from google.auth.exceptions import RefreshError

from mailtriage.errors import AuthError, LabelConflictError, TransportError
from mailtriage.gmail.auth import Authenticator
from mailtriage.models import Label, Message

logger = logging.getLogger(__name__)

AUTH_STATUSES = (401, 403)


def _headers_map(msg: Dict[str, Any]) -> Dict[str, str]:
    """Extract headers from Gmail message as dict."""
    headers = msg.get("payload", {}).get("headers", []) or []
    return {h["name"]: h["value"] for h in headers}


def _decode(data: str) -> str:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")


def extract_plain_body(payload: Dict[str, Any]) -> str:
    """
    Extract the plain-text body of a Gmail message payload.

    Multipart messages use the first text/plain part; single-part messages
    use the payload body. Anything else yields an empty string.
    """
    parts = payload.get("parts")
    if parts:
        part = next((p for p in parts if p.get("mimeType") == "text/plain"), None)
        if part and part.get("body", {}).get("data"):
            return _decode(part["body"]["data"])
        return ""
    data = payload.get("body", {}).get("data")
    return _decode(data) if data else ""


def parse_message(msg: Dict[str, Any]) -> Message:
    """Build a Message from a full-format Gmail API resource."""
    headers = _headers_map(msg)
    label_ids = msg.get("labelIds", []) or []
    return Message(
        id=msg["id"],
        thread_id=msg.get("threadId", ""),
        sender=headers.get("From") or "Unknown Sender",
        subject=headers.get("Subject") or "No Subject",
        body=extract_plain_body(msg.get("payload", {}) or {}),
        unread="UNREAD" in label_ids,
        rfc_message_id=headers.get("Message-ID") or headers.get("Message-Id") or "",
    )


def _translate(e: Exception, action: str) -> Exception:
    """Map a Google client error onto AuthError / TransportError."""
    if isinstance(e, RefreshError):
        return AuthError(f"{action}: {e}")
    if isinstance(e, HttpError):
        status = getattr(e.resp, "status", None)
        status = int(status) if status is not None else None
        if status in AUTH_STATUSES:
            return AuthError(f"{action}: HTTP {status}")
        if status == 409:
            return LabelConflictError(f"{action}: HTTP 409", status=status)
        return TransportError(f"{action}: HTTP {status}: {e}", status=status)
    return TransportError(f"{action}: {e}")


class GmailClient:
    """Thin wrapper over the Gmail v1 REST API for a single mailbox."""

    def __init__(self, authenticator: Authenticator, user_id: str = "me"):
        self.authenticator = authenticator
        self.user_id = user_id

    def _service(self):
        # httplib2 is not thread-safe, so every call gets its own service object.
        return build(
            "gmail", "v1",
            credentials=self.authenticator.credentials,
            cache_discovery=False,
        )

    def _execute(self, action: str, make_request):
        try:
            return make_request(self._service()).execute()
        except (HttpError, RefreshError, httplib2.HttpLib2Error, OSError) as e:
            raise _translate(e, action) from e

    def list_unread(self, max_results: int = 10) -> List[str]:
        """List ids of unread messages, newest first."""
        res = self._execute(
            "list unread",
            lambda svc: svc.users().messages().list(
                userId=self.user_id,
                labelIds=["UNREAD"],
                maxResults=max_results,
            ),
        )
        return [m["id"] for m in res.get("messages", []) or []]

    def get_message(self, message_id: str) -> Message:
        """Fetch a message with headers and body."""
        msg = self._execute(
            f"get message {message_id}",
            lambda svc: svc.users().messages().get(userId=self.user_id, id=message_id, format="full"),
        )
        return parse_message(msg)

    def send_raw(self, raw: str, thread_id: Optional[str] = None) -> None:
        """Send an already-encoded RFC 822 message, optionally inside a thread."""
        body = {"raw": raw}
        if thread_id:
            body["threadId"] = thread_id
        self._execute(
            "send message",
            lambda svc: svc.users().messages().send(userId=self.user_id, body=body),
        )

    def modify_labels(
        self,
        message_id: str,
        add: Iterable[str] = (),
        remove: Iterable[str] = (),
    ) -> None:
        """Add and remove label ids on a message."""
        body = {"addLabelIds": list(add), "removeLabelIds": list(remove)}
        self._execute(
            f"modify message {message_id}",
            lambda svc: svc.users().messages().modify(userId=self.user_id, id=message_id, body=body),
        )

    def mark_as_read(self, message_id: str) -> None:
        """Mark a message as read."""
        self.modify_labels(message_id, remove=["UNREAD"])

    def list_labels(self) -> List[Label]:
        """List every label in the mailbox, system labels included."""
        res = self._execute(
            "list labels",
            lambda svc: svc.users().labels().list(userId=self.user_id),
        )
        return [Label(id=l["id"], name=l["name"]) for l in res.get("labels", []) or []]

    def create_label(self, name: str) -> Label:
        """Create a user label visible in both the label and message lists."""
        res = self._execute(
            f"create label {name!r}",
            lambda svc: svc.users().labels().create(
                userId=self.user_id,
                body={
                    "name": name,
                    "labelListVisibility": "labelShow",
                    "messageListVisibility": "show",
                },
            ),
        )
        logger.info(f"Created label: {name}")
        return Label(id=res["id"], name=res.get("name", name))

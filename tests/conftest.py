"""Shared test doubles for the mail triage pipeline."""
import itertools
import threading

import pytest

from mailtriage.models import Category, Label, Message


class FakeTransport:
    """In-memory mailbox implementing the GmailClient surface."""

    def __init__(self, messages=None):
        self.messages = {m.id: m for m in (messages or [])}
        self.labels = [Label(id="INBOX", name="INBOX"), Label(id="UNREAD", name="UNREAD")]
        self.sent = []
        self.modified = []
        self.created = []
        self.list_calls = 0
        self.list_errors = []
        self.get_errors = {}
        self.send_errors = {}
        self.modify_errors = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def list_unread(self, max_results=10):
        self.list_calls += 1
        if self.list_errors:
            raise self.list_errors.pop(0)
        return [m.id for m in self.messages.values() if m.unread][:max_results]

    def get_message(self, message_id):
        if message_id in self.get_errors:
            raise self.get_errors[message_id]
        return self.messages[message_id]

    def send_raw(self, raw, thread_id=None):
        self.sent.append((raw, thread_id))
        if thread_id in self.send_errors:
            raise self.send_errors[thread_id]

    def modify_labels(self, message_id, add=(), remove=()):
        if message_id in self.modify_errors:
            raise self.modify_errors[message_id]
        self.modified.append((message_id, list(add), list(remove)))
        if "UNREAD" in remove:
            self.messages[message_id].unread = False

    def mark_as_read(self, message_id):
        self.modify_labels(message_id, remove=["UNREAD"])

    def list_labels(self):
        with self._lock:
            return list(self.labels)

    def create_label(self, name):
        with self._lock:
            label = Label(id=f"Label_{next(self._ids)}", name=name)
            self.labels.append(label)
            self.created.append(name)
            return label


class FakeAuthenticator:
    def __init__(self, refresh_error=None):
        self.load_calls = 0
        self.refresh_calls = 0
        self.refresh_error = refresh_error

    def load_credentials(self):
        self.load_calls += 1
        return object()

    def refresh(self):
        self.refresh_calls += 1
        if self.refresh_error:
            raise self.refresh_error
        return object()


class KeywordClassifier:
    """Deterministic stand-in for the LLM classifier."""

    def __init__(self):
        self.seen = []

    def classify(self, text):
        self.seen.append(text)
        text = text.lower()
        if not text:
            return Category.OTHER
        if "next steps" in text:
            return Category.INTERESTED
        if "no thanks" in text:
            return Category.NOT_INTERESTED
        if "?" in text:
            return Category.MORE_INFORMATION
        return Category.OTHER


def make_message(n, body="Looking forward to next steps", sender="a@x.com", subject="Hi"):
    return Message(
        id=f"m{n}",
        thread_id=f"t{n}",
        sender=sender,
        subject=subject,
        body=body,
        rfc_message_id=f"<orig-{n}@x.com>",
    )


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def authenticator():
    return FakeAuthenticator()


@pytest.fixture
def classifier():
    return KeywordClassifier()

"""Data models shared across the pipeline."""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Category(str, Enum):
    """Closed set of triage categories. Values double as mailbox label names."""
    INTERESTED = "Interested"
    NOT_INTERESTED = "Not Interested"
    MORE_INFORMATION = "More Information"
    OTHER = "Other"

    @classmethod
    def parse(cls, text: Optional[str]) -> "Category":
        """Map free-form classifier output to a category, falling back to OTHER."""
        if not text:
            return cls.OTHER
        key = _normalize(text)
        for member in cls:
            if key in (_normalize(member.value), _normalize(member.name)):
                return member
        return cls.OTHER

    def __str__(self) -> str:
        return self.value


def _normalize(text: str) -> str:
    return re.sub(r"[^a-z]", "", text.lower())


@dataclass
class Message:
    """A fetched mailbox message reduced to what triage needs."""
    id: str
    thread_id: str
    sender: str
    subject: str
    body: str
    unread: bool = True
    rfc_message_id: str = ""  # Message-ID header, used for threading


@dataclass
class Label:
    """Mailbox label."""
    id: str
    name: str


@dataclass
class StepResult:
    """Outcome of one side effect on one message."""
    ok: bool
    error: Optional[str] = None

    @classmethod
    def success(cls) -> "StepResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, error: Exception) -> "StepResult":
        return cls(ok=False, error=str(error) or type(error).__name__)


@dataclass
class ProcessedEmail:
    """A message that made it through classification, plus what happened next."""
    message: Message
    category: Category
    reply: StepResult = field(default_factory=lambda: StepResult(ok=False, error="not attempted"))
    label: StepResult = field(default_factory=lambda: StepResult(ok=False, error="not attempted"))
    marked_read: StepResult = field(default_factory=lambda: StepResult(ok=False, error="not attempted"))

    def summary(self) -> str:
        """One-line description for logs."""
        def flag(step: StepResult) -> str:
            return "ok" if step.ok else f"failed ({step.error})"

        return (
            f"{self.message.id} from {self.message.sender} -> {self.category}: "
            f"reply {flag(self.reply)}, label {flag(self.label)}, read {flag(self.marked_read)}"
        )

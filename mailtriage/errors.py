"""Error taxonomy for the triage pipeline."""
from typing import Optional


class TriageError(Exception):
    """Base class for all pipeline errors."""


class AuthError(TriageError):
    """Credential is missing, expired or rejected by the mail provider."""


class TransportError(TriageError):
    """Mail provider call failed for a reason other than authorization."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class LabelConflictError(TransportError):
    """Label creation rejected because the name already exists."""


class ClassificationError(TriageError):
    """Classifier unreachable or returned something unusable."""

"""Create-or-fetch and apply mailbox labels."""
import logging
import threading
from collections import defaultdict
from typing import Dict

from mailtriage.errors import LabelConflictError

logger = logging.getLogger(__name__)


class LabelManager:
    """
    Resolves label names to ids and files messages under them.

    Creation is serialized per label name inside this process. Another
    process creating the same label in between our list and create shows
    up as a 409 conflict, which is resolved by listing again.
    """

    def __init__(self, transport):
        self.transport = transport
        self._locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
        self._locks_guard = threading.Lock()

    def _lock_for(self, name: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks[name]

    def _find(self, name: str):
        return next((l.id for l in self.transport.list_labels() if l.name == name), None)

    def ensure_label(self, name: str) -> str:
        """Return the id of label `name`, creating it if it does not exist."""
        with self._lock_for(name):
            label_id = self._find(name)
            if label_id:
                return label_id
            try:
                return self.transport.create_label(name).id
            except LabelConflictError:
                logger.info(f"Label {name!r} was created concurrently, looking it up again")
                label_id = self._find(name)
                if not label_id:
                    raise
                return label_id

    def apply_label(self, message_id: str, label_name: str) -> None:
        """Add the label to a message and take it out of the inbox."""
        label_id = self.ensure_label(label_name)
        self.transport.modify_labels(message_id, add=[label_id], remove=["INBOX"])
        logger.info(f"Moved email {message_id} to label: {label_name}")

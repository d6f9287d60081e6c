"""Periodic polling."""
from .jobs import Poller

__all__ = ["Poller"]

"""Triage pipeline."""
from .orchestrator import TriageOrchestrator

__all__ = ["TriageOrchestrator"]

"""LLM access."""
from .client import LLMClient

__all__ = ["LLMClient"]

"""Email triage logic."""
import json
from typing import Callable

import requests

from mailtriage.errors import ClassificationError
from mailtriage.models import Category


TRIAGE_PROMPT_TEMPLATE = """\
Classify the reply below, received in answer to an outreach or job-application email.

Return ONLY valid JSON with keys:
- label: one of ["Interested","Not Interested","More Information"]
- reason: short string

Heuristics:
- "Interested" when the sender wants to move forward, schedule a call, or asks about next steps.
- "Not Interested" when the sender declines, rejects, or asks to stop.
- "More Information" when the sender asks questions or needs details before deciding.

Email:
{body}
"""

MAX_BODY_CHARS = 4000

_DECODER = json.JSONDecoder()


def parse_label(raw: str) -> Category:
    """
    Turn model output into a Category.

    Accepts a JSON object with a `label` key (optionally wrapped in prose or
    a code fence) or a bare category name. Anything else is OTHER.
    """
    raw = (raw or "").strip()
    start = raw.find("{")
    if start != -1:
        try:
            data, _ = _DECODER.raw_decode(raw, start)
        except ValueError:
            data = None
        if isinstance(data, dict):
            label = data.get("label")
            return Category.parse(label) if isinstance(label, str) else Category.OTHER
    return Category.parse(raw)


class Classifier:
    """Maps an email body to a Category using an LLM completion function."""

    def __init__(self, llm_call_fn: Callable[[str], str]):
        """
        Args:
            llm_call_fn: Function to call LLM (takes prompt string, returns response string)
        """
        self.llm_call_fn = llm_call_fn

    def classify(self, text: str) -> Category:
        """Classify `text`; empty input is OTHER without calling the model."""
        text = (text or "").strip()
        if not text:
            return Category.OTHER

        prompt = TRIAGE_PROMPT_TEMPLATE.format(body=text[:MAX_BODY_CHARS])
        try:
            raw = self.llm_call_fn(prompt)
        except requests.RequestException as e:
            raise ClassificationError(f"Classifier unavailable: {e}") from e
        except (KeyError, IndexError, ValueError) as e:
            raise ClassificationError(f"Malformed classifier response: {e}") from e
        return parse_label(raw)

"""LM Studio client."""
import logging

import requests

from mailtriage.config import LM_BASE, LM_MODEL, LM_TIMEOUT

logger = logging.getLogger(__name__)

CLASSIFIER_SYSTEM_PROMPT = "You label emails. Answer with JSON only."


class LLMClient:
    """Client for an OpenAI-compatible chat completions endpoint (LM Studio by default)."""

    def __init__(
        self,
        system_prompt: str = CLASSIFIER_SYSTEM_PROMPT,
        base_url: str = LM_BASE,
        model: str = LM_MODEL,
        timeout: float = LM_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.system_prompt = system_prompt
        self.timeout = timeout

    def complete(self, prompt: str, temperature: float = 0.0) -> str:
        """
        Send a single prompt without conversation history.

        Args:
            prompt: Complete prompt to send
            temperature: LLM temperature (default 0.0 for stable labels)

        Returns:
            LLM response text

        Raises:
            requests.RequestException: on network or HTTP errors
        """
        url = f"{self.base_url}/chat/completions"

        messages = [
            {"role": "system", "content": self.system_prompt},
            {"role": "user", "content": prompt},
        ]
        payload = {"model": self.model, "messages": messages, "temperature": temperature}

        try:
            r = requests.post(url, json=payload, timeout=self.timeout)
            r.raise_for_status()
        except requests.exceptions.HTTPError as e:
            body = e.response.text[:500] if e.response is not None else ""
            logger.error(f"LM Studio error: {e} {body}")
            raise
        return r.json()["choices"][0]["message"]["content"]

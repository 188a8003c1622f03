import logging
from typing import Protocol

import google.generativeai as genai

from .errors import NarrativeGenerationFailure

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = (
    "You write preliminary, non-diagnostic explanations of automated eye-scan screening results. "
    "Always answer with a JSON object and nothing else."
)


class TextGenerator(Protocol):
    def generate(self, prompt: str) -> str:
        ...


def _response_text(resp) -> str:
    txt = ""
    try:
        txt = (getattr(resp, "text", None) or "").strip()
    except ValueError:
        # .text raises when the candidate was blocked or has no parts
        pass
    if not txt:
        try:
            txt = (resp.candidates[0].content.parts[0].text or "").strip()
        except (AttributeError, IndexError, TypeError):
            txt = ""
    return txt


class GeminiTextGenerator:
    """Single-shot JSON generation through the Gemini API. No retries."""

    def __init__(self, api_key: str, model_name: str = "gemini-1.5-flash", temperature: float = 0.4):
        self.api_key = api_key
        self.model_name = model_name
        self.temperature = temperature

    def generate(self, prompt: str) -> str:
        if not self.api_key:
            raise NarrativeGenerationFailure("GEMINI_API_KEY is not configured.")
        genai.configure(api_key=self.api_key)
        model = genai.GenerativeModel(self.model_name, system_instruction=SYSTEM_INSTRUCTION)
        try:
            resp = model.generate_content(
                prompt,
                generation_config={
                    "response_mime_type": "application/json",
                    "temperature": self.temperature,
                },
            )
        except Exception as e:
            logger.warning("gemini %s request failed: %s", self.model_name, e)
            raise NarrativeGenerationFailure(f"{self.model_name}: {e}") from e
        txt = _response_text(resp)
        if not txt:
            raise NarrativeGenerationFailure(f"{self.model_name} returned no text")
        return txt

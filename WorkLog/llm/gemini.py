# WorkLog/llm/gemini.py
"""
Thin wrapper around the Google Gemini client.

Every question the aggregation engine asks the classifier goes through
`GeminiClient.analyze` (plain text) or `GeminiClient.analyze_json`. The
client raises on failure; callers decide how to degrade.
"""

import asyncio
import json
import logging
from typing import Any, Optional

from google import genai
from google.genai import types as genai_types

from WorkLog.config import Settings

log = logging.getLogger(__name__)


class LLMError(Exception):
    """Base class for classifier transport failures."""


class LLMUnavailableError(LLMError):
    """The client could not be configured (missing key, init failure)."""


class LLMResponseError(LLMError):
    """The classifier answered, but the answer is unusable."""


def strip_code_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:].strip()
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:].strip()
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3].strip()
    return cleaned


def parse_json_response(text: str) -> Any:
    """Parses a classifier answer as JSON, tolerating markdown fences."""
    cleaned = strip_code_fences(text)
    try:
        return json.loads(cleaned)
    except (json.JSONDecodeError, TypeError) as e:
        raise LLMResponseError(f"Non-JSON response: {cleaned[:200]!r}") from e


class GeminiClient:
    """Handles calls to Gemini with lazy client initialization."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.client: Optional[genai.Client] = None
        self._client_initialized = False

    def _initialize_client(self):
        """Lazy initialization of the LLM client."""
        if self._client_initialized:
            return

        try:
            api_key = self.settings.gemini_api_key
            if not api_key or api_key == "YOUR_API_KEY_HERE":
                raise ValueError("GEMINI_API_KEY not configured")

            self.client = genai.Client(api_key=api_key)
            log.info(f"Gemini client initialized with model target: {self.settings.model_name}")
        except Exception as e:
            log.error(f"Failed to initialize Gemini client: {e}. Classifier calls will fail closed.", exc_info=True)
            self.client = None
        self._client_initialized = True

    async def _generate(self, prompt: str, mime_type: Optional[str] = None) -> str:
        if not self._client_initialized:
            self._initialize_client()
        if not self.client:
            raise LLMUnavailableError("Gemini client not available")

        config = genai_types.GenerateContentConfig(
            temperature=self.settings.llm_temperature,
            top_p=self.settings.llm_top_p,
            response_mime_type=mime_type,
        )
        response = await asyncio.to_thread(
            self.client.models.generate_content,
            model=self.settings.model_name,
            contents=prompt,
            config=config,
        )

        if response.prompt_feedback and response.prompt_feedback.block_reason:
            raise LLMResponseError(f"Prompt blocked by Gemini: {response.prompt_feedback.block_reason}")
        if not response.text:
            raise LLMResponseError("Empty response from Gemini")
        return response.text

    async def analyze(self, prompt: str) -> str:
        """Sends a prompt and returns the stripped text answer."""
        text = await self._generate(prompt)
        return text.strip()

    async def analyze_json(self, prompt: str) -> Any:
        """Sends a prompt that expects JSON back and returns the parsed value."""
        text = await self._generate(prompt, mime_type="application/json")
        return parse_json_response(text)

"""
Gemini Provider
Raw text generation over the generateContent REST endpoint.
Prompt construction and response parsing live in enrichment.narrative.
"""

from typing import Optional

from config import get_provider_config, ENRICHMENT
from errors import ProviderError
from logging_config import get_logger
from .base import MetadataProvider

logger = get_logger(__name__)


class GeminiNarrativeProvider(MetadataProvider):
    def __init__(self, model: Optional[str] = None):
        super().__init__(provider_name="gemini")
        self._api_key = get_provider_config("gemini").get("api_key", "")
        self.model = model or ENRICHMENT["narrative_model"]

    def is_available(self) -> bool:
        return self.enabled and bool(self._api_key)

    def generate(self, prompt: str) -> str:
        """
        Send one prompt and return the first candidate's text.

        Raises:
            ProviderError: Request failed or the response carries no text
        """
        data = self._request_json(
            'POST',
            f"{self.base_url}/{self.model}:generateContent",
            params={'key': self._api_key},
            json={'contents': [{'parts': [{'text': prompt}]}]},
        )

        try:
            text = data['candidates'][0]['content']['parts'][0]['text']
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError("Invalid Gemini API response", provider=self.name, original_error=e) from e

        logger.debug(f"Gemini - Generated {len(text)} characters")
        return text

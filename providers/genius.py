"""Genius Provider - link to the lyrics page (lyrics text itself is not fetched)"""

from typing import Optional, Dict, Any

from config import get_provider_config
from logging_config import get_logger
from .base import MetadataProvider

logger = get_logger(__name__)


class GeniusProvider(MetadataProvider):
    def __init__(self):
        super().__init__(provider_name="genius")
        self._access_token = get_provider_config("genius").get("access_token", "")

    def is_available(self) -> bool:
        return self.enabled and bool(self._access_token)

    def fetch(self, coarse) -> Optional[Dict[str, Any]]:
        data = self._request_json(
            'GET',
            f"{self.base_url}/search",
            params={'q': self._format_search_term(coarse.artist, coarse.title)},
            headers={'Authorization': f"Bearer {self._access_token}"},
        )
        hits = ((data or {}).get('response') or {}).get('hits') or []
        for hit in hits:
            if hit.get('type') == 'song' and (hit.get('result') or {}).get('url'):
                return {'lyrics_url': hit['result']['url']}
        logger.debug(f"Genius - No song hit for: {coarse.artist} - {coarse.title}")
        return None

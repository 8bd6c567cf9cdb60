"""Last.fm Provider for tags, album image and wiki summary (track.getInfo)"""

import re
from typing import Optional, Dict, Any

from config import get_provider_config
from errors import ProviderError
from logging_config import get_logger
from .base import MetadataProvider

logger = get_logger(__name__)

# Last.fm error 6: "Track not found"
TRACK_NOT_FOUND = 6

_READ_MORE_LINK = re.compile(r'<a [^>]*>.*?</a>\.?', re.DOTALL)


def _clean_summary(text: Optional[str]) -> Optional[str]:
    """Drop the trailing 'Read more on Last.fm' anchor."""
    if not text:
        return None
    cleaned = _READ_MORE_LINK.sub('', text).strip()
    return cleaned or None


def _album_image(images) -> Optional[str]:
    # Images are ordered small -> mega; take the largest non-empty one
    for image in reversed(images or []):
        url = image.get('#text')
        if url:
            return url
    return None


class LastFmProvider(MetadataProvider):
    def __init__(self):
        super().__init__(provider_name="lastfm")
        self._api_key = get_provider_config("lastfm").get("api_key", "")

    def is_available(self) -> bool:
        return self.enabled and bool(self._api_key)

    def fetch(self, coarse) -> Optional[Dict[str, Any]]:
        """
        Returns:
            Dict with tags, album_title, album_image, album_mbid, wiki_summary;
            None if Last.fm does not know the track.
        """
        data = self._request_json(
            'GET',
            self.base_url,
            params={
                'method': 'track.getInfo',
                'api_key': self._api_key,
                'artist': coarse.artist,
                'track': coarse.title,
                'format': 'json',
            },
        )
        data = data or {}

        if 'error' in data:
            if data.get('error') == TRACK_NOT_FOUND:
                logger.debug(f"Last.fm - Track not found: {coarse.artist} - {coarse.title}")
                return None
            raise ProviderError(f"Last.fm error {data.get('error')}: {data.get('message')}", provider=self.name)

        track = data.get('track')
        if not track:
            return None

        album = track.get('album') or {}
        return {
            'tags': [t['name'] for t in (track.get('toptags') or {}).get('tag') or [] if t.get('name')],
            'album_title': album.get('title'),
            'album_image': _album_image(album.get('image')),
            'album_mbid': album.get('mbid') or None,
            'wiki_summary': _clean_summary((track.get('wiki') or {}).get('summary')),
        }

"""MusicBrainz Provider for community metadata (genres, credits, releases, links)"""

from typing import Optional, Dict, Any, List

from logging_config import get_logger
from .base import MetadataProvider

logger = get_logger(__name__)

LOOKUP_INCLUDES = "artist-credits+releases+genres+tags+ratings+url-rels"


def parse_recording(recording: Dict[str, Any]) -> Dict[str, Any]:
    """
    Flatten a MusicBrainz recording lookup into the fields the aggregator merges.

    Credits follow the artist-credit list: each name is filed under its
    trimmed join phrase, or "performer" when there is none.
    """
    credits: List[Dict[str, str]] = []
    for credit in recording.get('artist-credit') or []:
        name = (credit.get('artist') or {}).get('name') or credit.get('name')
        if not name:
            continue
        role = (credit.get('joinphrase') or '').strip() or 'performer'
        credits.append({'name': name, 'role': role})

    relations = []
    for rel in recording.get('relations') or []:
        url = (rel.get('url') or {}).get('resource')
        if rel.get('type') and url:
            relations.append({'type': rel['type'], 'url': url})

    releases = [
        {
            'id': release.get('id'),
            'title': release.get('title'),
            'date': release.get('date'),
            'country': release.get('country'),
        }
        for release in recording.get('releases') or []
    ]

    return {
        'recording_id': recording.get('id'),
        'genres': [g['name'] for g in recording.get('genres') or [] if g.get('name')],
        'tags': [t['name'] for t in recording.get('tags') or [] if t.get('name')],
        'rating': (recording.get('rating') or {}).get('value'),
        'relations': relations,
        'credits': credits,
        'releases': releases,
        'release_ids': [r['id'] for r in releases if r['id']],
    }


class MusicBrainzProvider(MetadataProvider):
    def __init__(self):
        super().__init__(provider_name="musicbrainz")

    def fetch(self, coarse) -> Optional[Dict[str, Any]]:
        """Search the recording by artist and title, then look it up in full."""
        recording_id = self._search_recording(coarse.artist, coarse.title)
        if not recording_id:
            logger.debug(f"MusicBrainz - No recording for: {coarse.artist} - {coarse.title}")
            return None

        recording = self._request_json(
            'GET',
            f"{self.base_url}/recording/{recording_id}",
            params={'inc': LOOKUP_INCLUDES, 'fmt': 'json'},
        )
        return parse_recording(recording or {})

    def _search_recording(self, artist: str, title: str) -> Optional[str]:
        data = self._request_json(
            'GET',
            f"{self.base_url}/recording/",
            params={'query': f"artist:{artist} AND recording:{title}", 'fmt': 'json'},
        )
        recordings = (data or {}).get('recordings') or []
        if not recordings:
            return None
        return recordings[0].get('id')

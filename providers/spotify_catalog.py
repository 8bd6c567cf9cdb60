"""
Spotify Catalog Provider
Album art, artist genres, label and popularity from the Spotify Web API
(client-credentials flow, no user login).
"""

from typing import Optional, Dict, Any

import requests
import spotipy
from spotipy.exceptions import SpotifyBaseException
from spotipy.oauth2 import SpotifyClientCredentials

from config import get_provider_config
from errors import ProviderError
from logging_config import get_logger
from .base import MetadataProvider

logger = get_logger(__name__)


class SpotifyCatalogProvider(MetadataProvider):
    def __init__(self, client: Optional[spotipy.Spotify] = None):
        super().__init__(provider_name="spotify")
        config = get_provider_config("spotify")
        self._client_id = config.get("client_id", "")
        self._client_secret = config.get("client_secret", "")
        self._max_retries = 3
        self._sp = client

    def is_available(self) -> bool:
        return self.enabled and (self._sp is not None or bool(self._client_id and self._client_secret))

    def _get_spotify_client(self) -> spotipy.Spotify:
        if self._sp is None:
            auth_manager = SpotifyClientCredentials(
                client_id=self._client_id,
                client_secret=self._client_secret,
            )
            self._sp = spotipy.Spotify(
                auth_manager=auth_manager,
                requests_timeout=self.timeout,
                retries=self._max_retries,
            )
        return self._sp

    def fetch(self, coarse) -> Optional[Dict[str, Any]]:
        """
        Look up the track by Spotify id, else search by artist and title.

        Returns:
            Dict with album_art_url, genres, label, popularity, spotify_url,
            spotify_id; None if Spotify has no such track.
        """
        sp = self._get_spotify_client()
        try:
            track = self._find_track(sp, coarse)
            if not track:
                logger.debug(f"Spotify - No track for: {coarse.artist} - {coarse.title}")
                return None

            genres = []
            artists = track.get('artists') or []
            if artists and artists[0].get('id'):
                artist = sp.artist(artists[0]['id'])
                genres = list(artist.get('genres') or [])

            label = None
            album = track.get('album') or {}
            if album.get('id'):
                label = sp.album(album['id']).get('label')
        except (SpotifyBaseException, requests.RequestException) as e:
            raise ProviderError(f"Spotify lookup failed: {e}", provider=self.name, original_error=e) from e

        images = album.get('images') or []
        return {
            'spotify_id': track.get('id'),
            'spotify_url': (track.get('external_urls') or {}).get('spotify'),
            'album_art_url': images[0]['url'] if images else None,
            'genres': genres,
            'label': label,
            'popularity': track.get('popularity'),
        }

    def _find_track(self, sp: spotipy.Spotify, coarse) -> Optional[Dict[str, Any]]:
        if coarse.spotify_id:
            return sp.track(coarse.spotify_id)

        results = sp.search(q=f"track:{coarse.title} artist:{coarse.artist}", type='track', limit=1)
        items = (results.get('tracks') or {}).get('items') or []
        return items[0] if items else None

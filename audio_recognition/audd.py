"""
AudD Recognition Module

Identifies a recorded segment via the AudD HTTP API.
Token loaded from the AUDD_API_KEY environment variable (see config.RECOGNITION).
"""

import asyncio
import time
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any

import requests

from config import RECOGNITION
from errors import ConfigurationError, NoMatchError, ServiceUnavailableError
from logging_config import get_logger
from .capture import AudioSegment

logger = get_logger(__name__)

ARTWORK_SIZE = "1000x1000"


@dataclass(frozen=True)
class CoarseIdentification:
    """
    First-pass identification from the recognition service.

    Attributes:
        title: Song title
        artist: Song artist
        album: Album name (if available)
        release_date: Release date as reported by the service
        artwork_url: Artwork bundled with the match (Apple Music, else Spotify)
        spotify_id: Spotify track id
        spotify_url: URL to play on Spotify
        apple_music_url: URL to play on Apple Music
        isrc: International Standard Recording Code
    """
    title: str
    artist: str
    album: Optional[str] = None
    release_date: Optional[str] = None
    artwork_url: Optional[str] = None
    spotify_id: Optional[str] = None
    spotify_url: Optional[str] = None
    apple_music_url: Optional[str] = None
    isrc: Optional[str] = None

    @property
    def year(self) -> Optional[str]:
        if self.release_date and len(self.release_date) >= 4:
            return self.release_date[:4]
        return None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _largest_image(images) -> Optional[str]:
    if not images:
        return None
    best = max(images, key=lambda img: img.get('width') or 0)
    return best.get('url')


def parse_result(result: Dict[str, Any]) -> CoarseIdentification:
    """Map an AudD `result` object onto a CoarseIdentification."""
    apple_music = result.get('apple_music') or {}
    spotify = result.get('spotify') or {}

    artwork_url = None
    artwork_template = (apple_music.get('artwork') or {}).get('url')
    if artwork_template:
        artwork_url = artwork_template.replace('{w}x{h}', ARTWORK_SIZE)
    if not artwork_url:
        artwork_url = _largest_image((spotify.get('album') or {}).get('images'))

    isrc = (spotify.get('external_ids') or {}).get('isrc') or apple_music.get('isrc')

    return CoarseIdentification(
        title=result.get('title') or 'Unknown',
        artist=result.get('artist') or 'Unknown',
        album=result.get('album') or None,
        release_date=result.get('release_date') or None,
        artwork_url=artwork_url,
        spotify_id=spotify.get('id'),
        spotify_url=(spotify.get('external_urls') or {}).get('spotify'),
        apple_music_url=apple_music.get('url'),
        isrc=isrc,
    )


class AuddRecognizer:
    """
    AudD audio recognition.

    One multipart POST per segment, no retries. Errors are raised as
    RecognitionError subclasses so callers can tell "no match" apart from
    "service down".
    """

    RETURN_SOURCES = "apple_music,spotify"

    def __init__(
        self,
        api_token: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self._api_token = api_token if api_token is not None else RECOGNITION["api_token"]
        self._api_url = api_url or RECOGNITION["api_url"]
        self._timeout = timeout or RECOGNITION["timeout"]

        if self._api_token:
            logger.debug(f"AudD recognizer initialized ({self._api_url})")
        else:
            logger.debug("AudD not configured (missing AUDD_API_KEY in .env)")

    def is_available(self) -> bool:
        """Check if an API token is configured."""
        return bool(self._api_token)

    async def identify(self, segment: AudioSegment) -> CoarseIdentification:
        """
        Recognize a recorded segment.

        Args:
            segment: Finished recording

        Returns:
            CoarseIdentification of the best match

        Raises:
            ConfigurationError: No API token configured (no request made)
            ServiceUnavailableError: Network failure, non-2xx, or service error payload
            NoMatchError: The service found no match
        """
        if not self._api_token:
            raise ConfigurationError("AudD API token is not configured", config_key="AUDD_API_KEY")

        wav_bytes = segment.to_wav()
        loop = asyncio.get_running_loop()
        data = await loop.run_in_executor(None, self._post, wav_bytes)
        return self._parse_response(data)

    def _post(self, wav_bytes: bytes) -> Dict[str, Any]:
        files = {
            'file': ('audio.wav', wav_bytes, 'audio/wav'),
        }
        data = {
            'api_token': self._api_token,
            'return': self.RETURN_SOURCES,
        }

        logger.debug(f"Sending to AudD ({len(wav_bytes) / 1024:.1f} KB)...")
        started = time.time()
        try:
            response = requests.post(self._api_url, files=files, data=data, timeout=self._timeout)
        except requests.RequestException as e:
            raise ServiceUnavailableError(f"Failed to connect to recognition service: {e}") from e

        if not response.ok:
            raise ServiceUnavailableError(
                f"Recognition service returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise ServiceUnavailableError(f"Recognition service returned invalid JSON: {e}") from e

        logger.debug(f"AudD responded in {time.time() - started:.2f}s")
        return payload

    @staticmethod
    def _parse_response(payload: Dict[str, Any]) -> CoarseIdentification:
        if payload.get('status') == 'error':
            error = payload.get('error') or {}
            message = error.get('error_message') or 'Failed to recognize song'
            raise ServiceUnavailableError(f"Recognition service error: {message}")

        result = payload.get('result')
        if not result:
            raise NoMatchError("No song recognized")

        identification = parse_result(result)
        logger.info(f"AudD match: {identification.artist} - {identification.title}")
        return identification

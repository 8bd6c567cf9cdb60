"""
Metadata Providers Package
This package contains the external sources used to enrich a recognized track.
"""
import sys
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from .base import MetadataProvider
from .spotify_catalog import SpotifyCatalogProvider
from .musicbrainz import MusicBrainzProvider
from .cover_art import CoverArtArchiveProvider
from .lastfm import LastFmProvider
from .wikipedia import WikipediaProvider
from .genius import GeniusProvider
from .gemini import GeminiNarrativeProvider
from . import bandcamp

__all__ = [
    'MetadataProvider',
    'SpotifyCatalogProvider',
    'MusicBrainzProvider',
    'CoverArtArchiveProvider',
    'LastFmProvider',
    'WikipediaProvider',
    'GeniusProvider',
    'GeminiNarrativeProvider',
    'bandcamp',
]

"""
Data containers for consolidated track metadata.
"""

from dataclasses import dataclass, field, asdict
from typing import Optional, List, Dict, Any


@dataclass
class RecommendedSong:
    title: str
    artist: str
    reason: str = ""


@dataclass
class Lineage:
    """Generated musical lineage. Empty values are the neutral result."""
    historical_context: str = ""
    influences: List[str] = field(default_factory=list)
    related_artists: List[str] = field(default_factory=list)
    recommended_songs: List[RecommendedSong] = field(default_factory=list)
    regions: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (
            self.historical_context
            or self.influences
            or self.related_artists
            or self.recommended_songs
            or self.regions
        )


@dataclass
class Narrative:
    liner_notes: str = ""
    lineage: Lineage = field(default_factory=Lineage)


@dataclass
class ConsolidatedMetadata:
    """
    Coarse identification plus everything enrichment could find.

    Every field after the coarse block is optional; an absent value is a
    valid outcome, not an error.
    """
    # Coarse identification
    title: str
    artist: str
    album: Optional[str] = None
    release_date: Optional[str] = None
    spotify_id: Optional[str] = None
    spotify_url: Optional[str] = None
    apple_music_url: Optional[str] = None
    isrc: Optional[str] = None

    # Enrichment
    artwork_url: Optional[str] = None
    artwork_source: Optional[str] = None
    genres: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    credits: Dict[str, List[str]] = field(default_factory=dict)
    external_links: Dict[str, str] = field(default_factory=dict)
    summary: Optional[str] = None
    rating: Optional[float] = None
    label: Optional[str] = None
    popularity: Optional[int] = None
    lyrics_url: Optional[str] = None
    bandcamp_url: Optional[str] = None
    musicbrainz_id: Optional[str] = None
    releases: List[Dict[str, Optional[str]]] = field(default_factory=list)
    liner_notes: str = ""
    lineage: Lineage = field(default_factory=Lineage)

    @classmethod
    def from_coarse(cls, coarse) -> 'ConsolidatedMetadata':
        return cls(
            title=coarse.title,
            artist=coarse.artist,
            album=coarse.album,
            release_date=coarse.release_date,
            spotify_id=coarse.spotify_id,
            spotify_url=coarse.spotify_url,
            apple_music_url=coarse.apple_music_url,
            isrc=coarse.isrc,
        )

    @property
    def year(self) -> Optional[str]:
        if self.release_date and len(self.release_date) >= 4:
            return self.release_date[:4]
        return None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready representation."""
        return asdict(self)

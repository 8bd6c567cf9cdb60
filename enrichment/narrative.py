"""
Narrative prompt and parsing.

Builds the single generative prompt for liner notes and musical lineage,
and turns the model's text back into a Narrative. Models frequently wrap
JSON in markdown fences, so those are stripped before parsing.
"""

import json
import re
from typing import Any, Dict, List, Optional, Sequence

from errors import NarrativeParseError
from logging_config import get_logger
from .models import Lineage, Narrative, RecommendedSong

logger = get_logger(__name__)

_FENCE = re.compile(r'```(?:json)?\s*\n?|\n?```', re.IGNORECASE)


def build_prompt(
    title: str,
    artist: str,
    album: Optional[str] = None,
    year: Optional[str] = None,
    genres: Optional[Sequence[str]] = None,
    tags: Optional[Sequence[str]] = None,
) -> str:
    album_part = f" from {album}" if album else ""
    year_part = f" ({year})" if year else ""
    return f"""You're a musicologist specializing in tracing musical lineages and cultural influences. Analyze {artist}'s "{title}"{album_part}{year_part} with these metadata points:
- Genres: {', '.join(genres) if genres else 'N/A'}
- Tags: {', '.join(tags) if tags else 'N/A'}

Provide:
1. Liner notes (max 150 words): witty, opinionated, focused on cultural impact and technical execution.
2. Cultural and historical context: the musical traditions, migrations and movements behind this work.
3. Key musical influences (up to 3).
4. Related artists (3-5) who share this track's musical DNA.
5. Recommended listening (3 tracks) that show how this style evolved.
6. Geographic regions where this music originated or was shaped.

Return ONLY a valid JSON object with these exact keys:
- linerNotes (string)
- historicalContext (string)
- influences (array of strings)
- relatedArtists (array of strings)
- recommendedSongs (array of objects with {{title: string, artist: string, reason: string}})
- regions (array of strings)
Do not include any markdown formatting or additional text."""


def strip_code_fences(text: str) -> str:
    """Remove ```json / ``` fences anywhere in the text."""
    return _FENCE.sub('', text).strip()


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if isinstance(item, (str, int, float)) and str(item)]


def _recommended_songs(value: Any) -> List[RecommendedSong]:
    songs = []
    if not isinstance(value, list):
        return songs
    for item in value:
        if not isinstance(item, dict) or not item.get('title') or not item.get('artist'):
            continue
        songs.append(RecommendedSong(
            title=str(item['title']),
            artist=str(item['artist']),
            reason=str(item.get('reason') or ''),
        ))
    return songs


def parse_narrative(text: str) -> Narrative:
    """
    Parse the model's JSON answer.

    Missing or mistyped keys fall back to empty values.

    Raises:
        NarrativeParseError: Text is not a JSON object
    """
    cleaned = strip_code_fences(text or '')
    try:
        data: Dict[str, Any] = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise NarrativeParseError(f"Narrative is not valid JSON: {e}", raw=text) from e
    if not isinstance(data, dict):
        raise NarrativeParseError("Narrative JSON is not an object", raw=text)

    context = data.get('historicalContext')
    notes = data.get('linerNotes')
    return Narrative(
        liner_notes=notes if isinstance(notes, str) else '',
        lineage=Lineage(
            historical_context=context if isinstance(context, str) else '',
            influences=_string_list(data.get('influences')),
            related_artists=_string_list(data.get('relatedArtists')),
            recommended_songs=_recommended_songs(data.get('recommendedSongs')),
            regions=_string_list(data.get('regions')),
        ),
    )

"""Bandcamp search link (constructed locally, no request is made)"""

from typing import Optional
from urllib.parse import quote

SEARCH_URL = "https://bandcamp.com/search?q="


def search_url(artist: str, title: str, album: Optional[str] = None) -> str:
    query = f"{artist} {title} {album or ''}".strip()
    return SEARCH_URL + quote(query, safe='')

"""
Artwork fallback chain.

Sources are tried in order and the first non-empty URL wins. Later
sources are never invoked once one has produced a URL.
"""

import inspect
from typing import Callable, List, Optional, Tuple, Any

from logging_config import get_logger

logger = get_logger(__name__)

# (source name, zero-arg callable returning a URL, None, or an awaitable of either)
ArtworkSource = Tuple[str, Callable[[], Any]]


class ArtworkResolver:
    def __init__(self, sources: Optional[List[ArtworkSource]] = None):
        self.sources: List[ArtworkSource] = list(sources or [])

    def add(self, name: str, source: Callable[[], Any]) -> 'ArtworkResolver':
        self.sources.append((name, source))
        return self

    async def resolve(self) -> Tuple[Optional[str], Optional[str]]:
        """
        Returns:
            (url, source name), or (None, None) when every source came up empty
        """
        for name, source in self.sources:
            try:
                url = source()
                if inspect.isawaitable(url):
                    url = await url
            except Exception as e:
                logger.warning(f"Artwork source {name} failed: {e}")
                continue
            if url:
                logger.debug(f"Artwork from {name}: {url}")
                return url, name
        logger.debug("No artwork found from any source")
        return None, None

"""Cover Art Archive Provider - front cover image by MusicBrainz release id"""

from typing import Optional

from logging_config import get_logger
from .base import MetadataProvider

logger = get_logger(__name__)


class CoverArtArchiveProvider(MetadataProvider):
    def __init__(self):
        super().__init__(provider_name="coverartarchive")

    def front_image(self, release_id: str) -> Optional[str]:
        """
        URL of the release's front cover.

        Returns None when the release has no artwork (404) or no image is
        flagged as front.
        """
        data = self._request_json('GET', f"{self.base_url}/release/{release_id}", allow_not_found=True)
        if not data:
            return None

        for image in data.get('images') or []:
            if image.get('front') and image.get('image'):
                return image['image']
        logger.debug(f"Cover Art Archive - No front image for release {release_id}")
        return None

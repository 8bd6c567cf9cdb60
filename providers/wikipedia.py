"""Wikipedia Provider - REST page summary for "artist title" """

from typing import Optional, Dict, Any
from urllib.parse import quote

from .base import MetadataProvider


class WikipediaProvider(MetadataProvider):
    def __init__(self):
        super().__init__(provider_name="wikipedia")

    def fetch(self, coarse) -> Optional[Dict[str, Any]]:
        page = quote(self._format_search_term(coarse.artist, coarse.title), safe='')
        data = self._request_json('GET', f"{self.base_url}/{page}", allow_not_found=True)
        if not data or not data.get('extract'):
            return None
        return {
            'extract': data['extract'],
            'page_url': ((data.get('content_urls') or {}).get('desktop') or {}).get('page'),
        }

"""
Base Provider Class
All metadata providers inherit from this base class.
"""

from typing import Optional, Dict, Any

import requests

from config import get_provider_config, USER_AGENT
from errors import ProviderError
from logging_config import get_logger

logger = get_logger(__name__)


class MetadataProvider:
    """
    Base class for enrichment sources.

    Provider methods are blocking; the aggregator runs them in an executor.
    Every HTTP or parse failure surfaces as ProviderError.
    """

    def __init__(self, provider_name: str):
        """
        Initialize the provider using configuration from config.py

        Args:
            provider_name (str): Name of the provider (must match config key)
        """
        config = get_provider_config(provider_name.lower())

        self.name = provider_name
        self.enabled = config.get('enabled', True)
        self.timeout = config.get('timeout', 10)
        self.base_url = config.get('base_url', '')

        self.session = requests.Session()
        self.session.headers.update({
            'User-Agent': USER_AGENT,
            'Accept': 'application/json',
        })

        if self.enabled:
            logger.debug(f"Initialized {self.name} provider")
        else:
            logger.info(f"{self.name} provider is disabled")

    def is_available(self) -> bool:
        """Enabled and configured. Unavailable providers are skipped, not failed."""
        return self.enabled

    def _request_json(
        self,
        method: str,
        url: str,
        allow_not_found: bool = False,
        **kwargs,
    ) -> Optional[Dict[str, Any]]:
        """
        Perform a request and decode the JSON body.

        Returns None for a 404 when allow_not_found is set.

        Raises:
            ProviderError: Network failure, non-2xx status or invalid JSON
        """
        kwargs.setdefault('timeout', self.timeout)
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            raise ProviderError(f"{self.name} request failed: {e}", provider=self.name, original_error=e) from e

        if allow_not_found and response.status_code == 404:
            logger.debug(f"{self.name} - 404 Not Found: {url}")
            return None
        if not response.ok:
            raise ProviderError(f"{self.name} returned HTTP {response.status_code}", provider=self.name)

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(f"{self.name} returned invalid JSON", provider=self.name, original_error=e) from e

    def _format_search_term(self, artist: str, title: str) -> str:
        return f"{artist} {title}".strip()

    def __str__(self) -> str:
        status = "enabled" if self.enabled else "disabled"
        return f"{self.name} Provider (Status: {status})"

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name='{self.name}' enabled={self.enabled}>"

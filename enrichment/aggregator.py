"""
Metadata Aggregator

Fans a coarse identification out to every available provider, waits for
all of them to settle, then merges what came back into one
ConsolidatedMetadata. Nothing here raises: a provider that fails simply
leaves its fields empty.
"""

import asyncio
from typing import Optional, Dict, Any, Callable

from config import ENRICHMENT, is_provider_enabled
from errors import NarrativeParseError, ProviderError
from logging_config import get_logger
from providers import (
    SpotifyCatalogProvider,
    MusicBrainzProvider,
    CoverArtArchiveProvider,
    LastFmProvider,
    WikipediaProvider,
    GeniusProvider,
    GeminiNarrativeProvider,
    bandcamp,
)
from .artwork import ArtworkResolver
from .merge import union_genres, external_links, group_credits
from .models import ConsolidatedMetadata, Narrative
from .narrative import build_prompt, parse_narrative
from .settle import settle_all

logger = get_logger(__name__)


class MetadataAggregator:
    """
    Enrichment pipeline.

    Providers can be injected for testing; by default each one is built from
    config.PROVIDERS. A provider set to None (or one reporting
    is_available() == False) is skipped and its fields stay absent.
    """

    def __init__(
        self,
        spotify: Optional[SpotifyCatalogProvider] = None,
        musicbrainz: Optional[MusicBrainzProvider] = None,
        cover_art: Optional[CoverArtArchiveProvider] = None,
        lastfm: Optional[LastFmProvider] = None,
        wikipedia: Optional[WikipediaProvider] = None,
        genius: Optional[GeniusProvider] = None,
        narrator: Optional[GeminiNarrativeProvider] = None,
        provider_timeout: Optional[float] = None,
        narrative_enabled: Optional[bool] = None,
    ):
        self.spotify = spotify
        self.musicbrainz = musicbrainz
        self.cover_art = cover_art
        self.lastfm = lastfm
        self.wikipedia = wikipedia
        self.genius = genius
        self.narrator = narrator
        self.provider_timeout = provider_timeout or ENRICHMENT["provider_timeout"]
        self.narrative_enabled = (
            ENRICHMENT["narrative_enabled"] if narrative_enabled is None else narrative_enabled
        )

    @classmethod
    def from_config(cls) -> 'MetadataAggregator':
        """Build every provider that is enabled in config."""
        def build(name: str, factory: Callable):
            return factory() if is_provider_enabled(name) else None

        return cls(
            spotify=build("spotify", SpotifyCatalogProvider),
            musicbrainz=build("musicbrainz", MusicBrainzProvider),
            cover_art=build("coverartarchive", CoverArtArchiveProvider),
            lastfm=build("lastfm", LastFmProvider),
            wikipedia=build("wikipedia", WikipediaProvider),
            genius=build("genius", GeniusProvider),
            narrator=build("gemini", GeminiNarrativeProvider),
        )

    @staticmethod
    def _usable(provider) -> bool:
        return provider is not None and provider.is_available()

    async def _call(self, func: Callable, *args) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    async def enrich(self, coarse) -> ConsolidatedMetadata:
        """
        Enrich a coarse identification. Never raises.

        Args:
            coarse: CoarseIdentification from the recognition service

        Returns:
            ConsolidatedMetadata with every field the providers could supply
        """
        metadata = ConsolidatedMetadata.from_coarse(coarse)
        logger.info(f"Enriching: {coarse.artist} - {coarse.title}")

        # Fan-out
        calls = []
        for name, provider in (
            ("spotify", self.spotify),
            ("musicbrainz", self.musicbrainz),
            ("lastfm", self.lastfm),
            ("wikipedia", self.wikipedia),
            ("genius", self.genius),
        ):
            if self._usable(provider):
                calls.append((name, self._call(provider.fetch, coarse)))
            else:
                logger.debug(f"{name} unavailable, skipping")

        # Join barrier: nothing is merged until every call has settled
        settled = await settle_all(calls, timeout=self.provider_timeout)
        results: Dict[str, Dict[str, Any]] = {s.name: s.value or {} for s in settled}

        spotify = results.get("spotify", {})
        musicbrainz = results.get("musicbrainz", {})
        lastfm = results.get("lastfm", {})
        wikipedia = results.get("wikipedia", {})
        genius = results.get("genius", {})

        metadata.artwork_url, metadata.artwork_source = await self._resolve_artwork(
            coarse, spotify, lastfm, musicbrainz
        )

        # Genres: every genre and tag list; tags: tag lists only
        metadata.genres = union_genres(
            spotify.get("genres"),
            musicbrainz.get("genres"),
            musicbrainz.get("tags"),
            lastfm.get("tags"),
        )
        metadata.tags = union_genres(musicbrainz.get("tags"), lastfm.get("tags"))
        metadata.external_links = external_links(musicbrainz.get("relations"))
        metadata.credits = group_credits(musicbrainz.get("credits"))
        metadata.releases = [
            {k: release.get(k) for k in ("title", "date", "country")}
            for release in musicbrainz.get("releases") or []
        ]
        metadata.musicbrainz_id = musicbrainz.get("recording_id")
        metadata.rating = musicbrainz.get("rating")

        metadata.summary = wikipedia.get("extract") or lastfm.get("wiki_summary")
        metadata.label = spotify.get("label")
        metadata.popularity = spotify.get("popularity")
        metadata.spotify_url = metadata.spotify_url or spotify.get("spotify_url")
        metadata.spotify_id = metadata.spotify_id or spotify.get("spotify_id")
        metadata.lyrics_url = genius.get("lyrics_url")
        metadata.bandcamp_url = bandcamp.search_url(coarse.artist, coarse.title, coarse.album)

        narrative = await self._narrate(metadata)
        metadata.liner_notes = narrative.liner_notes
        metadata.lineage = narrative.lineage

        logger.info(
            f"Enriched {coarse.artist} - {coarse.title}: "
            f"{len(metadata.genres)} genres, artwork from {metadata.artwork_source or 'none'}"
        )
        return metadata

    async def _resolve_artwork(self, coarse, spotify, lastfm, musicbrainz):
        resolver = ArtworkResolver()
        resolver.add("recognition", lambda: coarse.artwork_url)
        resolver.add("spotify", lambda: spotify.get("album_art_url"))
        resolver.add("lastfm", lambda: lastfm.get("album_image"))

        release_ids = musicbrainz.get("release_ids") or []
        content_id = lastfm.get("album_mbid") or (release_ids[0] if release_ids else None)
        if content_id and self._usable(self.cover_art):
            resolver.add("coverartarchive", lambda: self._cover_art_lookup(content_id))

        return await resolver.resolve()

    async def _cover_art_lookup(self, release_id: str) -> Optional[str]:
        try:
            return await asyncio.wait_for(
                self._call(self.cover_art.front_image, release_id),
                timeout=self.provider_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Cover Art Archive timed out for release {release_id}")
        except ProviderError as e:
            logger.warning(f"Cover Art Archive failed: {e}")
        return None

    async def _narrate(self, metadata: ConsolidatedMetadata) -> Narrative:
        """One generative call for liner notes and lineage; neutral on any failure."""
        if not self.narrative_enabled or not self._usable(self.narrator):
            return Narrative()

        prompt = build_prompt(
            title=metadata.title,
            artist=metadata.artist,
            album=metadata.album,
            year=metadata.year,
            genres=metadata.genres,
            tags=metadata.tags,
        )
        try:
            text = await asyncio.wait_for(
                self._call(self.narrator.generate, prompt),
                timeout=self.provider_timeout,
            )
            return parse_narrative(text)
        except asyncio.TimeoutError:
            logger.warning("Narrative generation timed out")
        except (ProviderError, NarrativeParseError) as e:
            logger.warning(f"Narrative unavailable: {e}")
        return Narrative()

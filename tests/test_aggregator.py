"""Tests for the metadata aggregator"""
import json
from unittest.mock import MagicMock

import pytest

from enrichment.aggregator import MetadataAggregator
from enrichment.models import ConsolidatedMetadata
from errors import ProviderError


def provider(result=None, error=None, available=True):
    mock = MagicMock()
    mock.is_available.return_value = available
    if error is not None:
        mock.fetch.side_effect = error
    else:
        mock.fetch.return_value = result
    return mock


def cover_art(url=None, error=None):
    mock = MagicMock()
    mock.is_available.return_value = True
    if error is not None:
        mock.front_image.side_effect = error
    else:
        mock.front_image.return_value = url
    return mock


def narrator(text=None, error=None):
    mock = MagicMock()
    mock.is_available.return_value = True
    if error is not None:
        mock.generate.side_effect = error
    else:
        mock.generate.return_value = text
    return mock


SPOTIFY = {
    "spotify_id": "0DiWol3AO6WpXZgp0goxAV",
    "spotify_url": "https://open.spotify.com/track/0DiWol3AO6WpXZgp0goxAV",
    "album_art_url": "https://i.scdn.co/image/discovery",
    "genres": ["Rock", "Pop"],
    "label": "Virgin",
    "popularity": 81,
}

MUSICBRAINZ = {
    "recording_id": "mb-recording",
    "genres": ["house"],
    "tags": ["french house"],
    "rating": 4.5,
    "relations": [
        {"type": "streaming", "url": "https://stream.example/one"},
        {"type": "purchase", "url": "https://shop.example/buy"},
        {"type": "wikidata", "url": "https://www.wikidata.org/wiki/Q1"},
        {"type": "streaming", "url": "https://stream.example/two"},
    ],
    "credits": [
        {"name": "Daft Punk", "role": "performer"},
        {"name": "Romanthony", "role": "feat."},
    ],
    "releases": [
        {"id": "mb-release-1", "title": "Discovery", "date": "2001-03-12", "country": "GB"},
    ],
    "release_ids": ["mb-release-1"],
}

LASTFM = {
    "tags": ["Pop", "Soul"],
    "album_title": "Discovery",
    "album_image": None,
    "album_mbid": None,
    "wiki_summary": "A Last.fm summary.",
}


def make_aggregator(**overrides):
    params = dict(
        spotify=provider(SPOTIFY),
        musicbrainz=provider(MUSICBRAINZ),
        cover_art=cover_art("https://coverartarchive.org/front.jpg"),
        lastfm=provider(LASTFM),
        wikipedia=provider({"extract": "One More Time is a song by Daft Punk."}),
        genius=provider({"lyrics_url": "https://genius.com/Daft-punk-one-more-time-lyrics"}),
        narrator=narrator(error=ProviderError("no key", provider="gemini")),
        provider_timeout=2.0,
        narrative_enabled=True,
    )
    params.update(overrides)
    return MetadataAggregator(**params)


async def test_full_enrichment(coarse):
    result = await make_aggregator().enrich(coarse)

    assert isinstance(result, ConsolidatedMetadata)
    assert result.title == "One More Time"
    assert result.label == "Virgin"
    assert result.popularity == 81
    assert result.musicbrainz_id == "mb-recording"
    assert result.rating == 4.5
    assert result.summary == "One More Time is a song by Daft Punk."
    assert result.lyrics_url.startswith("https://genius.com/")
    assert result.credits == {"performer": ["Daft Punk"], "feat.": ["Romanthony"]}
    assert result.releases == [{"title": "Discovery", "date": "2001-03-12", "country": "GB"}]
    assert result.bandcamp_url == "https://bandcamp.com/search?q=Daft%20Punk%20One%20More%20Time%20Discovery"


async def test_genre_union_keeps_first_seen_order(coarse):
    aggregator = make_aggregator(
        musicbrainz=provider(None),
        lastfm=provider(dict(LASTFM, tags=["Pop", "Soul"])),
        spotify=provider(dict(SPOTIFY, genres=["Rock", "Pop"])),
    )
    result = await aggregator.enrich(coarse)
    assert result.genres == ["Rock", "Pop", "Soul"]
    assert result.tags == ["Pop", "Soul"]


async def test_genres_include_musicbrainz_genres_and_tags(coarse):
    result = await make_aggregator().enrich(coarse)
    assert result.genres == ["Rock", "Pop", "house", "french house", "Soul"]
    assert result.tags == ["french house", "Pop", "Soul"]


async def test_external_links_last_writer_wins(coarse):
    result = await make_aggregator().enrich(coarse)
    assert result.external_links == {
        "streaming": "https://stream.example/two",
        "purchase": "https://shop.example/buy",
    }


async def test_one_failing_provider_leaves_only_its_fields_empty(coarse):
    aggregator = make_aggregator(
        musicbrainz=provider(error=ProviderError("HTTP 503", provider="musicbrainz")),
    )
    result = await aggregator.enrich(coarse)

    assert result.musicbrainz_id is None
    assert result.credits == {}
    assert result.external_links == {}
    assert result.label == "Virgin"
    assert result.genres == ["Rock", "Pop", "Soul"]
    assert result.summary.startswith("One More Time")
    assert result.lyrics_url is not None


async def test_unexpected_provider_exception_is_absorbed(coarse):
    aggregator = make_aggregator(genius=provider(error=KeyError("response")))
    result = await aggregator.enrich(coarse)
    assert result.lyrics_url is None
    assert result.label == "Virgin"


async def test_unavailable_provider_is_skipped(coarse):
    spotify = provider(SPOTIFY, available=False)
    result = await make_aggregator(spotify=spotify).enrich(coarse)
    spotify.fetch.assert_not_called()
    assert result.label is None


async def test_bundled_artwork_wins(coarse):
    bundled = coarse.__class__(title=coarse.title, artist=coarse.artist, artwork_url="https://apple/1000x1000.jpg")
    archive = cover_art("https://coverartarchive.org/front.jpg")
    result = await make_aggregator(cover_art=archive).enrich(bundled)

    assert result.artwork_url == "https://apple/1000x1000.jpg"
    assert result.artwork_source == "recognition"
    archive.front_image.assert_not_called()


async def test_secondary_catalog_artwork_skips_archive(coarse):
    archive = cover_art("https://coverartarchive.org/front.jpg")
    result = await make_aggregator(cover_art=archive).enrich(coarse)

    assert result.artwork_url == "https://i.scdn.co/image/discovery"
    assert result.artwork_source == "spotify"
    archive.front_image.assert_not_called()


async def test_lastfm_album_image_before_archive(coarse):
    archive = cover_art("https://coverartarchive.org/front.jpg")
    aggregator = make_aggregator(
        spotify=provider(None),
        lastfm=provider(dict(LASTFM, album_image="https://lastfm.freetls.fastly.net/i/u/300x300/x.png")),
        cover_art=archive,
    )
    result = await aggregator.enrich(coarse)
    assert result.artwork_source == "lastfm"
    archive.front_image.assert_not_called()


async def test_archive_lookup_by_first_release_id(coarse):
    archive = cover_art("https://coverartarchive.org/front.jpg")
    result = await make_aggregator(spotify=provider(None), cover_art=archive).enrich(coarse)

    archive.front_image.assert_called_once_with("mb-release-1")
    assert result.artwork_url == "https://coverartarchive.org/front.jpg"
    assert result.artwork_source == "coverartarchive"


async def test_archive_prefers_lastfm_album_mbid(coarse):
    archive = cover_art("https://coverartarchive.org/front.jpg")
    aggregator = make_aggregator(
        spotify=provider(None),
        lastfm=provider(dict(LASTFM, album_mbid="lastfm-album-mbid")),
        cover_art=archive,
    )
    await aggregator.enrich(coarse)
    archive.front_image.assert_called_once_with("lastfm-album-mbid")


async def test_archive_skipped_without_content_id(coarse):
    archive = cover_art("https://coverartarchive.org/front.jpg")
    aggregator = make_aggregator(spotify=provider(None), musicbrainz=provider(None), cover_art=archive)
    result = await aggregator.enrich(coarse)

    archive.front_image.assert_not_called()
    assert result.artwork_url is None
    assert result.artwork_source is None


async def test_archive_failure_yields_no_artwork(coarse):
    archive = cover_art(error=ProviderError("HTTP 500", provider="coverartarchive"))
    result = await make_aggregator(spotify=provider(None), cover_art=archive).enrich(coarse)
    assert result.artwork_url is None


async def test_summary_falls_back_to_lastfm(coarse):
    result = await make_aggregator(wikipedia=provider(None)).enrich(coarse)
    assert result.summary == "A Last.fm summary."


async def test_fenced_narrative_is_merged(coarse):
    payload = {
        "linerNotes": "Pure catharsis.",
        "historicalContext": "Filter house peaks.",
        "influences": ["Chic"],
        "relatedArtists": ["Cassius"],
        "recommendedSongs": [{"title": "Lady", "artist": "Modjo", "reason": "Same loop logic"}],
        "regions": ["France"],
    }
    text = "```json\n" + json.dumps(payload) + "\n```"
    gemini = narrator(text)
    result = await make_aggregator(narrator=gemini).enrich(coarse)

    assert result.liner_notes == "Pure catharsis."
    assert result.lineage.influences == ["Chic"]
    assert result.lineage.recommended_songs[0].artist == "Modjo"
    prompt = gemini.generate.call_args.args[0]
    assert "(2000)" in prompt
    assert "Rock" in prompt


async def test_malformed_narrative_is_neutral(coarse):
    result = await make_aggregator(narrator=narrator("not json at all")).enrich(coarse)
    assert result.liner_notes == ""
    assert result.lineage.is_empty()


async def test_narrative_disabled(coarse):
    gemini = narrator("{}")
    await make_aggregator(narrator=gemini, narrative_enabled=False).enrich(coarse)
    gemini.generate.assert_not_called()


async def test_all_providers_failing_returns_coarse_only(coarse):
    boom = ProviderError("down")
    aggregator = make_aggregator(
        spotify=provider(error=boom),
        musicbrainz=provider(error=boom),
        lastfm=provider(error=boom),
        wikipedia=provider(error=boom),
        genius=provider(error=boom),
        cover_art=cover_art(error=boom),
        narrator=narrator(error=boom),
    )
    result = await aggregator.enrich(coarse)

    assert result.title == coarse.title
    assert result.artist == coarse.artist
    assert result.album == coarse.album
    assert result.artwork_url is None
    assert result.genres == []
    assert result.tags == []
    assert result.credits == {}
    assert result.external_links == {}
    assert result.summary is None
    assert result.liner_notes == ""
    assert result.lineage.is_empty()
    assert result.bandcamp_url is not None


async def test_no_providers_at_all(coarse):
    aggregator = MetadataAggregator(provider_timeout=1.0, narrative_enabled=True)
    result = await aggregator.enrich(coarse)
    assert result.title == coarse.title
    assert result.to_dict()["lineage"]["influences"] == []

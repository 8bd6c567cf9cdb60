"""
Enrichment Package
Merges results from the metadata providers into one consolidated record.
"""

from .aggregator import MetadataAggregator
from .artwork import ArtworkResolver
from .models import ConsolidatedMetadata, Lineage, Narrative, RecommendedSong
from .settle import Settled, settle_all

__all__ = [
    'MetadataAggregator',
    'ArtworkResolver',
    'ConsolidatedMetadata',
    'Lineage',
    'Narrative',
    'RecommendedSong',
    'Settled',
    'settle_all',
]

"""Federated search: text matching, relevance ranking and the aggregator."""

from .aggregator import FederatedSearchAggregator, build_metadata, passes_filters
from .ranking import RelevanceScorer, WeightTable, rank_results
from .text_utils import (
    SYNONYMS,
    expand_with_synonyms,
    highlight,
    highlight_multiple,
    is_fuzzy_match,
    levenshtein_distance,
    matched_terms,
    snippet,
)

__all__ = [
    'FederatedSearchAggregator',
    'RelevanceScorer',
    'SYNONYMS',
    'WeightTable',
    'build_metadata',
    'expand_with_synonyms',
    'highlight',
    'highlight_multiple',
    'is_fuzzy_match',
    'levenshtein_distance',
    'matched_terms',
    'passes_filters',
    'rank_results',
    'snippet',
]

"""
Search Result Ranking.

Heuristic relevance scoring for merged federated results. The score of one
item is:

    base weight of its entity type
    x exact-match boost   when the name equals a search term
    x prefix-match boost  when the name starts with a search term
    x fuzzy penalty       when the item was found only by fuzzy matching

capped at a configurable maximum. Weights live in a table keyed by entity
type so that policy can be changed (and tested) apart from merge and sort.
"""

from typing import Dict, Iterable, List, Mapping, Optional

from ..config.settings import SearchConfig, default_weights
from ..models.entities import EntityType
from ..models.search import SearchResultItem, SortField


class WeightTable:
    """
    Base relevance weight per entity type.

    Types missing from the table weigh 0.0 and therefore sort last.
    """

    def __init__(self, weights: Optional[Mapping] = None):
        source = default_weights() if weights is None else weights
        self._weights: Dict[EntityType, float] = {
            EntityType.from_string(name): float(value) for name, value in source.items()
        }

    def weight(self, entity_type: EntityType) -> float:
        return self._weights.get(entity_type, 0.0)

    def as_dict(self) -> Dict[str, float]:
        return {t.value: w for t, w in self._weights.items()}


class RelevanceScorer:
    """Scores one matched document against the search terms."""

    def __init__(self, config: Optional[SearchConfig] = None):
        self.config = config or SearchConfig()
        self.weights = WeightTable(self.config.weights)

    def score(self, entity_type: EntityType, name: Optional[str],
              terms: Iterable[str], fuzzy_only: bool = False) -> float:
        """
        Args:
            entity_type: Type of the matched document
            name: Display name of the matched document
            terms: Search terms (query plus any synonyms); empty for match-all
            fuzzy_only: True if the document matched only through fuzzy matching
        """
        score = self.weights.weight(entity_type)
        lowered_terms = [t.lower() for t in terms if t]
        if not lowered_terms:
            return min(score, self.config.max_score)

        lowered_name = (name or "").lower()
        if any(lowered_name == t for t in lowered_terms):
            score *= self.config.exact_match_boost
        if any(lowered_name.startswith(t) for t in lowered_terms):
            score *= self.config.prefix_match_boost
        if fuzzy_only:
            score *= self.config.fuzzy_match_penalty

        return min(score, self.config.max_score)


def rank_results(items: List[SearchResultItem],
                 sort_field: SortField = SortField.RELEVANCE,
                 descending: bool = True) -> List[SearchResultItem]:
    """
    Sort merged results.

    The sort is stable: items that compare equal keep the order in which
    the per-type sub-queries emitted them. Relevance sorts highest first
    regardless of ``descending``; the other fields honour it.
    """
    if sort_field is SortField.NAME:
        return sorted(items, key=lambda i: (i.name or "").lower(), reverse=descending)
    if sort_field is SortField.ENTITY_TYPE:
        order = {t: n for n, t in enumerate(EntityType)}
        return sorted(items, key=lambda i: order[i.entity_type], reverse=descending)
    return sorted(items, key=lambda i: i.relevance_score, reverse=True)

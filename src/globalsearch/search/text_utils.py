"""
Text matching helpers for federated search.

Fuzzy matching (Levenshtein), synonym expansion over a fixed IoT-domain
table, ``<mark>`` highlighting and snippet extraction. All comparisons are
case-insensitive.
"""

import re
from typing import Dict, Iterable, List, Optional

from ..constants import DEFAULT_SNIPPET_LENGTH, HIGHLIGHT_POST_TAG, HIGHLIGHT_PRE_TAG
from ..logger_config import logger


SYNONYMS: Dict[str, List[str]] = {
    "sensor": ["device", "detector", "probe", "monitor"],
    "location": ["site", "place", "facility", "building"],
    "zone": ["area", "region", "section", "space"],
    "company": ["organization", "enterprise", "business", "firm"],
    "temperature": ["temp", "thermal", "heat"],
    "humidity": ["moisture", "dampness", "wetness"],
    "pressure": ["force", "compression"],
    "active": ["enabled", "online", "operational", "running"],
    "inactive": ["disabled", "offline", "stopped"],
    "data": ["information", "readings", "measurements"],
}


def levenshtein_distance(s1: str, s2: str) -> int:
    """Case-insensitive edit distance between two strings."""
    s1 = s1.lower()
    s2 = s2.lower()
    if len(s1) < len(s2):
        s1, s2 = s2, s1
    if not s2:
        return len(s1)

    previous = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1, 1):
        current = [i]
        for j, c2 in enumerate(s2, 1):
            current.append(min(
                previous[j] + 1,               # deletion
                current[j - 1] + 1,            # insertion
                previous[j - 1] + (c1 != c2),  # substitution
            ))
        previous = current
    return previous[-1]


def is_fuzzy_match(text: Optional[str], term: Optional[str], max_edits: int) -> bool:
    """
    True if ``text`` contains ``term``, or is within ``max_edits`` of it as
    a whole or in any single word.
    """
    if text is None or term is None:
        return False
    lowered = text.lower()
    needle = term.lower()
    if needle in lowered:
        return True
    if levenshtein_distance(lowered, needle) <= max_edits:
        return True
    return any(levenshtein_distance(word, needle) <= max_edits for word in lowered.split())


def expand_with_synonyms(query: str) -> List[str]:
    """
    Return the query followed by the synonyms of each of its words.

    Duplicates are dropped; the original query is always first.
    """
    expanded = [query]
    for word in query.lower().split():
        for synonym in SYNONYMS.get(word, []):
            if " " not in synonym and synonym not in expanded:
                expanded.append(synonym)
    logger.debug(f"Expanded query '{query}' with synonyms: {expanded}",
                 extra={'component': 'text_utils', 'action': 'expand_synonyms'})
    return expanded


def _terms_pattern(terms: Iterable[str]) -> Optional[re.Pattern]:
    # Longest first so that 'temperature' wins over 'temp'
    cleaned = sorted({t for t in terms if t}, key=len, reverse=True)
    if not cleaned:
        return None
    return re.compile("|".join(re.escape(t) for t in cleaned), re.IGNORECASE)


def highlight(text: Optional[str], term: Optional[str]) -> Optional[str]:
    """Wrap each case-insensitive occurrence of ``term`` in ``<mark>`` tags."""
    if text is None or not term:
        return text
    return highlight_multiple(text, [term])


def highlight_multiple(text: Optional[str], terms: Optional[List[str]]) -> Optional[str]:
    """
    Highlight every term in a single pass.

    Overlapping terms are resolved in favour of the longest; tags inserted
    for one term are never re-matched by another.
    """
    if text is None or not terms:
        return text
    pattern = _terms_pattern(terms)
    if pattern is None:
        return text
    return pattern.sub(lambda m: f"{HIGHLIGHT_PRE_TAG}{m.group(0)}{HIGHLIGHT_POST_TAG}", text)


def matched_terms(text: Optional[str], terms: Optional[List[str]]) -> List[str]:
    """Terms (in given order) that occur in ``text``."""
    if text is None or not terms:
        return []
    lowered = text.lower()
    return [term for term in terms if term and term.lower() in lowered]


def snippet(text: Optional[str], term: Optional[str],
            context_length: int = DEFAULT_SNIPPET_LENGTH) -> Optional[str]:
    """
    Extract up to ``context_length`` characters of context around ``term``.

    Text shorter than ``context_length`` is returned unchanged. When the
    term is absent the leading ``context_length`` characters are used.
    Truncated sides are marked with ``...``.
    """
    if text is None or term is None or len(text) <= context_length:
        return text

    index = text.lower().find(term.lower())
    if index == -1:
        return text[:context_length] + "..."

    start = max(0, index - context_length // 2)
    end = min(len(text), index + len(term) + context_length // 2)

    result = text[start:end]
    if start > 0:
        result = "..." + result
    if end < len(text):
        result = result + "..."
    return result

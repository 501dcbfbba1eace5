"""
Guest self-lookup by name.

Queries and names are compared after lowercasing and dropping everything
outside ``[a-z0-9]``. A query that equals one word of a name always matches.
Anything looser (prefix, substring, ordered-subsequence) needs a query of at
least ``min_partial_length`` characters so short fragments do not flood the
results.
"""

import re
from typing import List, Optional, Sequence

from app.core.config import settings
from app.schemas.guest import Guest

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_WORD_SEPARATOR = re.compile(r"[\s\-]+")


def normalize_value(value: str) -> str:
    return _NON_ALNUM.sub("", value.lower())


def name_words(name: str) -> List[str]:
    words = (normalize_value(part) for part in _WORD_SEPARATOR.split(name))
    return [word for word in words if word]


def subsequence_ratio(target: str, query: str) -> float:
    """Walk ``target`` greedily consuming ``query`` in order.

    Returns the lower of matched/len(query) and consumed/len(query).
    """
    if not query:
        return 1.0

    target_index = 0
    query_index = 0
    matched = 0

    while target_index < len(target) and query_index < len(query):
        if target[target_index] == query[query_index]:
            matched += 1
            query_index += 1
        target_index += 1

    return min(matched / len(query), query_index / len(query))


def name_qualifies(
    name: str,
    normalized_query: str,
    min_partial_length: Optional[int] = None,
    threshold: Optional[float] = None,
) -> bool:
    if min_partial_length is None:
        min_partial_length = settings.MIN_PARTIAL_QUERY_LENGTH
    if threshold is None:
        threshold = settings.FUZZY_MATCH_THRESHOLD

    if not name or not normalized_query:
        return False

    words = name_words(name)
    if normalized_query in words:
        return True

    if len(normalized_query) < min_partial_length:
        return False

    normalized_name = normalize_value(name)
    if normalized_name.startswith(normalized_query):
        return True

    for word in words:
        if word.startswith(normalized_query):
            return True
        if len(word) >= len(normalized_query) and normalized_query in word:
            return True

    return subsequence_ratio(normalized_name, normalized_query) >= threshold


class NameMatcher:
    """Filters a guest directory by a typed name, keeping directory order"""

    def __init__(self, min_partial_length: Optional[int] = None, threshold: Optional[float] = None):
        self.min_partial_length = (
            settings.MIN_PARTIAL_QUERY_LENGTH if min_partial_length is None else min_partial_length
        )
        self.threshold = settings.FUZZY_MATCH_THRESHOLD if threshold is None else threshold

    def match(self, guests: Sequence[Guest], query: str) -> List[Guest]:
        if not query or not query.strip():
            return []

        normalized_query = normalize_value(query.strip())
        if not normalized_query:
            return []

        return [
            guest for guest in guests
            if name_qualifies(guest.name, normalized_query, self.min_partial_length, self.threshold)
        ]

    def best_match(self, guests: Sequence[Guest], query: str) -> Optional[Guest]:
        """First qualifying guest in directory order"""
        matches = self.match(guests, query)
        return matches[0] if matches else None

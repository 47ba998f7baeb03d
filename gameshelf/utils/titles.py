"""Title normalization and fuzzy matching used to cross-reference games between stores."""
import re
from typing import Callable, Iterable, Optional, Tuple, TypeVar

T = TypeVar('T')

# Edition suffixes that do not change which game a title refers to
EDITION_SUFFIXES = [
    'definitive edition',
    'complete edition',
    'goty edition',
    'game of the year edition',
    'deluxe edition',
    'ultimate edition',
    'gold edition',
    'anniversary edition',
    'special edition',
    'enhanced edition',
    "director's cut",
    'remastered',
]

# Minimum score for a store search hit to be trusted as the same game
CONFIDENT_MATCH = 0.8


def clean_title(title: str) -> str:
    """Clean title for better matching - removes trademark symbols."""
    title = re.sub(r'[™®©]', '', title)
    return title.strip()


def normalize_title(title: str) -> str:
    """Normalize a game title for fuzzy matching."""
    t = clean_title(title or '').lower()

    for suffix in EDITION_SUFFIXES:
        if t.endswith(suffix):
            t = t[:-len(suffix)].strip(' -:')

    # Remove punctuation and extra whitespace
    t = ''.join(c if c.isalnum() or c.isspace() else ' ' for c in t)
    return ' '.join(t.split())


def score_title_match(normalized_search: str, normalized_candidate: str) -> float:
    """Score how well a candidate title matches the search.

    Returns:
        1.0 for exact match, 0.8 for substring, 0.6 for word subset, 0.0 for no match
    """
    if not normalized_search or not normalized_candidate:
        return 0.0

    if normalized_search == normalized_candidate:
        return 1.0

    if normalized_search in normalized_candidate or normalized_candidate in normalized_search:
        return 0.8

    search_words = set(normalized_search.split())
    candidate_words = set(normalized_candidate.split())
    if search_words and search_words.issubset(candidate_words):
        return 0.6

    return 0.0


def titles_match(a: str, b: str, threshold: float = CONFIDENT_MATCH) -> bool:
    return score_title_match(normalize_title(a), normalize_title(b)) >= threshold


def best_title_match(
    title: str,
    candidates: Iterable[T],
    key: Callable[[T], str],
    threshold: float = CONFIDENT_MATCH,
) -> Optional[T]:
    """
    Pick the candidate whose title best matches.

    Earlier candidates win ties, so store relevance ordering is preserved.

    Args:
        title: Title being searched for
        candidates: Search hits in relevance order
        key: Extracts a candidate's title
        threshold: Minimum score to accept

    Returns:
        The best candidate, or None if nothing reaches the threshold
    """
    wanted = normalize_title(title)
    best: Optional[Tuple[float, T]] = None
    for candidate in candidates:
        score = score_title_match(wanted, normalize_title(key(candidate)))
        if best is None or score > best[0]:
            best = (score, candidate)
        if score == 1.0:
            break
    if best and best[0] >= threshold:
        return best[1]
    return None

"""
HowLongToBeat playtime estimates.

Lookups go through howlongtobeatpy, which already reports hours. The most
similar hit is used; a zero time means HowLongToBeat has no estimate.
"""
import logging
from typing import Any, Optional

from howlongtobeatpy import HowLongToBeat

from ..errors import ExternalServiceUnavailableError
from .base import DurationEstimate

logger = logging.getLogger(__name__)

# Hits below this similarity to the searched title are ignored
MIN_SIMILARITY = 0.4


def round_hours(hours: Any) -> Optional[float]:
    """Round to 0.1h; zero or missing means no estimate."""
    try:
        value = float(hours or 0)
    except (TypeError, ValueError):
        return None
    if value <= 0:
        return None
    return round(value, 1)


class HowLongToBeatClient:
    """Fetches main / main+extra / completionist estimates by title"""

    def __init__(self, finder: Optional[HowLongToBeat] = None):
        self.finder = finder or HowLongToBeat(MIN_SIMILARITY)

    async def get_duration(self, title: str) -> Optional[DurationEstimate]:
        if not title or not title.strip():
            return None

        results = await self.finder.async_search(title.strip())
        if results is None:
            # howlongtobeatpy reports request failures as None
            raise ExternalServiceUnavailableError('HLTB', f"search failed for '{title}'")
        if not results:
            logger.debug(f"[HLTB] No results for '{title}'")
            return None

        best = max(results, key=lambda entry: entry.similarity)
        return DurationEstimate(
            main=round_hours(best.main_story),
            main_extra=round_hours(best.main_extra),
            completionist=round_hours(best.completionist),
        )

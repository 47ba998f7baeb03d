"""
ProtonDB rating fetching.

Uses the undocumented summaries endpoint, which only knows Steam app ids and
blocks requests without browser-like headers.
"""
import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

import aiohttp

from ..utils.http import request_json

logger = logging.getLogger(__name__)

PROTONDB_API_URL = "https://www.protondb.com/api/v1/reports/summaries"

# ProtonDB tier types
PROTONDB_TIERS = ['platinum', 'gold', 'silver', 'bronze', 'borked', 'pending', 'native']

HEADERS = {
    'Referer': 'https://www.protondb.com',
    'Accept': 'application/json',
}


@dataclass(frozen=True)
class ProtonDbRating:
    tier: str
    trending_tier: str
    total: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ProtonDbClient:
    def __init__(self, session: aiohttp.ClientSession):
        self.session = session

    async def get_rating(self, app_id: int) -> Optional[ProtonDbRating]:
        """
        Fetch the ProtonDB summary for a Steam app id.

        Returns:
            ProtonDbRating, or None if the game has no ProtonDB reports
        """
        data = await request_json(
            self.session, 'ProtonDB', 'GET', f"{PROTONDB_API_URL}/{app_id}.json", headers=HEADERS,
        )
        if not data:
            # Normal - game not in ProtonDB
            return None

        tier = data.get('tier') if data.get('tier') in PROTONDB_TIERS else 'pending'
        trending = data.get('trendingTier') or tier
        return ProtonDbRating(
            tier=tier,
            trending_tier=trending,
            total=int(data.get('total') or 0),
        )

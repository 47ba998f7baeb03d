"""Catalog search annotated with wishlist membership."""
import logging
from dataclasses import replace
from typing import List, Set

from ..metadata.base import SearchResult
from ..repositories.base import WishlistRepository
from ..repositories.router import StorageRouter

logger = logging.getLogger(__name__)


class SearchService:
    def __init__(self, router: StorageRouter, wishlist: WishlistRepository):
        self.router = router
        self.wishlist = wishlist

    async def search_games(self, user_id: str, query: str) -> List[SearchResult]:
        if not query or not query.strip():
            return []

        results = await self.router.search_games(query)
        if not results:
            return []

        try:
            wishlisted: Set[str] = await self.wishlist.get_wishlist_game_ids(user_id)
        except Exception as e:
            logger.warning(f"[Search] Wishlist unavailable, results left unflagged: {e}")
            return results

        return [replace(r, is_in_wishlist=r.id in wishlisted) for r in results]

"""
Wishlist reads and deal enrichment.

WishlistEnrichmentEngine prices a whole wishlist in two catalog round trips:
one batch title lookup, one batch price fetch. If either call fails the
wishlist is returned exactly as stored.
"""
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import List

from ..metadata.itad import CatalogService
from ..repositories.base import WishlistItem, WishlistRepository
from ..stores.base import Game

logger = logging.getLogger(__name__)


class WishlistEnrichmentEngine:
    def __init__(self, catalog: CatalogService):
        self.catalog = catalog

    async def enrich(self, items: List[WishlistItem]) -> List[WishlistItem]:
        """
        Annotate each item with its best current discount.

        Items whose title does not resolve, or whose catalog id has no deals,
        keep their previous best_deal_percentage.
        """
        if not items:
            return []

        try:
            ids_by_title = await self.catalog.lookup_ids_by_titles([item.title for item in items])
            catalog_ids = {cid for cid in ids_by_title.values() if cid}
            prices = await self.catalog.get_prices_batch(catalog_ids) if catalog_ids else {}
        except Exception as e:
            logger.warning(f"[Wishlist] Deal enrichment unavailable, keeping stored values: {e}")
            return list(items)

        enriched = []
        for item in items:
            deals = prices.get(ids_by_title.get(item.title) or '', [])
            if deals:
                best = max(deal.discount_percentage for deal in deals)
                item = replace(item, best_deal_percentage=best)
            enriched.append(item)
        return enriched


class WishlistService:
    def __init__(self, wishlist: WishlistRepository, engine: WishlistEnrichmentEngine):
        self.wishlist = wishlist
        self.engine = engine

    async def get_wishlist(self, user_id: str) -> List[WishlistItem]:
        items = await self.wishlist.get_wishlist(user_id)
        return await self.engine.enrich(items)

    async def add_to_wishlist(self, user_id: str, game: Game) -> WishlistItem:
        item = WishlistItem(
            id=f"{user_id}_{game.id}",
            game_id=game.id,
            title=game.title,
            cover_url=game.cover_url,
            added_at=datetime.now(timezone.utc),
        )
        await self.wishlist.add(user_id, item)
        logger.info(f"[Wishlist] Added {game.id} for {user_id}")
        return item

    async def remove_from_wishlist(self, user_id: str, game_id: str) -> None:
        await self.wishlist.remove(user_id, game_id)

    async def is_in_wishlist(self, user_id: str, game_id: str) -> bool:
        return await self.wishlist.is_in_wishlist(user_id, game_id)

"""
IsThereAnyDeal catalog service.

Responsibilities:
- Map titles and Steam app ids to a canonical ITAD game id
- Fetch catalog info (title, Steam app id, cover) for an id
- Fetch current deals for an id
- Batch variants of the title lookup and prices calls so a whole
  wishlist is resolved and priced in two round trips
- Global catalog search

Auth is the API key passed as the 'key' query parameter. Every method makes
one attempt; failures raise ExternalServiceUnavailableError.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

import aiohttp

from ..stores.base import Platform
from ..utils.http import request_json, json_headers
from .base import CatalogInfo, Deal, SearchResult

logger = logging.getLogger(__name__)

ITAD_API_BASE = "https://api.isthereanydeal.com"
ITAD_STEAM_SHOP_ID = 61

# Shop prefixes used by ITAD's shop id lookup, per platform
SHOP_ID_PREFIXES = {
    Platform.STEAM: "app/",
}


class CatalogService(ABC):
    """Contract of the catalog/pricing collaborator"""

    @abstractmethod
    async def lookup_id_by_title(self, title: str) -> Optional[str]:
        pass

    @abstractmethod
    async def lookup_id_by_platform_app_id(self, platform: Platform, app_id: int) -> Optional[str]:
        pass

    @abstractmethod
    async def get_info(self, catalog_id: str) -> Optional[CatalogInfo]:
        pass

    @abstractmethod
    async def get_prices(self, catalog_id: str) -> List[Deal]:
        pass

    @abstractmethod
    async def lookup_ids_by_titles(self, titles: Iterable[str]) -> Dict[str, Optional[str]]:
        pass

    @abstractmethod
    async def get_prices_batch(self, catalog_ids: Iterable[str]) -> Dict[str, List[Deal]]:
        pass

    @abstractmethod
    async def search_games(self, query: str) -> List[SearchResult]:
        pass


def _deal_from_entry(entry: Dict[str, Any], deal_id: str) -> Deal:
    shop = entry.get('shop') or {}
    price = entry.get('price') or {}
    regular = entry.get('regular') or {}
    return Deal(
        id=deal_id,
        store_name=shop.get('name', 'Unknown'),
        price=float(price.get('amount') or 0),
        original_price=float(regular.get('amount') or 0),
        discount_percentage=int(entry.get('cut') or 0),
        url=entry.get('url', ''),
    )


def _deals_from_entries(entries: List[Dict[str, Any]]) -> List[Deal]:
    deals = []
    for index, entry in enumerate(entries or []):
        shop_id = (entry.get('shop') or {}).get('id', 'shop')
        deals.append(_deal_from_entry(entry, f"{shop_id}_{index}"))
    return deals


def _cover_from_assets(assets: Optional[Dict[str, str]]) -> Optional[str]:
    assets = assets or {}
    return assets.get('banner300') or assets.get('banner400') or assets.get('boxart') or None


class IsThereAnyDealClient(CatalogService):
    """ITAD API client"""

    def __init__(self, session: aiohttp.ClientSession, api_key: str):
        self.session = session
        self.api_key = api_key

    async def _call(self, method: str, path: str, params: Optional[Dict[str, Any]] = None, body: Any = None) -> Any:
        query = {'key': self.api_key}
        if params:
            query.update(params)
        kwargs: Dict[str, Any] = {'params': query}
        if body is not None:
            kwargs['json'] = body
            kwargs['headers'] = json_headers()
        return await request_json(self.session, 'ITAD', method, f"{ITAD_API_BASE}{path}", **kwargs)

    async def lookup_id_by_title(self, title: str) -> Optional[str]:
        data = await self._call('GET', '/games/lookup/v1', params={'title': title})
        if data and data.get('found'):
            return (data.get('game') or {}).get('id')
        logger.debug(f"[ITAD] No catalog id for title '{title}'")
        return None

    async def lookup_id_by_platform_app_id(self, platform: Platform, app_id: int) -> Optional[str]:
        prefix = SHOP_ID_PREFIXES.get(platform)
        if prefix is None:
            logger.debug(f"[ITAD] No shop id mapping for platform {platform.value}")
            return None

        shop_key = f"{prefix}{app_id}"
        data = await self._call('POST', f"/lookup/id/shop/{ITAD_STEAM_SHOP_ID}/v1", body=[shop_key])
        return (data or {}).get(shop_key)

    async def get_info(self, catalog_id: str) -> Optional[CatalogInfo]:
        data = await self._call('GET', '/games/info/v2', params={'id': catalog_id})
        if not data:
            return None
        app_id = data.get('appid')
        return CatalogInfo(
            id=data.get('id', catalog_id),
            title=data.get('title', ''),
            platform_app_id=int(app_id) if app_id else None,
            cover_url=_cover_from_assets(data.get('assets')),
        )

    async def get_prices(self, catalog_id: str) -> List[Deal]:
        prices = await self.get_prices_batch([catalog_id])
        return prices.get(catalog_id, [])

    async def lookup_ids_by_titles(self, titles: Iterable[str]) -> Dict[str, Optional[str]]:
        """
        Resolve many titles in one request.

        Returns:
            title -> catalog id (None when unresolved) for every requested title
        """
        distinct = list(dict.fromkeys(t for t in titles if t))
        if not distinct:
            return {}
        data = await self._call('POST', '/lookup/id/title/v1', body=distinct) or {}
        return {title: data.get(title) for title in distinct}

    async def get_prices_batch(self, catalog_ids: Iterable[str]) -> Dict[str, List[Deal]]:
        """
        Fetch current deals for many ids in one request.

        Returns:
            catalog id -> deals; ids ITAD returned nothing for map to []
        """
        distinct = list(dict.fromkeys(i for i in catalog_ids if i))
        if not distinct:
            return {}
        data = await self._call('POST', '/games/prices/v3', body=distinct) or []
        prices: Dict[str, List[Deal]] = {catalog_id: [] for catalog_id in distinct}
        for entry in data:
            if entry.get('id') in prices:
                prices[entry['id']] = _deals_from_entries(entry.get('deals', []))
        return prices

    async def search_games(self, query: str) -> List[SearchResult]:
        if not query or not query.strip():
            return []
        data = await self._call('GET', '/games/search/v1', params={'title': query.strip()}) or []
        return [
            SearchResult(id=r['id'], title=r.get('title', ''), cover_url=_cover_from_assets(r.get('assets')))
            for r in data
            if r.get('id')
        ]

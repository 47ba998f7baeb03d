"""
Tests for WishlistEnrichmentEngine and WishlistService.
"""
import pytest

from gameshelf.errors import ExternalServiceUnavailableError
from gameshelf.metadata.base import Deal
from gameshelf.repositories.base import WishlistItem
from gameshelf.services.wishlist_service import WishlistEnrichmentEngine, WishlistService
from gameshelf.stores.base import Game, Platform


def _deal(shop, cut):
    return Deal(id=f"{shop}_0", store_name=shop, price=10.0, original_price=20.0, discount_percentage=cut, url="")


@pytest.fixture
def items():
    return [
        WishlistItem(id="w1", game_id="itad-hk", title="Hollow Knight", best_deal_percentage=10),
        WishlistItem(id="w2", game_id="itad-celeste", title="Celeste", best_deal_percentage=25),
    ]


@pytest.mark.asyncio
async def test_best_discount_is_assigned(catalog, items):
    catalog.lookup_ids_by_titles.return_value = {"Hollow Knight": "itad-hk", "Celeste": "itad-celeste"}
    catalog.get_prices_batch.return_value = {
        "itad-hk": [_deal("steam", 50), _deal("gog", 65)],
        "itad-celeste": [_deal("humble", 75)],
    }

    enriched = await WishlistEnrichmentEngine(catalog).enrich(items)

    assert [i.best_deal_percentage for i in enriched] == [65, 75]
    catalog.lookup_ids_by_titles.assert_awaited_once()
    catalog.get_prices_batch.assert_awaited_once()


@pytest.mark.asyncio
async def test_unresolved_and_dealless_items_keep_previous_value(catalog, items):
    catalog.lookup_ids_by_titles.return_value = {"Hollow Knight": "itad-hk", "Celeste": None}
    catalog.get_prices_batch.return_value = {"itad-hk": []}

    enriched = await WishlistEnrichmentEngine(catalog).enrich(items)

    assert [i.best_deal_percentage for i in enriched] == [10, 25]


@pytest.mark.asyncio
async def test_batch_lookup_failure_returns_items_unchanged(catalog, items):
    catalog.lookup_ids_by_titles.side_effect = ExternalServiceUnavailableError("ITAD", "timeout")

    enriched = await WishlistEnrichmentEngine(catalog).enrich(items)

    assert enriched == items
    catalog.get_prices_batch.assert_not_called()


@pytest.mark.asyncio
async def test_batch_price_failure_returns_items_unchanged(catalog, items):
    catalog.lookup_ids_by_titles.return_value = {"Hollow Knight": "itad-hk", "Celeste": "itad-celeste"}
    catalog.get_prices_batch.side_effect = ExternalServiceUnavailableError("ITAD", "HTTP 500", status=500)

    enriched = await WishlistEnrichmentEngine(catalog).enrich(items)

    assert [i.best_deal_percentage for i in enriched] == [10, 25]


@pytest.mark.asyncio
async def test_empty_wishlist_makes_no_calls(catalog):
    assert await WishlistEnrichmentEngine(catalog).enrich([]) == []
    catalog.lookup_ids_by_titles.assert_not_called()


@pytest.mark.asyncio
async def test_service_add_and_enriched_read(catalog, remote_backend):
    service = WishlistService(remote_backend.wishlist, WishlistEnrichmentEngine(catalog))
    game = Game(id="itad-hk", title="Hollow Knight", platform=Platform.UNKNOWN)
    catalog.lookup_ids_by_titles.return_value = {"Hollow Knight": "itad-hk"}
    catalog.get_prices_batch.return_value = {"itad-hk": [_deal("steam", 50)]}

    await service.add_to_wishlist("u1", game)
    wishlist = await service.get_wishlist("u1")

    assert len(wishlist) == 1
    assert wishlist[0].best_deal_percentage == 50
    assert await service.is_in_wishlist("u1", "itad-hk") is True

    await service.remove_from_wishlist("u1", "itad-hk")
    assert await service.is_in_wishlist("u1", "itad-hk") is False

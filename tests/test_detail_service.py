"""
Tests for DetailAggregator: Epic backfill, fail-soft fan-out and the reducer.
"""
import pytest
from unittest.mock import AsyncMock, Mock

from gameshelf.compat.protondb import ProtonDbClient, ProtonDbRating
from gameshelf.errors import ExternalServiceUnavailableError, NotFoundError
from gameshelf.metadata.base import CatalogInfo, Deal, DurationEstimate, StoreMetadata
from gameshelf.metadata.hltb import HowLongToBeatClient
from gameshelf.repositories.base import WishlistItem
from gameshelf.services.detail_service import DetailAggregator, GameDetail
from gameshelf.services.identity_resolver import GameIdentityResolver
from gameshelf.stores.base import Game, Platform
from gameshelf.stores.steam import SteamConnector


@pytest.fixture
def steam():
    connector = Mock(spec=SteamConnector)
    connector.get_app_details = AsyncMock(return_value=StoreMetadata(genres=["Action RPG"], critic_score=96))
    connector.search_app_id = AsyncMock(return_value=None)
    return connector


@pytest.fixture
def protondb():
    client = Mock(spec=ProtonDbClient)
    client.get_rating = AsyncMock(return_value=ProtonDbRating(tier="gold", trending_tier="platinum", total=812))
    return client


@pytest.fixture
def hltb():
    client = Mock(spec=HowLongToBeatClient)
    client.get_duration = AsyncMock(return_value=DurationEstimate(main=55.5, main_extra=99.0, completionist=133.2))
    return client


@pytest.fixture
def deal():
    return Deal(id="steam_0", store_name="Steam", price=35.99, original_price=59.99, discount_percentage=40,
                url="https://store.steampowered.com/app/1245620")


@pytest.fixture
def aggregator(remote_backend, catalog, steam, protondb, hltb):
    resolver = GameIdentityResolver(remote_backend.games, catalog)
    return DetailAggregator(
        resolver=resolver,
        games=remote_backend.games,
        wishlist=remote_backend.wishlist,
        catalog=catalog,
        steam=steam,
        protondb=protondb,
        hltb=hltb,
    )


@pytest.mark.asyncio
async def test_full_detail_for_owned_steam_game(aggregator, remote_backend, catalog, elden_ring, deal):
    await remote_backend.games.upsert_games("u1", [elden_ring])
    await remote_backend.wishlist.add("u1", WishlistItem(id="w1", game_id="1245620", title="ELDEN RING"))
    catalog.lookup_id_by_platform_app_id.return_value = "itad-elden-ring-uuid"
    catalog.get_prices.return_value = [deal]

    detail = await aggregator.get_detail("1245620", "u1")

    assert detail.game.id == "1245620"
    assert detail.protondb_tier == "gold"
    assert detail.protondb_trending_tier == "platinum"
    assert detail.protondb_report_count == 812
    assert detail.hours_main == 55.5
    assert detail.hours_completionist == 133.2
    assert detail.deals == [deal]
    assert detail.store_metadata.critic_score == 96
    assert detail.is_in_wishlist is True
    assert detail.unavailable_sources == []


@pytest.mark.asyncio
async def test_deals_lookup_warms_catalog_id_in_memory_only(aggregator, remote_backend, catalog, elden_ring, deal):
    await remote_backend.games.upsert_games("u1", [elden_ring])
    catalog.lookup_id_by_platform_app_id.return_value = "itad-elden-ring-uuid"
    catalog.get_prices.return_value = [deal]

    detail = await aggregator.get_detail("1245620", "u1")

    assert detail.game.itad_game_id == "itad-elden-ring-uuid"
    stored = await remote_backend.games.get_game_by_id("u1", "1245620")
    assert stored.itad_game_id is None


@pytest.mark.asyncio
async def test_failed_protondb_leaves_other_fields_populated(aggregator, remote_backend, catalog, protondb, elden_ring, deal):
    await remote_backend.games.upsert_games("u1", [elden_ring])
    protondb.get_rating.side_effect = ExternalServiceUnavailableError("ProtonDB", "HTTP 503", status=503)
    catalog.lookup_id_by_platform_app_id.return_value = "itad-elden-ring-uuid"
    catalog.get_prices.return_value = [deal]

    detail = await aggregator.get_detail("1245620", "u1")

    assert detail.protondb_tier is None
    assert detail.protondb_report_count is None
    assert detail.deals == [deal]
    assert detail.hours_main == 55.5
    assert detail.unavailable_sources == ["protondb"]


@pytest.mark.asyncio
async def test_all_sources_failing_still_returns_detail(aggregator, remote_backend, catalog, steam, protondb, hltb, elden_ring):
    await remote_backend.games.upsert_games("u1", [elden_ring])
    protondb.get_rating.side_effect = RuntimeError("boom")
    hltb.get_duration.side_effect = RuntimeError("boom")
    catalog.lookup_id_by_platform_app_id.side_effect = ExternalServiceUnavailableError("ITAD")
    steam.get_app_details.side_effect = ExternalServiceUnavailableError("Steam")
    remote_backend.wishlist.is_in_wishlist = AsyncMock(side_effect=RuntimeError("offline"))

    detail = await aggregator.get_detail("1245620", "u1")

    assert detail.game == elden_ring
    assert detail.deals == []
    assert detail.store_metadata is None
    assert detail.is_in_wishlist is None
    assert sorted(detail.unavailable_sources) == sorted(
        ["protondb", "howlongtobeat", "deals", "wishlist", "store_metadata"]
    )


@pytest.mark.asyncio
async def test_unresolvable_game_raises(aggregator):
    with pytest.raises(NotFoundError):
        await aggregator.get_detail("itad-missing-uuid", "u1")


@pytest.mark.asyncio
async def test_no_steam_app_id_skips_protondb_and_store(aggregator, remote_backend, catalog, steam, protondb):
    gog_game_id = "gog_1207658924"
    await remote_backend.games.upsert_games("u1", [Game(id=gog_game_id, title="The Witcher", platform=Platform.GOG)])

    detail = await aggregator.get_detail(gog_game_id, "u1")

    protondb.get_rating.assert_not_called()
    steam.get_app_details.assert_not_called()
    assert detail.protondb_tier is None
    assert detail.unavailable_sources == []


@pytest.mark.asyncio
async def test_epic_backfill_via_catalog(aggregator, remote_backend, catalog, steam, protondb, epic_control):
    await remote_backend.games.upsert_games("u1", [epic_control])
    catalog.lookup_id_by_title.return_value = "itad-control-uuid"
    catalog.get_info.return_value = CatalogInfo(id="itad-control-uuid", title="Control", platform_app_id=870780)

    detail = await aggregator.get_detail("a1b2c3", "u1")

    assert detail.game.steam_app_id == 870780
    assert detail.game.itad_game_id == "itad-control-uuid"
    protondb.get_rating.assert_awaited_once_with(870780)
    steam.search_app_id.assert_not_called()
    stored = await remote_backend.games.get_game_by_id("u1", "a1b2c3")
    assert stored.steam_app_id == 870780


@pytest.mark.asyncio
async def test_epic_backfill_falls_back_to_store_search(aggregator, remote_backend, catalog, steam, epic_control):
    await remote_backend.games.upsert_games("u1", [epic_control])
    steam.search_app_id.return_value = 870780

    detail = await aggregator.get_detail("a1b2c3", "u1")

    assert detail.game.steam_app_id == 870780
    steam.search_app_id.assert_awaited_once_with("Control")


@pytest.mark.asyncio
async def test_epic_backfill_catalog_outage_falls_through_to_store_search(
    aggregator, remote_backend, catalog, steam, protondb, epic_control
):
    await remote_backend.games.upsert_games("u1", [epic_control])
    catalog.lookup_id_by_title.side_effect = ExternalServiceUnavailableError("ITAD")
    steam.search_app_id.return_value = 870780

    detail = await aggregator.get_detail("a1b2c3", "u1")

    assert detail.game.steam_app_id == 870780
    protondb.get_rating.assert_awaited_once_with(870780)
    assert "deals" in detail.unavailable_sources
    stored = await remote_backend.games.get_game_by_id("u1", "a1b2c3")
    assert stored.steam_app_id == 870780


@pytest.mark.asyncio
async def test_epic_backfill_with_every_strategy_down_keeps_game_unpatched(
    aggregator, remote_backend, catalog, steam, protondb, epic_control
):
    await remote_backend.games.upsert_games("u1", [epic_control])
    catalog.lookup_id_by_title.side_effect = ExternalServiceUnavailableError("ITAD")
    steam.search_app_id.side_effect = ExternalServiceUnavailableError("Steam")

    detail = await aggregator.get_detail("a1b2c3", "u1")

    assert detail.game.id == "a1b2c3"
    assert detail.game.steam_app_id is None
    protondb.get_rating.assert_not_called()
    assert detail.protondb_tier is None
    stored = await remote_backend.games.get_game_by_id("u1", "a1b2c3")
    assert stored.steam_app_id is None


@pytest.mark.asyncio
async def test_epic_backfill_persist_failure_is_not_fatal(aggregator, remote_backend, steam, epic_control):
    await remote_backend.games.upsert_games("u1", [epic_control])
    steam.search_app_id.return_value = 870780
    remote_backend.games.update_cross_reference_id = AsyncMock(side_effect=RuntimeError("write failed"))

    detail = await aggregator.get_detail("a1b2c3", "u1")

    assert detail.game.steam_app_id == 870780


def test_best_deal_is_largest_discount(elden_ring):
    deals = [
        Deal("steam_0", "Steam", 35.99, 59.99, 40, "https://store.example/steam"),
        Deal("gmg_1", "GreenManGaming", 29.99, 59.99, 50, "https://store.example/gmg"),
    ]
    assert GameDetail(game=elden_ring, deals=deals).best_deal.store_name == "GreenManGaming"
    assert GameDetail(game=elden_ring).best_deal is None
    assert GameDetail(game=elden_ring).game.is_owned
    assert not Game(id="itad-x", title="X", platform=Platform.UNKNOWN).is_owned

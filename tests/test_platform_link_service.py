"""
Tests for the platform link state machine and its per-platform strategies.
"""
import json
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, Mock

from gameshelf.controllers.background_sync import BackgroundSyncQueue
from gameshelf.errors import ExternalServiceUnavailableError, MalformedInputError, PreconditionFailedError
from gameshelf.services.platform_link_service import (
    LinkState,
    PlatformLinkOrchestrator,
    PlatformLinkService,
)
from gameshelf.stores.base import IMPORTED_MARKER, Game, Platform
from gameshelf.stores.epic import EpicAuthToken, EpicConnector
from gameshelf.stores.gog import GogAuthToken, GogConnector
from gameshelf.stores.steam import SteamConnector

STEAM_ID = "76561198000000001"
OPENID_PARAMS = {
    "openid.mode": "id_res",
    "openid.claimed_id": f"https://steamcommunity.com/openid/id/{STEAM_ID}",
}


@pytest.fixture
def steam():
    connector = Mock(spec=SteamConnector)
    connector.verify_openid_response = AsyncMock(return_value=True)
    connector.extract_steam_id = Mock(side_effect=SteamConnector.extract_steam_id)
    connector.check_profile_visibility = AsyncMock(return_value=True)
    connector.resolve_steam_id = AsyncMock(return_value=STEAM_ID)
    return connector


@pytest.fixture
def epic():
    # Real parser, mocked network
    connector = EpicConnector(session=Mock())
    connector.exchange_auth_code = AsyncMock(return_value=EpicAuthToken(
        access_token="eg1~token",
        account_id="epic-account-42",
        display_name="Jesse",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=8),
    ))
    connector.get_owned_games = AsyncMock(return_value=[
        Game(id="a1b2c3", title="Control", platform=Platform.EPIC_GAMES),
    ])
    return connector


@pytest.fixture
def gog():
    connector = Mock(spec=GogConnector)
    connector.exchange_auth_code = AsyncMock(return_value=GogAuthToken(
        access_token="gog-access",
        refresh_token="gog-refresh",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        user_id="4815162342",
    ))
    return connector


@pytest.fixture
def sync_queue():
    queue = Mock(spec=BackgroundSyncQueue)
    queue.submit = Mock()
    return queue


@pytest.fixture
def orchestrator(remote_backend, sync_queue):
    return PlatformLinkOrchestrator(remote_backend, sync_queue)


@pytest.fixture
def links(orchestrator, steam, epic, gog):
    return PlatformLinkService(orchestrator, steam, epic, gog)


@pytest.mark.asyncio
async def test_steam_openid_link(links, orchestrator, remote_backend, sync_queue):
    link = await links.link_steam("u1", OPENID_PARAMS)

    assert link.platform == Platform.STEAM
    assert link.external_user_id == STEAM_ID
    assert await orchestrator.get_state("u1", Platform.STEAM) == LinkState.LINKED
    stored = await remote_backend.platforms.get_linked("u1")
    assert [p.external_user_id for p in stored] == [STEAM_ID]
    sync_queue.submit.assert_called_once_with("u1", Platform.STEAM)


@pytest.mark.asyncio
async def test_private_steam_profile_is_not_linked(links, orchestrator, remote_backend, steam, sync_queue):
    steam.check_profile_visibility.return_value = False

    with pytest.raises(PreconditionFailedError, match="private"):
        await links.link_steam("u1", OPENID_PARAMS)

    assert await remote_backend.platforms.get_linked("u1") == []
    assert await orchestrator.get_state("u1", Platform.STEAM) == LinkState.UNLINKED
    sync_queue.submit.assert_not_called()


@pytest.mark.asyncio
async def test_failed_openid_verification_is_not_linked(links, orchestrator, steam):
    steam.verify_openid_response.return_value = False

    with pytest.raises(PreconditionFailedError):
        await links.link_steam("u1", OPENID_PARAMS)

    assert await orchestrator.get_state("u1", Platform.STEAM) == LinkState.UNLINKED
    steam.check_profile_visibility.assert_not_called()


@pytest.mark.asyncio
async def test_steam_link_by_vanity_name(links, steam):
    link = await links.link_steam_by_id("u1", "https://steamcommunity.com/id/jesse")

    steam.resolve_steam_id.assert_awaited_once_with("https://steamcommunity.com/id/jesse")
    assert link.external_user_id == STEAM_ID


@pytest.mark.asyncio
async def test_relinking_replaces_existing_link(links, remote_backend, steam):
    await links.link_steam_by_id("u1", "first")
    steam.resolve_steam_id.return_value = "76561198000000002"
    await links.link_steam_by_id("u1", "second")

    stored = await remote_backend.platforms.get_linked("u1")
    assert [p.external_user_id for p in stored] == ["76561198000000002"]


@pytest.mark.asyncio
async def test_epic_auth_code_stores_games_and_links_account(links, remote_backend):
    link = await links.link_epic_by_auth_code("u1", "abc123")

    assert link.external_user_id == "epic-account-42"
    library = await remote_backend.games.get_library_games("u1")
    assert [g.title for g in library] == ["Control"]


@pytest.mark.asyncio
async def test_epic_auth_code_with_empty_library_fails(links, epic, remote_backend):
    epic.get_owned_games.return_value = []

    with pytest.raises(PreconditionFailedError):
        await links.link_epic_by_auth_code("u1", "abc123")

    assert await remote_backend.platforms.get_linked("u1") == []


@pytest.mark.asyncio
async def test_epic_export_links_with_imported_marker(links, remote_backend, sync_queue):
    export = json.dumps({"entitlements": [
        {"catalogItemId": "cat-1", "entitlementName": "Alan Wake", "itemType": "EXECUTABLE"},
        {"catalogItemId": "cat-2", "entitlementName": "Alan Wake Soundtrack", "itemType": "AUDIENCE"},
    ]})

    link = await links.link_epic_export("u1", export)

    assert link.external_user_id == IMPORTED_MARKER
    library = await remote_backend.games.get_library_games("u1")
    assert [g.id for g in library] == ["cat-1"]
    sync_queue.submit.assert_called_once_with("u1", Platform.EPIC_GAMES)


@pytest.mark.asyncio
async def test_malformed_epic_export_is_rejected(links, orchestrator, remote_backend):
    with pytest.raises(MalformedInputError):
        await links.link_epic_export("u1", "{not json")

    assert await orchestrator.get_state("u1", Platform.EPIC_GAMES) == LinkState.UNLINKED
    assert await remote_backend.games.get_library_games("u1") == []


@pytest.mark.asyncio
async def test_gog_link_persists_token_pair(links, remote_backend):
    link = await links.link_gog_by_code("u1", "gog-code")

    assert link.external_user_id == "4815162342"
    stored = await remote_backend.platforms.get_link("u1", Platform.GOG)
    assert stored.credentials["refresh_token"] == "gog-refresh"


@pytest.mark.asyncio
async def test_gog_exchange_failure_is_not_linked(links, gog, orchestrator):
    gog.exchange_auth_code.side_effect = ExternalServiceUnavailableError("GOG", "HTTP 400", status=400)

    with pytest.raises(ExternalServiceUnavailableError):
        await links.link_gog_by_code("u1", "expired-code")

    assert await orchestrator.get_state("u1", Platform.GOG) == LinkState.UNLINKED


@pytest.mark.asyncio
async def test_background_sync_failure_does_not_undo_link(remote_backend, steam, epic, gog):
    handler = AsyncMock(side_effect=ExternalServiceUnavailableError("Steam", "HTTP 500", status=500))
    queue = BackgroundSyncQueue(handler)
    orchestrator = PlatformLinkOrchestrator(remote_backend, queue)
    links = PlatformLinkService(orchestrator, steam, epic, gog)

    link = await links.link_steam("u1", OPENID_PARAMS)
    await queue.drain()
    await queue.stop()

    assert link.external_user_id == STEAM_ID
    assert await orchestrator.get_state("u1", Platform.STEAM) == LinkState.LINKED
    assert len(queue.failures) == 1
    assert queue.failures[0].platform == Platform.STEAM


@pytest.mark.asyncio
async def test_state_is_verifying_during_verification(orchestrator, steam, links):
    seen = {}

    async def check_visibility(steam_id):
        seen["state"] = await orchestrator.get_state("u1", Platform.STEAM)
        return True

    steam.check_profile_visibility.side_effect = check_visibility

    await links.link_steam("u1", OPENID_PARAMS)

    assert seen["state"] == LinkState.VERIFYING


@pytest.mark.asyncio
async def test_unlink_removes_link_and_games(links, remote_backend):
    await links.link_epic_by_auth_code("u1", "abc123")

    await links.unlink("u1", Platform.EPIC_GAMES)

    assert await remote_backend.platforms.get_linked("u1") == []
    assert await remote_backend.games.get_library_games("u1") == []


def test_auth_urls_come_from_connectors(links, steam, epic, gog):
    steam.get_login_url.return_value = "https://steamcommunity.com/openid/login?x"
    gog.get_auth_url.return_value = "https://auth.gog.com/auth?x"

    assert links.get_steam_login_url("https://app.example/cb") == "https://steamcommunity.com/openid/login?x"
    steam.get_login_url.assert_called_once_with("https://app.example/cb")
    assert "clientId=" in links.get_epic_auth_url()
    assert links.get_gog_auth_url() == "https://auth.gog.com/auth?x"

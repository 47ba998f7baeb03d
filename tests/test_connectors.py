"""
Tests for the Steam, Epic and GOG connectors with the HTTP layer patched out.
"""
import json
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, Mock, patch

from gameshelf.errors import MalformedInputError
from gameshelf.stores.base import Platform
from gameshelf.stores.epic import EpicConnector
from gameshelf.stores.gog import GogAuthToken, GogConnector
from gameshelf.stores.manager import ConnectorRegistry
from gameshelf.stores.steam import SteamConnector


@pytest.fixture
def steam():
    return SteamConnector(Mock(), api_key="steam-key")


def test_extract_steam_id_from_claimed_id():
    params = {'openid.claimed_id': 'https://steamcommunity.com/openid/id/76561198000000001'}
    assert SteamConnector.extract_steam_id(params) == '76561198000000001'
    assert SteamConnector.extract_steam_id({'openid.claimed_id': 'https://evil.example/id/1'}) is None


def test_login_url_points_back_to_caller(steam):
    url = steam.get_login_url("https://gameshelf.example/steam/callback")
    assert url.startswith("https://steamcommunity.com/openid/login?")
    assert "checkid_setup" in url


@pytest.mark.asyncio
async def test_resolve_steam_id_without_network(steam):
    with patch('gameshelf.stores.steam.request_json', new=AsyncMock()) as request:
        assert await steam.resolve_steam_id("76561198000000001") == "76561198000000001"
        assert await steam.resolve_steam_id(
            "https://steamcommunity.com/profiles/76561198000000002/"
        ) == "76561198000000002"
    request.assert_not_called()


@pytest.mark.asyncio
async def test_resolve_vanity_name(steam):
    response = {'response': {'success': 1, 'steamid': '76561197960287930'}}
    with patch('gameshelf.stores.steam.request_json', new=AsyncMock(return_value=response)) as request:
        steam_id = await steam.resolve_steam_id("https://steamcommunity.com/id/gabelogannewell")

    assert steam_id == '76561197960287930'
    assert request.call_args.kwargs['params']['vanityurl'] == 'gabelogannewell'


@pytest.mark.asyncio
async def test_profile_visibility(steam):
    private = {'response': {'players': [{'communityvisibilitystate': 1}]}}
    public = {'response': {'players': [{'communityvisibilitystate': 3}]}}
    with patch('gameshelf.stores.steam.request_json', new=AsyncMock(side_effect=[private, public])):
        assert await steam.check_profile_visibility('1') is False
        assert await steam.check_profile_visibility('1') is True


@pytest.mark.asyncio
async def test_owned_games_are_mapped(steam):
    response = {'response': {'games': [
        {'appid': 1245620, 'name': 'ELDEN RING', 'playtime_forever': 5400, 'rtime_last_played': 1700000000},
        {'name': 'no app id'},
    ]}}
    with patch('gameshelf.stores.steam.request_json', new=AsyncMock(return_value=response)):
        games = await steam.get_owned_games('76561198000000001')

    assert len(games) == 1
    game = games[0]
    assert game.id == '1245620'
    assert game.steam_app_id == 1245620
    assert game.playtime == 5400
    assert game.last_played == datetime.fromtimestamp(1700000000, tz=timezone.utc)


@pytest.mark.asyncio
async def test_store_search_requires_confident_match(steam):
    response = {'items': [{'id': 1, 'name': 'Hades II'}, {'id': 1145360, 'name': 'Hades'}]}
    with patch('gameshelf.stores.steam.request_json', new=AsyncMock(return_value=response)):
        assert await steam.search_app_id('Hades') == 1145360

    unrelated = {'items': [{'id': 2, 'name': 'Totally Different Game'}]}
    with patch('gameshelf.stores.steam.request_json', new=AsyncMock(return_value=unrelated)):
        assert await steam.search_app_id('Hades') is None


@pytest.mark.asyncio
async def test_app_details_without_store_page(steam):
    with patch('gameshelf.stores.steam.request_json', new=AsyncMock(return_value={'1': {'success': False}})):
        assert await steam.get_app_details(1) is None


def test_epic_export_parsing_filters_and_dedupes():
    export = json.dumps({'entitlements': [
        {'catalogItemId': 'a1b2c3', 'entitlementName': 'Control', 'itemType': 'EXECUTABLE'},
        {'catalogItemId': 'a1b2c3', 'entitlementName': 'Control', 'itemType': 'EXECUTABLE'},
        {'catalogItemId': 'dlc1', 'entitlementName': 'Control DLC', 'itemType': 'AUDIENCE'},
        {'entitlementName': 'No id', 'itemType': 'EXECUTABLE'},
    ]})

    games = EpicConnector(Mock()).parse_exported_library(export)

    assert [(g.id, g.title, g.platform) for g in games] == [('a1b2c3', 'Control', Platform.EPIC_GAMES)]


@pytest.mark.parametrize("content", ["not json", "42", json.dumps({'entitlements': 'nope'})])
def test_epic_export_rejects_malformed_content(content):
    with pytest.raises(MalformedInputError):
        EpicConnector(Mock()).parse_exported_library(content)


@pytest.mark.asyncio
async def test_epic_empty_auth_code_is_rejected():
    with pytest.raises(MalformedInputError):
        await EpicConnector(Mock()).exchange_auth_code("   ")


@pytest.mark.asyncio
async def test_gog_products_are_prefixed():
    response = {'products': [
        {'id': 1207658924, 'title': 'The Witcher', 'image': '//images.gog.com/abc'},
        {'title': 'missing id'},
    ]}
    with patch('gameshelf.stores.gog.request_json', new=AsyncMock(return_value=response)):
        games = await GogConnector(Mock()).get_owned_games('gog-access')

    assert [g.id for g in games] == ['gog_1207658924']
    assert games[0].cover_url == 'https://images.gog.com/abc_196.jpg'


@pytest.mark.asyncio
async def test_gog_refresh_keeps_user_and_refresh_token():
    old = GogAuthToken('old', 'refresh-1', datetime.now(timezone.utc), '4815162342')
    response = {'access_token': 'new', 'expires_in': 3600}
    with patch('gameshelf.stores.gog.request_json', new=AsyncMock(return_value=response)):
        renewed = await GogConnector(Mock()).refresh_token(old)

    assert renewed.access_token == 'new'
    assert renewed.refresh_token == 'refresh-1'
    assert renewed.user_id == '4815162342'
    assert not renewed.is_expired()


def test_gog_token_expiry_margin():
    soon = GogAuthToken('a', 'r', datetime.now(timezone.utc) + timedelta(seconds=30), 'u')
    assert soon.is_expired()
    assert GogAuthToken.from_dict(soon.to_dict()) == soon


def test_registry_lookup(steam):
    registry = ConnectorRegistry([steam])
    assert registry.get_connector(Platform.STEAM) is steam
    assert registry.platforms == [Platform.STEAM]


@pytest.mark.asyncio
async def test_recently_played_games(steam):
    response = {'response': {'games': [{'appid': 1145360, 'name': 'Hades', 'playtime_forever': 9000}]}}
    with patch('gameshelf.stores.steam.request_json', new=AsyncMock(return_value=response)) as request:
        games = await steam.get_recently_played_games('76561198000000001', count=3)

    assert [g.title for g in games] == ['Hades']
    assert request.call_args.kwargs['params']['count'] == 3

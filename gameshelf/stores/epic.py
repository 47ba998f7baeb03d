"""
Epic Games connector.

Epic offers two ways in:
- An authorization code from the launcher client login, exchanged for an
  access token and used to read the account's entitlements.
- A manual GDPR data export the user uploads; only its entitlements JSON is
  parsed.
"""
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

import aiohttp

from ..errors import ExternalServiceUnavailableError, MalformedInputError
from ..utils.http import request_json
from .base import Game, Platform, PlatformConnector

logger = logging.getLogger(__name__)

EPIC_AUTH_TOKEN_URL = "https://account-public-service-prod.ol.epicgames.com/account/api/oauth/token"
EPIC_ENTITLEMENTS_URL = "https://entitlement-public-service-prod08.ol.epicgames.com/entitlement/api/account"
# launcherAppClient2 - the public Epic Games Launcher client
EPIC_CLIENT_ID = "34a02cf8f4414e29b15921876da36f9a"
EPIC_CLIENT_SECRET = "daafbccc737745039dffe53d94fc76cf"
EPIC_AUTH_URL = f"https://www.epicgames.com/id/api/redirect?clientId={EPIC_CLIENT_ID}&responseType=code"

# Entitlement item types that represent a playable game
GAME_ITEM_TYPES = ('EXECUTABLE', 'DURABLE_ENTITLEMENT')

# Seconds before expiry at which a token is treated as expired
EXPIRY_MARGIN = 60


@dataclass(frozen=True)
class EpicAuthToken:
    access_token: str
    account_id: str
    display_name: str
    expires_at: datetime

    def is_expired(self) -> bool:
        return self.expires_at - datetime.now(timezone.utc) < timedelta(seconds=EXPIRY_MARGIN)


def _entitlement_to_game(entitlement: Dict[str, Any]) -> Game:
    return Game(
        id=str(entitlement['catalogItemId']),
        title=entitlement.get('entitlementName', ''),
        platform=Platform.EPIC_GAMES,
    )


def _game_entitlements(entitlements: List[Dict[str, Any]]) -> List[Game]:
    games: Dict[str, Game] = {}
    for entitlement in entitlements:
        if not isinstance(entitlement, dict):
            continue
        if entitlement.get('itemType') not in GAME_ITEM_TYPES:
            continue
        if not entitlement.get('catalogItemId'):
            continue
        game = _entitlement_to_game(entitlement)
        games.setdefault(game.id, game)
    return list(games.values())


class EpicConnector(PlatformConnector):
    """Epic account-service and entitlement-service client"""

    def __init__(self, session: aiohttp.ClientSession):
        self.session = session

    @property
    def platform(self) -> Platform:
        return Platform.EPIC_GAMES

    def get_auth_url(self) -> str:
        """URL the user opens to sign in and obtain an authorization code."""
        return EPIC_AUTH_URL

    async def exchange_auth_code(self, auth_code: str) -> EpicAuthToken:
        """
        Exchange an authorization code for an access token.

        Raises:
            MalformedInputError: if the code is empty
            ExternalServiceUnavailableError: if Epic rejects the exchange
        """
        code = (auth_code or '').strip()
        if not code:
            raise MalformedInputError("The Epic authorization code cannot be empty.")

        data = await request_json(
            self.session, 'Epic', 'POST', EPIC_AUTH_TOKEN_URL,
            data={'grant_type': 'authorization_code', 'code': code, 'token_type': 'eg1'},
            auth=aiohttp.BasicAuth(EPIC_CLIENT_ID, EPIC_CLIENT_SECRET),
        )
        if not data or 'access_token' not in data:
            raise ExternalServiceUnavailableError('Epic', "token exchange returned no access token")

        expires_in = int(data.get('expires_in') or 0)
        logger.info(f"[EPIC] Authenticated account {data.get('account_id')}")
        return EpicAuthToken(
            access_token=data['access_token'],
            account_id=data.get('account_id', ''),
            display_name=data.get('displayName', ''),
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        )

    async def get_owned_games(self, credential: Any) -> List[Game]:
        """
        Fetch the account's game entitlements.

        Args:
            credential: EpicAuthToken from exchange_auth_code.
        """
        token: EpicAuthToken = credential
        data = await request_json(
            self.session, 'Epic', 'GET',
            f"{EPIC_ENTITLEMENTS_URL}/{token.account_id}/entitlements",
            params={'start': 0, 'count': 5000},
            headers={'Authorization': f"bearer {token.access_token}"},
        )
        games = _game_entitlements(data or [])
        logger.info(f"[EPIC] Fetched {len(games)} owned games")
        return games

    def parse_exported_library(self, content: str) -> List[Game]:
        """
        Parse the entitlements JSON from an Epic GDPR data export.

        The export is either a bare list of entitlements or an object keyed
        by 'entitlements' (older exports use 'data').

        Raises:
            MalformedInputError: if the content is not JSON of either shape
        """
        try:
            parsed = json.loads(content)
        except (TypeError, ValueError) as e:
            raise MalformedInputError("The file is not a valid Epic Games JSON export.") from e

        if isinstance(parsed, list):
            entitlements = parsed
        elif isinstance(parsed, dict):
            entitlements = parsed.get('entitlements') or parsed.get('data') or []
        else:
            raise MalformedInputError("The file is not a valid Epic Games JSON export.")

        if not isinstance(entitlements, list):
            raise MalformedInputError("The Epic Games export has no entitlements list.")

        games = _game_entitlements(entitlements)
        logger.info(f"[EPIC] Parsed {len(games)} games from {len(entitlements)} exported entitlements")
        return games

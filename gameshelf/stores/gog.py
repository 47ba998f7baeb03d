"""
GOG connector.

Uses the public GOG Galaxy OAuth2 client (the same one used by Heroic,
Playnite and Lutris) to exchange an authorization code for a token pair,
and the embed API to list owned products.
"""
import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List
from urllib.parse import urlencode

import aiohttp

from ..errors import ExternalServiceUnavailableError, MalformedInputError
from ..utils.http import request_json
from .base import Game, Platform, PlatformConnector

logger = logging.getLogger(__name__)

GOG_AUTH_BASE = "https://auth.gog.com"
GOG_EMBED_BASE = "https://embed.gog.com"
GOG_TOKEN_URL = f"{GOG_AUTH_BASE}/token"
GOG_CLIENT_ID = "46899977096215655"
GOG_CLIENT_SECRET = "9d85c43b1482497dbbce61f6e4aa173a433796eeae2ca8c5f6129f2dc4de46d9"
GOG_REDIRECT_URI = "https://embed.gog.com/on_login_success?origin=client"

# Refresh when the access token expires within this many seconds
EXPIRY_MARGIN = 60


@dataclass(frozen=True)
class GogAuthToken:
    access_token: str
    refresh_token: str
    expires_at: datetime
    user_id: str

    def is_expired(self) -> bool:
        return self.expires_at - datetime.now(timezone.utc) < timedelta(seconds=EXPIRY_MARGIN)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['expires_at'] = self.expires_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GogAuthToken':
        return cls(
            access_token=data['access_token'],
            refresh_token=data['refresh_token'],
            expires_at=datetime.fromisoformat(data['expires_at']),
            user_id=str(data.get('user_id', '')),
        )


class GogConnector(PlatformConnector):
    """GOG auth and embed API client"""

    def __init__(self, session: aiohttp.ClientSession):
        self.session = session

    @property
    def platform(self) -> Platform:
        return Platform.GOG

    def get_auth_url(self) -> str:
        params = {
            'client_id': GOG_CLIENT_ID,
            'redirect_uri': GOG_REDIRECT_URI,
            'response_type': 'code',
            'layout': 'client2',
        }
        return f"{GOG_AUTH_BASE}/auth?{urlencode(params)}"

    def _token_from_response(self, data: Any, fallback_refresh: str = '') -> GogAuthToken:
        if not data or 'access_token' not in data:
            raise ExternalServiceUnavailableError('GOG', "token endpoint returned no access token")
        return GogAuthToken(
            access_token=data['access_token'],
            refresh_token=data.get('refresh_token') or fallback_refresh,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=int(data.get('expires_in') or 0)),
            user_id=str(data.get('user_id') or ''),
        )

    async def exchange_auth_code(self, auth_code: str) -> GogAuthToken:
        """Complete GOG OAuth flow with authorization code"""
        code = (auth_code or '').strip()
        if not code:
            raise MalformedInputError("The GOG authorization code cannot be empty.")

        data = await request_json(
            self.session, 'GOG', 'GET', GOG_TOKEN_URL,
            params={
                'client_id': GOG_CLIENT_ID,
                'client_secret': GOG_CLIENT_SECRET,
                'grant_type': 'authorization_code',
                'redirect_uri': GOG_REDIRECT_URI,
                'code': code,
            },
        )
        token = self._token_from_response(data)
        logger.info(f"[GOG] Authentication successful for user {token.user_id}")
        return token

    async def refresh_token(self, token: GogAuthToken) -> GogAuthToken:
        """Renew an access token; GOG may omit user_id and refresh_token on refresh."""
        data = await request_json(
            self.session, 'GOG', 'GET', GOG_TOKEN_URL,
            params={
                'client_id': GOG_CLIENT_ID,
                'client_secret': GOG_CLIENT_SECRET,
                'grant_type': 'refresh_token',
                'refresh_token': token.refresh_token,
            },
        )
        renewed = self._token_from_response(data, fallback_refresh=token.refresh_token)
        if not renewed.user_id:
            renewed = GogAuthToken(renewed.access_token, renewed.refresh_token, renewed.expires_at, token.user_id)
        logger.debug("[GOG] Access token refreshed")
        return renewed

    async def get_owned_games(self, credential: Any) -> List[Game]:
        """
        List owned games.

        Args:
            credential: A valid access token string.
        """
        data = await request_json(
            self.session, 'GOG', 'GET',
            f"{GOG_EMBED_BASE}/account/getFilteredProducts",
            params={'mediaType': 1, 'sortBy': 'title'},
            headers={'Authorization': f"Bearer {credential}", 'User-Agent': 'GOG Galaxy Client'},
        )
        games = []
        for product in (data or {}).get('products', []):
            if not product.get('id'):
                continue
            image = product.get('image')
            games.append(Game(
                id=f"gog_{product['id']}",
                title=product.get('title', ''),
                platform=Platform.GOG,
                cover_url=f"https:{image}_196.jpg" if image else None,
            ))
        logger.info(f"[GOG] Fetched {len(games)} owned games")
        return games

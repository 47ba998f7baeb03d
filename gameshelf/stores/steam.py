"""
Steam connector.

Responsibilities:
- OpenID 2.0 sign-in (login URL, callback verification, SteamID extraction)
- Resolving a SteamID from a profile URL or vanity name
- Profile visibility check (library sync needs a public profile)
- Owned / recently played games via the Steam Web API
- Store metadata (appdetails) and fuzzy store search by title
"""
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import aiohttp

from ..errors import ExternalServiceUnavailableError
from ..metadata.base import StoreMetadata
from ..utils.http import request_json, request_text
from ..utils.titles import best_title_match
from .base import Game, Platform, PlatformConnector

logger = logging.getLogger(__name__)

STEAM_API_BASE = "https://api.steampowered.com"
STEAM_STORE_API = "https://store.steampowered.com/api"
STEAM_OPENID_URL = "https://steamcommunity.com/openid/login"
OPENID_NS = "http://specs.openid.net/auth/2.0"
OPENID_IDENTIFIER_SELECT = "http://specs.openid.net/auth/2.0/identifier_select"
STEAM_COVER_URL = "https://steamcdn-a.akamaihd.net/steam/apps/{app_id}/header.jpg"
STEAM_BACKGROUND_URL = "https://steamcdn-a.akamaihd.net/steam/apps/{app_id}/library_hero.jpg"

# communityvisibilitystate value for a public profile
VISIBILITY_PUBLIC = 3

CLAIMED_ID_PATTERN = re.compile(r"/openid/id/(\d+)$")
STEAM_ID64_PATTERN = re.compile(r"^\d{17}$")
PROFILE_URL_PATTERN = re.compile(r"steamcommunity\.com/profiles/(\d{17})")
VANITY_URL_PATTERN = re.compile(r"steamcommunity\.com/id/([^/?#]+)")


class SteamConnector(PlatformConnector):
    """Steam Web API, store API and OpenID client"""

    def __init__(self, session: aiohttp.ClientSession, api_key: str):
        self.session = session
        self.api_key = api_key

    @property
    def platform(self) -> Platform:
        return Platform.STEAM

    # --- OpenID -----------------------------------------------------------

    def get_login_url(self, return_url: str) -> str:
        """Build the Steam OpenID sign-in URL that redirects back to return_url."""
        params = {
            'openid.ns': OPENID_NS,
            'openid.mode': 'checkid_setup',
            'openid.return_to': return_url,
            'openid.realm': return_url,
            'openid.identity': OPENID_IDENTIFIER_SELECT,
            'openid.claimed_id': OPENID_IDENTIFIER_SELECT,
        }
        return f"{STEAM_OPENID_URL}?{urlencode(params)}"

    @staticmethod
    def extract_steam_id(params: Dict[str, str]) -> Optional[str]:
        """Pull the SteamID64 out of openid.claimed_id."""
        claimed_id = params.get('openid.claimed_id', '')
        match = CLAIMED_ID_PATTERN.search(claimed_id)
        return match.group(1) if match else None

    async def verify_openid_response(self, params: Dict[str, str]) -> bool:
        """
        Ask Steam to confirm the callback parameters were signed by it.

        Args:
            params: All openid.* query parameters received on the callback.

        Returns:
            True if Steam answered is_valid:true.
        """
        if params.get('openid.mode') != 'id_res':
            logger.warning(f"[Steam] Unexpected openid.mode: {params.get('openid.mode')}")
            return False

        verify_params = dict(params)
        verify_params['openid.mode'] = 'check_authentication'
        body = await request_text(self.session, 'Steam', 'POST', STEAM_OPENID_URL, data=verify_params)
        return 'is_valid:true' in body

    # --- Profiles ---------------------------------------------------------

    async def resolve_steam_id(self, profile: str) -> Optional[str]:
        """
        Resolve a SteamID64 from a raw id, a profile URL or a vanity name.

        Accepts:
            76561198000000000
            https://steamcommunity.com/profiles/76561198000000000
            https://steamcommunity.com/id/gabelogannewell
            gabelogannewell
        """
        value = (profile or '').strip()
        if not value:
            return None

        if STEAM_ID64_PATTERN.match(value):
            return value

        match = PROFILE_URL_PATTERN.search(value)
        if match:
            return match.group(1)

        match = VANITY_URL_PATTERN.search(value)
        vanity = match.group(1) if match else value.strip('/')

        data = await request_json(
            self.session, 'Steam', 'GET',
            f"{STEAM_API_BASE}/ISteamUser/ResolveVanityURL/v1/",
            params={'key': self.api_key, 'vanityurl': vanity},
        )
        response = (data or {}).get('response', {})
        if response.get('success') == 1:
            return response.get('steamid')

        logger.info(f"[Steam] Could not resolve vanity name '{vanity}'")
        return None

    async def check_profile_visibility(self, steam_id: str) -> bool:
        """Return True if the profile (and so its game list) is public."""
        data = await request_json(
            self.session, 'Steam', 'GET',
            f"{STEAM_API_BASE}/ISteamUser/GetPlayerSummaries/v2/",
            params={'key': self.api_key, 'steamids': steam_id},
        )
        players = (data or {}).get('response', {}).get('players', [])
        if not players:
            return False
        return players[0].get('communityvisibilitystate') == VISIBILITY_PUBLIC

    # --- Library ----------------------------------------------------------

    def _to_game(self, entry: Dict[str, Any]) -> Game:
        app_id = int(entry['appid'])
        last_played = entry.get('rtime_last_played')
        return Game(
            id=str(app_id),
            title=entry.get('name', ''),
            platform=Platform.STEAM,
            steam_app_id=app_id,
            playtime=int(entry.get('playtime_forever') or 0),
            last_played=datetime.fromtimestamp(last_played, tz=timezone.utc) if last_played else None,
            cover_url=STEAM_COVER_URL.format(app_id=app_id),
            background_url=STEAM_BACKGROUND_URL.format(app_id=app_id),
        )

    async def get_owned_games(self, credential: Any) -> List[Game]:
        """
        Get owned games for a SteamID64.

        Args:
            credential: SteamID64 of the linked account.
        """
        data = await request_json(
            self.session, 'Steam', 'GET',
            f"{STEAM_API_BASE}/IPlayerService/GetOwnedGames/v1/",
            params={
                'key': self.api_key,
                'steamid': str(credential),
                'include_appinfo': 1,
                'include_played_free_games': 1,
                'format': 'json',
            },
        )
        entries = (data or {}).get('response', {}).get('games', [])
        games = [self._to_game(entry) for entry in entries if entry.get('appid')]
        logger.info(f"[Steam] Fetched {len(games)} owned games for {credential}")
        return games

    async def get_recently_played_games(self, steam_id: str, count: int = 10) -> List[Game]:
        data = await request_json(
            self.session, 'Steam', 'GET',
            f"{STEAM_API_BASE}/IPlayerService/GetRecentlyPlayedGames/v1/",
            params={'key': self.api_key, 'steamid': steam_id, 'count': count},
        )
        entries = (data or {}).get('response', {}).get('games', [])
        return [self._to_game(entry) for entry in entries if entry.get('appid')]

    # --- Store ------------------------------------------------------------

    async def get_app_details(self, app_id: int) -> Optional[StoreMetadata]:
        """Fetch store page metadata for an app, None if Steam has no page for it."""
        data = await request_json(
            self.session, 'Steam', 'GET',
            f"{STEAM_STORE_API}/appdetails",
            params={'appids': app_id, 'l': 'english'},
        )
        entry = (data or {}).get(str(app_id)) or {}
        if not entry.get('success'):
            return None

        details = entry.get('data') or {}
        release = details.get('release_date') or {}
        metacritic = details.get('metacritic') or {}
        recommendations = details.get('recommendations') or {}
        return StoreMetadata(
            genres=[g.get('description', '') for g in details.get('genres', []) if g.get('description')],
            developers=list(details.get('developers', [])),
            publishers=list(details.get('publishers', [])),
            release_date=release.get('date') or None,
            critic_score=metacritic.get('score'),
            screenshots=[s['path_full'] for s in details.get('screenshots', []) if s.get('path_full')],
            recommendation_count=recommendations.get('total'),
            description=details.get('short_description') or None,
        )

    async def search_app_id(self, title: str) -> Optional[int]:
        """
        Search the Steam store by title and return the app id of a confident match.

        Unlike a plain "first result" lookup this refuses to guess: a hit is
        only returned when its normalized name matches the title.
        """
        data = await request_json(
            self.session, 'Steam', 'GET',
            f"{STEAM_STORE_API}/storesearch/",
            params={'term': title, 'cc': 'US', 'l': 'english'},
        )
        items = (data or {}).get('items', [])
        match = best_title_match(title, items, key=lambda item: item.get('name', ''))
        if match is None:
            logger.debug(f"[Steam] No confident store match for '{title}'")
            return None
        try:
            return int(match['id'])
        except (KeyError, TypeError, ValueError):
            raise ExternalServiceUnavailableError('Steam', f"store search hit without id for '{title}'")

"""
Owned-library reads and per-platform sync.

Responsibilities:
- Pull owned games from a linked platform and bulk-upsert them
- Keep GOG tokens fresh (refresh within 60s of expiry, persist the new pair)
- Library search, sorting, the "most played" shelf and recently played on Steam
"""
import logging
from dataclasses import replace
from datetime import datetime, timezone
from enum import Enum
from typing import List

from ..errors import ExternalServiceUnavailableError, PreconditionFailedError
from ..repositories.base import GameRepository, PlatformRepository
from ..stores.base import Game, LinkedPlatform, Platform
from ..stores.gog import GogAuthToken, GogConnector
from ..stores.manager import ConnectorRegistry
from ..stores.steam import SteamConnector

logger = logging.getLogger(__name__)

EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class SortCriteria(str, Enum):
    ALPHABETICAL = "alphabetical"
    LAST_PLAYED = "last_played"
    PLAYTIME = "playtime"


def sort_games(games: List[Game], criteria: SortCriteria) -> List[Game]:
    """Return a sorted copy of games."""
    if criteria == SortCriteria.LAST_PLAYED:
        return sorted(games, key=lambda g: g.last_played or EPOCH, reverse=True)
    if criteria == SortCriteria.PLAYTIME:
        return sorted(games, key=lambda g: g.playtime, reverse=True)
    return sorted(games, key=lambda g: g.title.lower())


class LibrarySyncService:
    def __init__(self, games: GameRepository, platforms: PlatformRepository, connectors: ConnectorRegistry):
        self.games = games
        self.platforms = platforms
        self.connectors = connectors

    async def get_library(self, user_id: str) -> List[Game]:
        return await self.games.get_library_games(user_id)

    async def search_in_library(self, user_id: str, query: str) -> List[Game]:
        needle = (query or '').strip().lower()
        if not needle:
            return []
        return [g for g in await self.games.get_library_games(user_id) if needle in g.title.lower()]

    async def get_most_played(self, user_id: str, limit: int = 5) -> List[Game]:
        played = [g for g in await self.games.get_library_games(user_id) if g.playtime > 0]
        return sort_games(played, SortCriteria.PLAYTIME)[:limit]

    async def get_recently_played(self, user_id: str) -> List[Game]:
        """Recently played games on the linked Steam account; [] if unlinked or Steam is down."""
        link = await self.platforms.get_link(user_id, Platform.STEAM)
        if link is None:
            return []

        steam: SteamConnector = self.connectors.get_connector(Platform.STEAM)
        try:
            return await steam.get_recently_played_games(link.external_user_id)
        except ExternalServiceUnavailableError as e:
            logger.warning(f"[LibrarySync] Recently played unavailable for {user_id}: {e}")
            return []

    async def sync_library(self, user_id: str, platform: Platform) -> List[Game]:
        """
        Sync one platform's owned games into the user's library.

        Returns:
            The platform's games after the sync ([] if the platform is not linked)
        """
        link = await self.platforms.get_link(user_id, platform)
        if link is None:
            logger.info(f"[LibrarySync] {platform.value} not linked for {user_id}, nothing to sync")
            return []

        if platform == Platform.EPIC_GAMES:
            # Epic entries are stored when the link is made; there is no credential to re-fetch with
            return [g for g in await self.games.get_library_games(user_id) if g.platform == Platform.EPIC_GAMES]

        if platform == Platform.STEAM:
            games = await self.connectors.get_connector(Platform.STEAM).get_owned_games(link.external_user_id)
        elif platform == Platform.GOG:
            access_token = await self._gog_access_token(user_id, link)
            games = await self.connectors.get_connector(Platform.GOG).get_owned_games(access_token)
        else:
            raise ValueError(f"Cannot sync platform {platform.value}")

        await self.games.upsert_games(user_id, games)
        logger.info(f"[LibrarySync] Synced {len(games)} {platform.value} games for {user_id}")
        return games

    async def _gog_access_token(self, user_id: str, link: LinkedPlatform) -> str:
        if not link.credentials:
            raise PreconditionFailedError("GOG is linked without tokens. Please link your GOG account again.")

        token = GogAuthToken.from_dict(link.credentials)
        if token.is_expired():
            gog: GogConnector = self.connectors.get_connector(Platform.GOG)
            token = await gog.refresh_token(token)
            await self.platforms.upsert(user_id, replace(link, credentials=token.to_dict()))
            logger.info(f"[LibrarySync] Refreshed GOG token for {user_id}")
        return token.access_token

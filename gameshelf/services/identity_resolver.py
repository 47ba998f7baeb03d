"""
Game identity resolution.

Turns whatever id a caller has (library id, Steam app id, catalog id) into a
Game. Owned entries always win; an ephemeral Game (platform UNKNOWN, never
persisted) is only built once every owned-library avenue is exhausted.

Cascade:
1. Direct library lookup by id
2. Library lookup by the hinted Steam app id
3. All-digit id: library lookup by cross-referenced app id, then catalog id
   via the Steam app id mapping and catalog info, else ephemeral
4. Otherwise a catalog id: catalog info, library lookup by the app id the
   catalog reports, else ephemeral

NotFoundError is raised only when the catalog cannot resolve the id at all.
"""
import logging
from typing import Optional

from ..errors import NotFoundError
from ..metadata.base import CatalogInfo
from ..metadata.itad import CatalogService
from ..repositories.base import GameRepository
from ..stores.base import Game, Platform

logger = logging.getLogger(__name__)


class GameIdentityResolver:
    def __init__(self, games: GameRepository, catalog: CatalogService):
        self.games = games
        self.catalog = catalog

    async def _find_owned_by_id(self, user_id: str, game_id: str) -> Optional[Game]:
        try:
            return await self.games.get_game_by_id(user_id, game_id)
        except NotFoundError:
            return None

    async def _find_owned_by_app_id(self, user_id: str, app_id: int) -> Optional[Game]:
        """Library entry for a Steam app id, whether stored under it or cross-referenced to it."""
        game = await self._find_owned_by_id(user_id, str(app_id))
        if game is not None:
            return game
        return await self.games.find_by_steam_app_id(user_id, app_id)

    async def resolve(self, user_id: str, game_id: str, hinted_app_id: Optional[int] = None) -> Game:
        """
        Resolve game_id to a Game for user_id.

        Args:
            user_id: Acting user
            game_id: Library id, Steam app id or catalog id
            hinted_app_id: Steam app id the caller already knows, if any

        Returns:
            The owned library entry, or an ephemeral Game with platform UNKNOWN

        Raises:
            NotFoundError: if the catalog cannot resolve game_id
        """
        owned = await self._find_owned_by_id(user_id, game_id)
        if owned is not None:
            logger.debug(f"[Resolver] {game_id}: library hit")
            return owned

        if hinted_app_id is not None:
            owned = await self._find_owned_by_app_id(user_id, hinted_app_id)
            if owned is not None:
                logger.debug(f"[Resolver] {game_id}: library hit via hinted app id {hinted_app_id}")
                return owned

        if game_id.isdigit():
            return await self._resolve_app_id(user_id, game_id)
        return await self._resolve_catalog_id(user_id, game_id, hinted_app_id)

    async def _resolve_app_id(self, user_id: str, game_id: str) -> Game:
        app_id = int(game_id)
        owned = await self.games.find_by_steam_app_id(user_id, app_id)
        if owned is not None:
            logger.debug(f"[Resolver] {game_id}: library hit via cross-referenced app id")
            return owned

        catalog_id = await self.catalog.lookup_id_by_platform_app_id(Platform.STEAM, app_id)
        info = await self.catalog.get_info(catalog_id) if catalog_id else None

        if catalog_id is None and info is None:
            raise NotFoundError(f"No catalog entry for Steam app {game_id}")

        logger.debug(f"[Resolver] {game_id}: ephemeral game for catalog id {catalog_id}")
        return self._ephemeral(game_id, info, steam_app_id=app_id, itad_game_id=catalog_id)

    async def _resolve_catalog_id(self, user_id: str, game_id: str, hinted_app_id: Optional[int]) -> Game:
        info = await self.catalog.get_info(game_id)
        if info is None:
            raise NotFoundError(f"Game {game_id} not found in library or catalog")

        # The catalog record for the requested id outranks a caller hint
        app_id = info.platform_app_id or hinted_app_id
        if info.platform_app_id is not None:
            owned = await self._find_owned_by_app_id(user_id, info.platform_app_id)
            if owned is not None:
                logger.debug(f"[Resolver] {game_id}: library hit via catalog app id {info.platform_app_id}")
                return owned

        logger.debug(f"[Resolver] {game_id}: ephemeral game from catalog")
        return self._ephemeral(game_id, info, steam_app_id=app_id, itad_game_id=game_id)

    @staticmethod
    def _ephemeral(
        game_id: str,
        info: Optional[CatalogInfo],
        steam_app_id: Optional[int],
        itad_game_id: Optional[str],
    ) -> Game:
        return Game(
            id=game_id,
            title=info.title if info else '',
            platform=Platform.UNKNOWN,
            steam_app_id=steam_app_id,
            itad_game_id=itad_game_id,
            cover_url=info.cover_url if info else None,
        )

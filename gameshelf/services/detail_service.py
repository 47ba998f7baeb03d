"""
Game detail aggregation.

Responsibilities:
- Resolve the requested id to a Game (fatal if that fails)
- Backfill a Steam app id onto Epic entries that lack one (catalog first,
  then fuzzy Steam store search), persisting it best-effort
- Fan out to the five enrichment sources with all-settle semantics:
  ProtonDB, HowLongToBeat, deals, wishlist membership, Steam store metadata
- Reduce the settled results into one GameDetail

A GameDetail is built fresh per request and never cached.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..compat.protondb import ProtonDbClient, ProtonDbRating
from ..errors import ExternalServiceUnavailableError
from ..metadata.base import Deal, DurationEstimate, StoreMetadata
from ..metadata.hltb import HowLongToBeatClient
from ..metadata.itad import CatalogService
from ..repositories.base import GameRepository, WishlistRepository
from ..stores.base import CrossReference, Game, Platform, ResolvedIdentity, apply_identity
from ..stores.steam import SteamConnector
from ..utils.results import Result, gather_settled
from .identity_resolver import GameIdentityResolver

logger = logging.getLogger(__name__)

SOURCE_PROTONDB = 'protondb'
SOURCE_DURATION = 'howlongtobeat'
SOURCE_DEALS = 'deals'
SOURCE_WISHLIST = 'wishlist'
SOURCE_STORE = 'store_metadata'


@dataclass(frozen=True)
class GameDetail:
    """Composite detail view; every enrichment field is None when its source did not answer"""
    game: Game
    protondb_tier: Optional[str] = None
    protondb_trending_tier: Optional[str] = None
    protondb_report_count: Optional[int] = None
    hours_main: Optional[float] = None
    hours_main_extra: Optional[float] = None
    hours_completionist: Optional[float] = None
    deals: List[Deal] = field(default_factory=list)
    store_metadata: Optional[StoreMetadata] = None
    is_in_wishlist: Optional[bool] = None
    unavailable_sources: List[str] = field(default_factory=list)

    @property
    def best_deal(self) -> Optional[Deal]:
        return max(self.deals, key=lambda d: d.discount_percentage) if self.deals else None


def build_game_detail(game: Game, results: Dict[str, Result]) -> GameDetail:
    """
    Combine the settled enrichment results for game into a GameDetail.

    The deals source also yields the catalog id it resolved; it is applied to
    the returned Game in memory only.
    """
    unavailable = [name for name, result in results.items() if not result.ok]

    rating: Optional[ProtonDbRating] = results[SOURCE_PROTONDB].value_or(None)
    duration: Optional[DurationEstimate] = results[SOURCE_DURATION].value_or(None)
    deals, identity = results[SOURCE_DEALS].value_or(([], None))

    return GameDetail(
        game=apply_identity(game, identity),
        protondb_tier=rating.tier if rating else None,
        protondb_trending_tier=rating.trending_tier if rating else None,
        protondb_report_count=rating.total if rating else None,
        hours_main=duration.main if duration else None,
        hours_main_extra=duration.main_extra if duration else None,
        hours_completionist=duration.completionist if duration else None,
        deals=list(deals),
        store_metadata=results[SOURCE_STORE].value_or(None),
        is_in_wishlist=results[SOURCE_WISHLIST].value_or(None),
        unavailable_sources=unavailable,
    )


async def _nothing():
    return None


class DetailAggregator:
    def __init__(
        self,
        resolver: GameIdentityResolver,
        games: GameRepository,
        wishlist: WishlistRepository,
        catalog: CatalogService,
        steam: SteamConnector,
        protondb: ProtonDbClient,
        hltb: HowLongToBeatClient,
    ):
        self.resolver = resolver
        self.games = games
        self.wishlist = wishlist
        self.catalog = catalog
        self.steam = steam
        self.protondb = protondb
        self.hltb = hltb

    async def get_detail(self, game_id: str, user_id: str, hinted_app_id: Optional[int] = None) -> GameDetail:
        """
        Build the detail view for game_id.

        Raises:
            NotFoundError: if the game cannot be resolved
        """
        game = await self.resolver.resolve(user_id, game_id, hinted_app_id)

        if game.platform == Platform.EPIC_GAMES and game.steam_app_id is None:
            game = await self._backfill_steam_app_id(user_id, game)

        app_id = game.steam_app_id
        results = await gather_settled(**{
            SOURCE_PROTONDB: self.protondb.get_rating(app_id) if app_id else _nothing(),
            SOURCE_DURATION: self.hltb.get_duration(game.title),
            SOURCE_DEALS: self._fetch_deals(game),
            SOURCE_WISHLIST: self.wishlist.is_in_wishlist(user_id, game_id),
            SOURCE_STORE: self.steam.get_app_details(app_id) if app_id else _nothing(),
        })

        detail = build_game_detail(game, results)
        if detail.unavailable_sources:
            logger.info(f"[Details] {game_id}: unavailable sources {detail.unavailable_sources}")
        return detail

    async def _backfill_steam_app_id(self, user_id: str, game: Game) -> Game:
        """
        Discover and attach a Steam app id for an Epic entry.

        Catalog first, then the Steam store search; the first to answer wins.
        An unavailable service moves on to the next strategy, and if none
        answers the game is returned unpatched.
        """
        itad_id = game.itad_game_id
        app_id: Optional[int] = None

        try:
            itad_id = itad_id or await self.catalog.lookup_id_by_title(game.title)
            if itad_id:
                info = await self.catalog.get_info(itad_id)
                app_id = info.platform_app_id if info else None
        except ExternalServiceUnavailableError as e:
            logger.warning(f"[Details] Catalog unavailable for Steam app id backfill of {game.id}: {e}")

        if app_id is None:
            try:
                app_id = await self.steam.search_app_id(game.title)
            except ExternalServiceUnavailableError as e:
                logger.warning(f"[Details] Steam store search unavailable for {game.id}: {e}")

        if app_id is None:
            logger.debug(f"[Details] No Steam app id found for Epic game '{game.title}'")
            return apply_identity(game, ResolvedIdentity(itad_game_id=itad_id))

        logger.info(f"[Details] Backfilled Steam app id {app_id} for Epic game '{game.title}'")
        try:
            await self.games.update_cross_reference_id(user_id, game.id, CrossReference.STEAM_APP_ID, app_id)
        except Exception as e:
            logger.warning(f"[Details] Could not persist Steam app id for {game.id}: {e}")

        return apply_identity(game, ResolvedIdentity(steam_app_id=app_id, itad_game_id=itad_id))

    async def _fetch_deals(self, game: Game) -> Tuple[List[Deal], Optional[ResolvedIdentity]]:
        """Current deals, plus the catalog id resolved to find them when the game lacked one."""
        if game.itad_game_id:
            return await self.catalog.get_prices(game.itad_game_id), None

        itad_id: Optional[str] = None
        if game.steam_app_id is not None:
            itad_id = await self.catalog.lookup_id_by_platform_app_id(Platform.STEAM, game.steam_app_id)
        if itad_id is None and game.title:
            itad_id = await self.catalog.lookup_id_by_title(game.title)
        if itad_id is None:
            return [], None

        return await self.catalog.get_prices(itad_id), ResolvedIdentity(itad_game_id=itad_id)

"""
Platform linking.

One state machine, UNLINKED -> VERIFYING -> LINKED, drives every platform.
What "verify" means is supplied by a LinkStrategy:

- SteamOpenIdStrategy: verify the OpenID callback, extract the SteamID,
  require a public profile
- SteamProfileStrategy: resolve a SteamID from a profile URL / vanity name,
  require a public profile
- EpicAuthCodeStrategy: exchange an auth code, fetch entitlements
- EpicExportStrategy: parse a manual GDPR export (linked as "imported")
- GogAuthCodeStrategy: exchange an auth code for a token pair

The link is only persisted after verification succeeds. A library sync is
then queued in the background; its outcome never affects the link.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

from ..controllers.background_sync import BackgroundSyncQueue
from ..errors import MalformedInputError, PreconditionFailedError
from ..repositories.base import StorageBackend
from ..stores.base import IMPORTED_MARKER, Game, LinkedPlatform, Platform
from ..stores.epic import EpicConnector
from ..stores.gog import GogConnector
from ..stores.steam import SteamConnector

logger = logging.getLogger(__name__)

PRIVATE_PROFILE_MESSAGE = (
    "Your Steam profile is private. In Steam go to Settings > Privacy > "
    "Game details, set it to Public and try again."
)


class LinkState(str, Enum):
    UNLINKED = "unlinked"
    VERIFYING = "verifying"
    LINKED = "linked"


@dataclass(frozen=True)
class LinkOutcome:
    """What a successful verification produced"""
    external_user_id: str
    credentials: Optional[Dict[str, Any]] = None
    imported_games: List[Game] = field(default_factory=list)


class LinkStrategy(ABC):
    """Platform-specific verification/exchange step of the link state machine"""

    @property
    @abstractmethod
    def platform(self) -> Platform:
        pass

    @abstractmethod
    async def verify(self, payload: Dict[str, Any]) -> LinkOutcome:
        """
        Verify the user's proof of account ownership.

        Raises:
            PreconditionFailedError / MalformedInputError: the link must not be made
        """
        pass


class _SteamStrategy(LinkStrategy):
    def __init__(self, steam: SteamConnector):
        self.steam = steam

    @property
    def platform(self) -> Platform:
        return Platform.STEAM

    async def _require_public(self, steam_id: str) -> LinkOutcome:
        if not await self.steam.check_profile_visibility(steam_id):
            logger.info(f"[LinkOrchestrator] Steam profile {steam_id} is private")
            raise PreconditionFailedError(PRIVATE_PROFILE_MESSAGE)
        return LinkOutcome(external_user_id=steam_id)


class SteamOpenIdStrategy(_SteamStrategy):
    """payload: {'params': <openid.* callback query parameters>}"""

    async def verify(self, payload: Dict[str, Any]) -> LinkOutcome:
        params = payload.get('params') or {}
        if not await self.steam.verify_openid_response(params):
            raise PreconditionFailedError("Steam OpenID verification failed. Please try again.")

        steam_id = self.steam.extract_steam_id(params)
        if not steam_id:
            raise MalformedInputError("The Steam callback did not contain a SteamID.")
        return await self._require_public(steam_id)


class SteamProfileStrategy(_SteamStrategy):
    """payload: {'profile': <SteamID64, profile URL or vanity name>}"""

    async def verify(self, payload: Dict[str, Any]) -> LinkOutcome:
        steam_id = await self.steam.resolve_steam_id(payload.get('profile', ''))
        if not steam_id:
            raise PreconditionFailedError(
                "No Steam profile found. Check the profile URL or custom name and try again."
            )
        return await self._require_public(steam_id)


class EpicAuthCodeStrategy(LinkStrategy):
    """payload: {'code': <authorization code>}"""

    def __init__(self, epic: EpicConnector):
        self.epic = epic

    @property
    def platform(self) -> Platform:
        return Platform.EPIC_GAMES

    async def verify(self, payload: Dict[str, Any]) -> LinkOutcome:
        token = await self.epic.exchange_auth_code(payload.get('code', ''))
        games = await self.epic.get_owned_games(token)
        if not games:
            raise PreconditionFailedError("No games were found in your Epic Games library.")
        return LinkOutcome(external_user_id=token.account_id, imported_games=games)


class EpicExportStrategy(LinkStrategy):
    """payload: {'content': <entitlements JSON from the GDPR export>}"""

    def __init__(self, epic: EpicConnector):
        self.epic = epic

    @property
    def platform(self) -> Platform:
        return Platform.EPIC_GAMES

    async def verify(self, payload: Dict[str, Any]) -> LinkOutcome:
        games = self.epic.parse_exported_library(payload.get('content', ''))
        if not games:
            raise MalformedInputError(
                "No games were found in the file. Make sure it is the entitlements JSON "
                "from your Epic Games data export."
            )
        return LinkOutcome(external_user_id=IMPORTED_MARKER, imported_games=games)


class GogAuthCodeStrategy(LinkStrategy):
    """payload: {'code': <authorization code>}"""

    def __init__(self, gog: GogConnector):
        self.gog = gog

    @property
    def platform(self) -> Platform:
        return Platform.GOG

    async def verify(self, payload: Dict[str, Any]) -> LinkOutcome:
        token = await self.gog.exchange_auth_code(payload.get('code', ''))
        return LinkOutcome(external_user_id=token.user_id, credentials=token.to_dict())


class PlatformLinkOrchestrator:
    def __init__(self, storage: StorageBackend, sync_queue: BackgroundSyncQueue):
        self.storage = storage
        self.sync_queue = sync_queue
        self._verifying: Set[Tuple[str, Platform]] = set()

    async def get_state(self, user_id: str, platform: Platform) -> LinkState:
        if (user_id, platform) in self._verifying:
            return LinkState.VERIFYING
        link = await self.storage.platforms.get_link(user_id, platform)
        return LinkState.LINKED if link else LinkState.UNLINKED

    async def link(self, user_id: str, strategy: LinkStrategy, payload: Dict[str, Any]) -> LinkedPlatform:
        """
        Run one link attempt.

        Returns:
            The persisted LinkedPlatform

        Raises:
            PreconditionFailedError, MalformedInputError: verification failed;
                nothing was persisted
        """
        platform = strategy.platform
        key = (user_id, platform)
        if key in self._verifying:
            raise PreconditionFailedError(f"A {platform.value} link is already in progress.")

        self._verifying.add(key)
        logger.info(f"[LinkOrchestrator] {platform.value}: VERIFYING for {user_id}")
        try:
            outcome = await strategy.verify(payload)

            if outcome.imported_games:
                await self.storage.games.store_imported_games(user_id, platform, outcome.imported_games)

            link = LinkedPlatform(
                platform=platform,
                external_user_id=outcome.external_user_id,
                linked_at=datetime.now(timezone.utc),
                credentials=outcome.credentials,
            )
            await self.storage.platforms.upsert(user_id, link)
        except Exception as e:
            logger.warning(f"[LinkOrchestrator] {platform.value}: link failed for {user_id}: {e}")
            raise
        finally:
            self._verifying.discard(key)

        logger.info(f"[LinkOrchestrator] {platform.value}: LINKED for {user_id} as {link.external_user_id}")
        self.sync_queue.submit(user_id, platform)
        return link

    async def unlink(self, user_id: str, platform: Platform) -> None:
        """Remove the link and the platform's games from the library."""
        await self.storage.platforms.remove(user_id, platform)
        await self.storage.games.remove_platform_games(user_id, platform)
        logger.info(f"[LinkOrchestrator] {platform.value}: UNLINKED for {user_id}")

    async def get_linked_platforms(self, user_id: str) -> List[LinkedPlatform]:
        return await self.storage.platforms.get_linked(user_id)


class PlatformLinkService:
    """Per-platform entry points over the orchestrator"""

    def __init__(
        self,
        orchestrator: PlatformLinkOrchestrator,
        steam: SteamConnector,
        epic: EpicConnector,
        gog: GogConnector,
    ):
        self.orchestrator = orchestrator
        self.steam = steam
        self.epic = epic
        self.gog = gog
        self.steam_openid = SteamOpenIdStrategy(steam)
        self.steam_profile = SteamProfileStrategy(steam)
        self.epic_auth_code = EpicAuthCodeStrategy(epic)
        self.epic_export = EpicExportStrategy(epic)
        self.gog_auth_code = GogAuthCodeStrategy(gog)

    def get_steam_login_url(self, return_url: str) -> str:
        return self.steam.get_login_url(return_url)

    def get_epic_auth_url(self) -> str:
        return self.epic.get_auth_url()

    def get_gog_auth_url(self) -> str:
        return self.gog.get_auth_url()

    async def link_steam(self, user_id: str, params: Dict[str, str]) -> LinkedPlatform:
        return await self.orchestrator.link(user_id, self.steam_openid, {'params': params})

    async def link_steam_by_id(self, user_id: str, profile: str) -> LinkedPlatform:
        return await self.orchestrator.link(user_id, self.steam_profile, {'profile': profile})

    async def link_epic_by_auth_code(self, user_id: str, code: str) -> LinkedPlatform:
        return await self.orchestrator.link(user_id, self.epic_auth_code, {'code': code})

    async def link_epic_export(self, user_id: str, content: str) -> LinkedPlatform:
        return await self.orchestrator.link(user_id, self.epic_export, {'content': content})

    async def link_gog_by_code(self, user_id: str, code: str) -> LinkedPlatform:
        return await self.orchestrator.link(user_id, self.gog_auth_code, {'code': code})

    async def unlink(self, user_id: str, platform: Platform) -> None:
        await self.orchestrator.unlink(user_id, platform)

    async def get_linked_platforms(self, user_id: str) -> List[LinkedPlatform]:
        return await self.orchestrator.get_linked_platforms(user_id)

"""
GameShelf composition root.

Builds the HTTP session, connectors, catalog clients and both storage
backends once, then hands out per-session service bundles. The storage
backend for a session is chosen here, when the session is created.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import aiohttp

from .compat.protondb import ProtonDbClient
from .config import Settings, load_settings
from .controllers.background_sync import BackgroundSyncQueue
from .metadata.hltb import HowLongToBeatClient
from .metadata.itad import CatalogService, IsThereAnyDealClient
from .repositories.guest_session import GuestSessionRepository
from .repositories.local import create_local_backend
from .repositories.remote import create_remote_backend
from .repositories.router import StorageRouter, UserSession
from .services.detail_service import DetailAggregator
from .services.identity_resolver import GameIdentityResolver
from .services.library_service import LibrarySyncService
from .services.platform_link_service import PlatformLinkOrchestrator, PlatformLinkService
from .services.search_service import SearchService
from .services.settings_service import AuthProvider, SettingsService
from .services.wishlist_service import WishlistEnrichmentEngine, WishlistService
from .storage.document_store import DocumentStore, JsonFileDocumentStore
from .storage.kv_store import JsonFileKeyValueStore, KeyValueStore
from .stores.base import Platform
from .stores.epic import EpicConnector
from .stores.gog import GogConnector
from .stores.manager import ConnectorRegistry
from .stores.steam import SteamConnector
from .utils.http import create_session
from .utils.paths import DEVICE_STORE_FILE, DOCUMENT_STORE_FILE, data_path, ensure_data_dir

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionServices:
    session: UserSession
    resolver: GameIdentityResolver
    details: DetailAggregator
    library: LibrarySyncService
    wishlist: WishlistService
    links: PlatformLinkService
    search: SearchService
    settings: Optional[SettingsService]


class GameShelf:
    """Main GameShelf application object"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        auth: Optional[AuthProvider] = None,
        http_session: Optional[aiohttp.ClientSession] = None,
        documents: Optional[DocumentStore] = None,
        device_store: Optional[KeyValueStore] = None,
        catalog: Optional[CatalogService] = None,
    ):
        self.settings = settings or load_settings()
        self.auth = auth
        self._owns_http_session = http_session is None
        self.http_session = http_session or create_session(self.settings.http_timeout)

        if documents is None or device_store is None:
            ensure_data_dir(self.settings.data_dir)
        self.documents = documents or JsonFileDocumentStore(data_path(DOCUMENT_STORE_FILE, self.settings.data_dir))
        self.device_store = device_store or JsonFileKeyValueStore(data_path(DEVICE_STORE_FILE, self.settings.data_dir))

        self.steam = SteamConnector(self.http_session, self.settings.steam_api_key)
        self.epic = EpicConnector(self.http_session)
        self.gog = GogConnector(self.http_session)
        self.connectors = ConnectorRegistry([self.steam, self.epic, self.gog])

        self.catalog = catalog or IsThereAnyDealClient(self.http_session, self.settings.itad_api_key)
        self.protondb = ProtonDbClient(self.http_session)
        self.hltb = HowLongToBeatClient()

        self.router = StorageRouter(
            remote=create_remote_backend(self.documents),
            local=create_local_backend(self.device_store),
            catalog=self.catalog,
        )
        self.guest_sessions = GuestSessionRepository(self.device_store)
        self.sync_queue = BackgroundSyncQueue(self._run_sync_job)
        logger.info("[INIT] GameShelf initialized")

    async def _run_sync_job(self, user_id: str, platform: Platform):
        library = self.services(UserSession.for_user(user_id)).library
        return await library.sync_library(user_id, platform)

    def session_for_user(self, user_id: str) -> UserSession:
        return UserSession.for_user(user_id)

    async def start_guest_session(self) -> UserSession:
        return UserSession.for_user(await self.guest_sessions.get_or_create_guest_id())

    def services(self, session: UserSession) -> SessionServices:
        """Wire the use-case services for one session."""
        storage = self.router.for_session(session)
        resolver = GameIdentityResolver(storage.games, self.catalog)
        orchestrator = PlatformLinkOrchestrator(storage, self.sync_queue)
        return SessionServices(
            session=session,
            resolver=resolver,
            details=DetailAggregator(
                resolver=resolver,
                games=storage.games,
                wishlist=storage.wishlist,
                catalog=self.catalog,
                steam=self.steam,
                protondb=self.protondb,
                hltb=self.hltb,
            ),
            library=LibrarySyncService(storage.games, storage.platforms, self.connectors),
            wishlist=WishlistService(storage.wishlist, WishlistEnrichmentEngine(self.catalog)),
            links=PlatformLinkService(orchestrator, self.steam, self.epic, self.gog),
            search=SearchService(self.router, storage.wishlist),
            settings=SettingsService(self.auth, storage.platforms, storage.notifications) if self.auth else None,
        )

    async def close(self):
        """Stop background work and release the HTTP session"""
        logger.info("[UNLOAD] Stopping background sync queue")
        await self.sync_queue.stop()
        if self._owns_http_session and not self.http_session.closed:
            await self.http_session.close()
        logger.info("[UNLOAD] GameShelf closed")

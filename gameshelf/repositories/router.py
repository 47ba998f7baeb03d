"""
Storage routing between the on-device and remote backends.

The choice is made once, when a UserSession is created, and the session's
StorageBackend is then handed to every service for that session. Catalog
search never depends on the session: the catalog is global.
"""
import logging
from dataclasses import dataclass
from typing import List

from ..metadata.base import SearchResult
from ..metadata.itad import CatalogService
from .base import StorageBackend
from .guest_session import is_guest_user

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserSession:
    user_id: str
    is_guest: bool

    @classmethod
    def for_user(cls, user_id: str) -> 'UserSession':
        return cls(user_id=user_id, is_guest=is_guest_user(user_id))


class StorageRouter:
    def __init__(self, remote: StorageBackend, local: StorageBackend, catalog: CatalogService):
        self.remote = remote
        self.local = local
        self.catalog = catalog

    def for_session(self, session: UserSession) -> StorageBackend:
        """Return the backend every repository call of this session goes through."""
        backend = self.local if session.is_guest else self.remote
        logger.debug(f"[StorageRouter] {session.user_id} -> {backend.name}")
        return backend

    async def search_games(self, query: str) -> List[SearchResult]:
        """Search the global catalog, for guests and signed-in users alike."""
        return await self.catalog.search_games(query)

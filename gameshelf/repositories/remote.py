"""
Remote multi-tenant repositories backed by a DocumentStore.

Layout:
    users/{uid}/library/{game_id}
    users/{uid}/platforms/{platform}
    users/{uid}/wishlist/{game_id}
    users/{uid}/settings/notifications
"""
import logging
from typing import Any, Dict, List, Optional

from ..errors import NotFoundError
from ..storage.document_store import DocumentStore
from ..stores.base import CrossReference, Game, LinkedPlatform, Platform
from .base import (
    GameRepository,
    NotificationPreferences,
    NotificationRepository,
    PlatformRepository,
    StorageBackend,
    WishlistItem,
    WishlistRepository,
)

logger = logging.getLogger(__name__)


def library_path(user_id: str) -> str:
    return f"users/{user_id}/library"


def platforms_path(user_id: str) -> str:
    return f"users/{user_id}/platforms"


def wishlist_path(user_id: str) -> str:
    return f"users/{user_id}/wishlist"


def settings_path(user_id: str) -> str:
    return f"users/{user_id}/settings"


def _merge_document(game: Game) -> Dict[str, Any]:
    """Document for a merge write; empty cross-reference ids must not clear backfilled ones."""
    doc = game.to_dict()
    for reference in CrossReference:
        if doc.get(reference.value) is None:
            doc.pop(reference.value, None)
    return doc


class RemoteGameRepository(GameRepository):
    def __init__(self, documents: DocumentStore):
        self.documents = documents

    async def get_library_games(self, user_id: str) -> List[Game]:
        docs = await self.documents.list(library_path(user_id))
        return [Game.from_dict({**doc, 'id': doc_id}) for doc_id, doc in docs.items()]

    async def get_game_by_id(self, user_id: str, game_id: str) -> Game:
        doc = await self.documents.get(library_path(user_id), game_id)
        if doc is None:
            raise NotFoundError(f"Game {game_id} not found in library of {user_id}")
        return Game.from_dict({**doc, 'id': game_id})

    async def find_by_steam_app_id(self, user_id: str, steam_app_id: int) -> Optional[Game]:
        docs = await self.documents.query(library_path(user_id), 'steam_app_id', steam_app_id)
        for doc_id, doc in docs.items():
            return Game.from_dict({**doc, 'id': doc_id})
        return None

    async def upsert_games(self, user_id: str, games: List[Game]) -> int:
        written = await self.documents.set_many(
            library_path(user_id), [(g.id, _merge_document(g)) for g in games], merge=True,
        )
        logger.info(f"[RemoteStore] Upserted {written} games for {user_id}")
        return written

    async def store_imported_games(self, user_id: str, platform: Platform, games: List[Game]) -> None:
        await self.remove_platform_games(user_id, platform)
        await self.upsert_games(user_id, games)

    async def remove_platform_games(self, user_id: str, platform: Platform) -> None:
        collection = library_path(user_id)
        docs = await self.documents.query(collection, 'platform', platform.value)
        for doc_id in docs:
            await self.documents.delete(collection, doc_id)
        if docs:
            logger.info(f"[RemoteStore] Removed {len(docs)} {platform.value} games for {user_id}")

    async def update_cross_reference_id(
        self, user_id: str, game_id: str, reference: CrossReference, value: Any
    ) -> None:
        await self.documents.update(library_path(user_id), game_id, {reference.value: value})


class RemotePlatformRepository(PlatformRepository):
    def __init__(self, documents: DocumentStore):
        self.documents = documents

    async def get_linked(self, user_id: str) -> List[LinkedPlatform]:
        docs = await self.documents.list(platforms_path(user_id))
        return [LinkedPlatform.from_dict(doc) for doc in docs.values()]

    async def upsert(self, user_id: str, link: LinkedPlatform) -> None:
        await self.documents.set(platforms_path(user_id), link.platform.value, link.to_dict())

    async def remove(self, user_id: str, platform: Platform) -> None:
        await self.documents.delete(platforms_path(user_id), platform.value)


class RemoteWishlistRepository(WishlistRepository):
    def __init__(self, documents: DocumentStore):
        self.documents = documents

    async def get_wishlist(self, user_id: str) -> List[WishlistItem]:
        docs = await self.documents.list(wishlist_path(user_id))
        items = [WishlistItem.from_dict(doc) for doc in docs.values()]
        return sorted(items, key=lambda item: item.added_at, reverse=True)

    async def add(self, user_id: str, item: WishlistItem) -> None:
        await self.documents.set(wishlist_path(user_id), item.game_id, item.to_dict())

    async def remove(self, user_id: str, game_id: str) -> None:
        await self.documents.delete(wishlist_path(user_id), game_id)

    async def is_in_wishlist(self, user_id: str, game_id: str) -> bool:
        return await self.documents.get(wishlist_path(user_id), game_id) is not None


class RemoteNotificationRepository(NotificationRepository):
    def __init__(self, documents: DocumentStore):
        self.documents = documents

    async def get_preferences(self, user_id: str) -> NotificationPreferences:
        doc = await self.documents.get(settings_path(user_id), 'notifications') or {}
        return NotificationPreferences(deals_enabled=bool(doc.get('deals_enabled', True)))

    async def update_preferences(self, user_id: str, preferences: NotificationPreferences) -> None:
        await self.documents.set(settings_path(user_id), 'notifications', preferences.to_dict(), merge=True)


def create_remote_backend(documents: DocumentStore) -> StorageBackend:
    return StorageBackend(
        name='remote',
        games=RemoteGameRepository(documents),
        platforms=RemotePlatformRepository(documents),
        wishlist=RemoteWishlistRepository(documents),
        notifications=RemoteNotificationRepository(documents),
    )

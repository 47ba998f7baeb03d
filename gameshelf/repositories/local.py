"""
On-device repositories for guest sessions.

A guest owns the whole device store, so user ids are accepted for interface
compatibility but not used to partition data. Each collection is a single
JSON-encoded list under one key. Read-modify-write updates hold a per-repository
lock so interleaved calls cannot drop each other's writes.
"""
import asyncio
import json
import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional

from ..errors import NotFoundError
from ..storage.kv_store import KeyValueStore
from ..stores.base import CrossReference, Game, LinkedPlatform, Platform, ResolvedIdentity, apply_identity
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

GUEST_KEY_ID = "@gameshelf/guest_id"
GUEST_KEY_PLATFORMS = "@gameshelf/guest_platforms"
GUEST_KEY_LIBRARY = "@gameshelf/guest_library"
GUEST_KEY_WISHLIST = "@gameshelf/guest_wishlist"
GUEST_KEY_NOTIFICATIONS = "@gameshelf/guest_notifications"

GUEST_KEYS = [
    GUEST_KEY_ID,
    GUEST_KEY_PLATFORMS,
    GUEST_KEY_LIBRARY,
    GUEST_KEY_WISHLIST,
    GUEST_KEY_NOTIFICATIONS,
]


async def _read_json(store: KeyValueStore, key: str, default: Any) -> Any:
    raw = await store.get_item(key)
    if not raw:
        return default
    try:
        return json.loads(raw)
    except ValueError as e:
        logger.error(f"[LocalStore] Corrupt value under {key}, ignoring: {e}")
        return default


async def _write_json(store: KeyValueStore, key: str, value: Any) -> None:
    await store.set_item(key, json.dumps(value))


class LocalGameRepository(GameRepository):
    def __init__(self, store: KeyValueStore):
        self.store = store
        self._lock = asyncio.Lock()

    async def _read_all(self) -> List[Game]:
        return [Game.from_dict(d) for d in await _read_json(self.store, GUEST_KEY_LIBRARY, [])]

    async def _write_all(self, games: List[Game]) -> None:
        await _write_json(self.store, GUEST_KEY_LIBRARY, [g.to_dict() for g in games])

    async def get_library_games(self, user_id: str) -> List[Game]:
        return await self._read_all()

    async def get_game_by_id(self, user_id: str, game_id: str) -> Game:
        for game in await self._read_all():
            if game.id == game_id:
                return game
        raise NotFoundError(f"Game {game_id} not found in the local library")

    async def find_by_steam_app_id(self, user_id: str, steam_app_id: int) -> Optional[Game]:
        for game in await self._read_all():
            if game.steam_app_id == steam_app_id:
                return game
        return None

    async def upsert_games(self, user_id: str, games: List[Game]) -> int:
        async with self._lock:
            by_id: Dict[str, Game] = {g.id: g for g in await self._read_all()}
            for game in games:
                existing = by_id.get(game.id)
                if existing is not None:
                    # Keep cross-reference ids backfilled since the last sync
                    game = apply_identity(game, ResolvedIdentity(existing.steam_app_id, existing.itad_game_id))
                by_id[game.id] = game
            await self._write_all(list(by_id.values()))
        return len(games)

    async def store_imported_games(self, user_id: str, platform: Platform, games: List[Game]) -> None:
        async with self._lock:
            others = [g for g in await self._read_all() if g.platform != platform]
            await self._write_all(others + list(games))
        logger.info(f"[LocalStore] Stored {len(games)} imported {platform.value} games")

    async def remove_platform_games(self, user_id: str, platform: Platform) -> None:
        async with self._lock:
            await self._write_all([g for g in await self._read_all() if g.platform != platform])

    async def update_cross_reference_id(
        self, user_id: str, game_id: str, reference: CrossReference, value: Any
    ) -> None:
        async with self._lock:
            games = await self._read_all()
            for index, game in enumerate(games):
                if game.id == game_id:
                    games[index] = replace(game, **{reference.value: value})
                    await self._write_all(games)
                    return
        raise NotFoundError(f"Game {game_id} not found in the local library")


class LocalPlatformRepository(PlatformRepository):
    def __init__(self, store: KeyValueStore):
        self.store = store
        self._lock = asyncio.Lock()

    async def get_linked(self, user_id: str) -> List[LinkedPlatform]:
        return [LinkedPlatform.from_dict(d) for d in await _read_json(self.store, GUEST_KEY_PLATFORMS, [])]

    async def upsert(self, user_id: str, link: LinkedPlatform) -> None:
        async with self._lock:
            current = [p for p in await self.get_linked(user_id) if p.platform != link.platform]
            current.append(link)
            await _write_json(self.store, GUEST_KEY_PLATFORMS, [p.to_dict() for p in current])

    async def remove(self, user_id: str, platform: Platform) -> None:
        async with self._lock:
            current = [p for p in await self.get_linked(user_id) if p.platform != platform]
            await _write_json(self.store, GUEST_KEY_PLATFORMS, [p.to_dict() for p in current])


class LocalWishlistRepository(WishlistRepository):
    def __init__(self, store: KeyValueStore):
        self.store = store
        self._lock = asyncio.Lock()

    async def get_wishlist(self, user_id: str) -> List[WishlistItem]:
        return [WishlistItem.from_dict(d) for d in await _read_json(self.store, GUEST_KEY_WISHLIST, [])]

    async def add(self, user_id: str, item: WishlistItem) -> None:
        async with self._lock:
            items = [i for i in await self.get_wishlist(user_id) if i.game_id != item.game_id]
            items.append(item)
            await _write_json(self.store, GUEST_KEY_WISHLIST, [i.to_dict() for i in items])

    async def remove(self, user_id: str, game_id: str) -> None:
        async with self._lock:
            items = [i for i in await self.get_wishlist(user_id) if i.game_id != game_id]
            await _write_json(self.store, GUEST_KEY_WISHLIST, [i.to_dict() for i in items])


class LocalNotificationRepository(NotificationRepository):
    def __init__(self, store: KeyValueStore):
        self.store = store

    async def get_preferences(self, user_id: str) -> NotificationPreferences:
        data = await _read_json(self.store, GUEST_KEY_NOTIFICATIONS, {})
        return NotificationPreferences(deals_enabled=bool(data.get('deals_enabled', True)))

    async def update_preferences(self, user_id: str, preferences: NotificationPreferences) -> None:
        await _write_json(self.store, GUEST_KEY_NOTIFICATIONS, preferences.to_dict())


def create_local_backend(store: KeyValueStore) -> StorageBackend:
    return StorageBackend(
        name='local',
        games=LocalGameRepository(store),
        platforms=LocalPlatformRepository(store),
        wishlist=LocalWishlistRepository(store),
        notifications=LocalNotificationRepository(store),
    )

"""
Repository contracts shared by the local (guest) and remote implementations.

Everything above the StorageRouter talks to these interfaces only; which
implementation backs them is decided once per session.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from ..stores.base import CrossReference, Game, LinkedPlatform, Platform


@dataclass(frozen=True)
class WishlistItem:
    id: str
    game_id: str
    title: str
    cover_url: Optional[str] = None
    added_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    best_deal_percentage: Optional[int] = None  # Derived annotation, refreshed by enrichment

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['added_at'] = self.added_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WishlistItem':
        added_at = data.get('added_at')
        return cls(
            id=str(data['id']),
            game_id=str(data['game_id']),
            title=data.get('title', ''),
            cover_url=data.get('cover_url'),
            added_at=datetime.fromisoformat(added_at) if added_at else datetime.now(timezone.utc),
            best_deal_percentage=data.get('best_deal_percentage'),
        )


@dataclass(frozen=True)
class NotificationPreferences:
    deals_enabled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class GameRepository(ABC):
    """Owned-library store"""

    @abstractmethod
    async def get_library_games(self, user_id: str) -> List[Game]:
        pass

    @abstractmethod
    async def get_game_by_id(self, user_id: str, game_id: str) -> Game:
        """Raises NotFoundError if the game is not in the user's library."""
        pass

    @abstractmethod
    async def find_by_steam_app_id(self, user_id: str, steam_app_id: int) -> Optional[Game]:
        pass

    @abstractmethod
    async def upsert_games(self, user_id: str, games: List[Game]) -> int:
        """Insert or merge games by id. Returns the number written."""
        pass

    @abstractmethod
    async def store_imported_games(self, user_id: str, platform: Platform, games: List[Game]) -> None:
        """Replace the user's entries for one platform with an imported set."""
        pass

    @abstractmethod
    async def remove_platform_games(self, user_id: str, platform: Platform) -> None:
        pass

    @abstractmethod
    async def update_cross_reference_id(
        self, user_id: str, game_id: str, reference: CrossReference, value: Any
    ) -> None:
        """Backfill steam_app_id or itad_game_id onto a stored game."""
        pass


class PlatformRepository(ABC):
    """Platform link store"""

    @abstractmethod
    async def get_linked(self, user_id: str) -> List[LinkedPlatform]:
        pass

    @abstractmethod
    async def upsert(self, user_id: str, link: LinkedPlatform) -> None:
        """Store a link, replacing any existing link for the same platform."""
        pass

    @abstractmethod
    async def remove(self, user_id: str, platform: Platform) -> None:
        pass

    async def get_link(self, user_id: str, platform: Platform) -> Optional[LinkedPlatform]:
        for link in await self.get_linked(user_id):
            if link.platform == platform:
                return link
        return None


class WishlistRepository(ABC):
    @abstractmethod
    async def get_wishlist(self, user_id: str) -> List[WishlistItem]:
        pass

    @abstractmethod
    async def add(self, user_id: str, item: WishlistItem) -> None:
        pass

    @abstractmethod
    async def remove(self, user_id: str, game_id: str) -> None:
        pass

    async def get_wishlist_game_ids(self, user_id: str) -> Set[str]:
        return {item.game_id for item in await self.get_wishlist(user_id)}

    async def is_in_wishlist(self, user_id: str, game_id: str) -> bool:
        return game_id in await self.get_wishlist_game_ids(user_id)


class NotificationRepository(ABC):
    @abstractmethod
    async def get_preferences(self, user_id: str) -> NotificationPreferences:
        pass

    @abstractmethod
    async def update_preferences(self, user_id: str, preferences: NotificationPreferences) -> None:
        pass


@dataclass(frozen=True)
class StorageBackend:
    """The repositories one session reads and writes through"""
    name: str
    games: GameRepository
    platforms: PlatformRepository
    wishlist: WishlistRepository
    notifications: NotificationRepository

"""
Core entities and the base class for platform connectors.

All platform implementations (Steam, Epic, GOG) inherit from PlatformConnector
and return their owned games as Game instances.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
import logging


logger = logging.getLogger(__name__)

# externalUserId stored for an Epic link created from a manual export
IMPORTED_MARKER = "imported"


class Platform(str, Enum):
    STEAM = "steam"
    EPIC_GAMES = "epic_games"
    GOG = "gog"
    UNKNOWN = "unknown"


class CrossReference(str, Enum):
    """Secondary identifiers that may be backfilled onto a stored Game"""
    STEAM_APP_ID = "steam_app_id"
    ITAD_GAME_ID = "itad_game_id"


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return datetime.fromisoformat(str(value))


def _format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class Game:
    """
    A game as seen by one user.

    platform is UNKNOWN exactly when the game is not in the user's owned
    library (it was resolved from the catalog for display only).
    """
    id: str  # Steam app id, Epic catalog item id, gog_<id>, or a catalog id
    title: str
    platform: Platform
    steam_app_id: Optional[int] = None  # Cross-reference into Steam, ProtonDB and the catalog
    itad_game_id: Optional[str] = None  # Cross-reference into the catalog service
    playtime: int = 0  # Minutes
    last_played: Optional[datetime] = None
    description: Optional[str] = None
    cover_url: Optional[str] = None
    background_url: Optional[str] = None

    @property
    def is_owned(self) -> bool:
        return self.platform != Platform.UNKNOWN

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['platform'] = self.platform.value
        data['last_played'] = _format_timestamp(self.last_played)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Game':
        steam_app_id = data.get('steam_app_id')
        return cls(
            id=str(data['id']),
            title=data.get('title', ''),
            platform=Platform(data.get('platform', Platform.UNKNOWN.value)),
            steam_app_id=int(steam_app_id) if steam_app_id is not None else None,
            itad_game_id=data.get('itad_game_id'),
            playtime=int(data.get('playtime') or 0),
            last_played=_parse_timestamp(data.get('last_played')),
            description=data.get('description'),
            cover_url=data.get('cover_url'),
            background_url=data.get('background_url'),
        )


@dataclass(frozen=True)
class ResolvedIdentity:
    """Cross-reference ids discovered while resolving or enriching a Game"""
    steam_app_id: Optional[int] = None
    itad_game_id: Optional[str] = None

    def is_empty(self) -> bool:
        return self.steam_app_id is None and self.itad_game_id is None


def apply_identity(game: Game, patch: Optional[ResolvedIdentity]) -> Game:
    """
    Return game with the patch's ids filled in.

    Only empty fields are filled; an id already on the game is never
    overwritten. Returns the same instance when nothing changes.
    """
    if patch is None or patch.is_empty():
        return game

    changes: Dict[str, Any] = {}
    if game.steam_app_id is None and patch.steam_app_id is not None:
        changes['steam_app_id'] = patch.steam_app_id
    if game.itad_game_id is None and patch.itad_game_id is not None:
        changes['itad_game_id'] = patch.itad_game_id

    return replace(game, **changes) if changes else game


@dataclass(frozen=True)
class LinkedPlatform:
    """A platform account linked to a user. One per platform per user."""
    platform: Platform
    external_user_id: str
    linked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    credentials: Optional[Dict[str, Any]] = None  # GOG token pair

    def to_dict(self) -> Dict[str, Any]:
        return {
            'platform': self.platform.value,
            'external_user_id': self.external_user_id,
            'linked_at': _format_timestamp(self.linked_at),
            'credentials': self.credentials,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LinkedPlatform':
        return cls(
            platform=Platform(data['platform']),
            external_user_id=str(data.get('external_user_id', '')),
            linked_at=_parse_timestamp(data.get('linked_at')) or datetime.now(timezone.utc),
            credentials=data.get('credentials'),
        )


class PlatformConnector(ABC):
    """
    Abstract base class for platform connectors.

    Each platform implements owned-library retrieval for whatever credential
    it links with (SteamID, Epic access token, GOG access token) plus its own
    auth/verification primitives.
    """

    @property
    @abstractmethod
    def platform(self) -> Platform:
        """Return the platform this connector talks to"""
        pass

    @abstractmethod
    async def get_owned_games(self, credential: Any) -> List[Game]:
        """
        Get the user's owned games from this platform.

        Args:
            credential: Platform-specific credential for the linked account.

        Returns:
            List of Game objects representing owned games.
        """
        pass

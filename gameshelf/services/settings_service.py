"""
Settings profile.

The profile needs the current user, their linked platforms and their
notification preferences; all three are read concurrently and any failure
fails the whole call.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from ..errors import NotFoundError
from ..repositories.base import NotificationPreferences, NotificationRepository, PlatformRepository
from ..stores.base import LinkedPlatform

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class User:
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None


class AuthProvider(ABC):
    """Source of the signed-in user (token management lives outside this package)"""

    @abstractmethod
    async def get_current_user(self) -> Optional[User]:
        pass


@dataclass(frozen=True)
class UserProfile:
    user: User
    linked_platforms: List[LinkedPlatform] = field(default_factory=list)
    notifications: NotificationPreferences = field(default_factory=NotificationPreferences)


class SettingsService:
    def __init__(self, auth: AuthProvider, platforms: PlatformRepository, notifications: NotificationRepository):
        self.auth = auth
        self.platforms = platforms
        self.notifications = notifications

    async def get_profile(self, user_id: str) -> UserProfile:
        """
        Build the settings profile.

        Raises:
            NotFoundError: if there is no signed-in user
        """
        user, linked, preferences = await asyncio.gather(
            self.auth.get_current_user(),
            self.platforms.get_linked(user_id),
            self.notifications.get_preferences(user_id),
        )
        if user is None:
            raise NotFoundError("No active session")
        return UserProfile(user=user, linked_platforms=linked, notifications=preferences)

    async def update_notification_preferences(self, user_id: str, preferences: NotificationPreferences) -> None:
        await self.notifications.update_preferences(user_id, preferences)
        logger.info(f"[Settings] Notification preferences updated for {user_id}")

# Repository contracts, local/remote implementations and storage routing
from .base import (
    GameRepository,
    PlatformRepository,
    WishlistRepository,
    NotificationRepository,
    NotificationPreferences,
    WishlistItem,
    StorageBackend,
)
from .local import create_local_backend
from .remote import create_remote_backend
from .guest_session import GuestSessionRepository, is_guest_user, generate_guest_id
from .router import StorageRouter, UserSession

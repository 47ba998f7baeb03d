# Use-case services
from .identity_resolver import GameIdentityResolver
from .detail_service import DetailAggregator, GameDetail, build_game_detail
from .wishlist_service import WishlistEnrichmentEngine, WishlistService
from .platform_link_service import (
    LinkState,
    LinkOutcome,
    LinkStrategy,
    PlatformLinkOrchestrator,
    PlatformLinkService,
)
from .library_service import LibrarySyncService, SortCriteria, sort_games
from .search_service import SearchService
from .settings_service import SettingsService, AuthProvider, User, UserProfile

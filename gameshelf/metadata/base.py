"""
DTOs shared by the catalog, store-metadata and playtime services.
"""
from dataclasses import dataclass, asdict, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Deal:
    """A current price offer for a game at one shop"""
    id: str
    store_name: str
    price: float
    original_price: float
    discount_percentage: int
    url: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CatalogInfo:
    """Catalog record for one catalog id"""
    id: str
    title: str
    platform_app_id: Optional[int] = None  # Steam app id when the catalog knows it
    cover_url: Optional[str] = None


@dataclass(frozen=True)
class SearchResult:
    """One catalog search hit"""
    id: str
    title: str
    cover_url: Optional[str] = None
    is_in_wishlist: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DurationEstimate:
    """Playtime estimate in hours; None means no estimate"""
    main: Optional[float] = None
    main_extra: Optional[float] = None
    completionist: Optional[float] = None


@dataclass(frozen=True)
class StoreMetadata:
    """Steam store page metadata"""
    genres: List[str] = field(default_factory=list)
    developers: List[str] = field(default_factory=list)
    publishers: List[str] = field(default_factory=list)
    release_date: Optional[str] = None
    critic_score: Optional[int] = None
    screenshots: List[str] = field(default_factory=list)
    recommendation_count: Optional[int] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

# Platform connectors and core entities
from .base import (
    Platform,
    CrossReference,
    Game,
    ResolvedIdentity,
    apply_identity,
    LinkedPlatform,
    PlatformConnector,
    IMPORTED_MARKER,
)
from .manager import ConnectorRegistry
from .steam import SteamConnector
from .epic import EpicConnector, EpicAuthToken
from .gog import GogConnector, GogAuthToken

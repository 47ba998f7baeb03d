# GameShelf Package
# Aggregates owned-game libraries across Steam, Epic Games and GOG and enriches
# them with catalog, pricing, compatibility and playtime data.

from .errors import (
    GameShelfError,
    NotFoundError,
    PreconditionFailedError,
    ExternalServiceUnavailableError,
    MalformedInputError,
)
from .stores.base import Platform, Game, LinkedPlatform, ResolvedIdentity, apply_identity

__version__ = "0.4.0"

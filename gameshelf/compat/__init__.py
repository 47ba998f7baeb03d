# Compatibility ratings (ProtonDB)
from .protondb import ProtonDbClient, ProtonDbRating, PROTONDB_TIERS

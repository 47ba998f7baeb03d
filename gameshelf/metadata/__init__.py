# Catalog, pricing and playtime metadata services
from .base import Deal, CatalogInfo, SearchResult, DurationEstimate, StoreMetadata
from .itad import CatalogService, IsThereAnyDealClient
from .hltb import HowLongToBeatClient

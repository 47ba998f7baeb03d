from __future__ import annotations

from pathlib import Path
import sys
from unittest.mock import AsyncMock, Mock

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from gameshelf.metadata.base import CatalogInfo
from gameshelf.metadata.itad import CatalogService
from gameshelf.repositories.local import create_local_backend
from gameshelf.repositories.remote import create_remote_backend
from gameshelf.storage.document_store import JsonFileDocumentStore
from gameshelf.storage.kv_store import JsonFileKeyValueStore
from gameshelf.stores.base import Game, Platform


@pytest.fixture
def documents(tmp_path):
    return JsonFileDocumentStore(str(tmp_path / "documents.json"))


@pytest.fixture
def device_store(tmp_path):
    return JsonFileKeyValueStore(str(tmp_path / "device_store.json"))


@pytest.fixture
def remote_backend(documents):
    return create_remote_backend(documents)


@pytest.fixture
def local_backend(device_store):
    return create_local_backend(device_store)


@pytest.fixture
def catalog():
    """Catalog service mock; every lookup misses unless a test says otherwise."""
    service = Mock(spec=CatalogService)
    service.lookup_id_by_title = AsyncMock(return_value=None)
    service.lookup_id_by_platform_app_id = AsyncMock(return_value=None)
    service.get_info = AsyncMock(return_value=None)
    service.get_prices = AsyncMock(return_value=[])
    service.lookup_ids_by_titles = AsyncMock(return_value={})
    service.get_prices_batch = AsyncMock(return_value={})
    service.search_games = AsyncMock(return_value=[])
    return service


@pytest.fixture
def elden_ring():
    return Game(
        id="1245620",
        title="ELDEN RING",
        platform=Platform.STEAM,
        steam_app_id=1245620,
        playtime=5400,
    )


@pytest.fixture
def epic_control():
    return Game(id="a1b2c3", title="Control", platform=Platform.EPIC_GAMES)


@pytest.fixture
def hollow_knight_info():
    return CatalogInfo(
        id="itad-hollow-knight-uuid",
        title="Hollow Knight",
        platform_app_id=367520,
        cover_url="https://assets.isthereanydeal.com/hk/banner300.jpg",
    )

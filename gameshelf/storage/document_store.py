"""
Remote multi-tenant document storage.

Documents are addressed by a collection path (e.g. 'users/u1/library') and a
document id, mirroring a hosted document database. JsonFileDocumentStore is a
file-backed engine with the same semantics, used for development, tests and
self-hosted setups.
"""
import asyncio
import copy
import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..errors import NotFoundError

logger = logging.getLogger(__name__)

# Maximum writes per batch commit
BATCH_SIZE = 500

Document = Dict[str, Any]


class DocumentStore(ABC):
    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        pass

    @abstractmethod
    async def set(self, collection: str, doc_id: str, data: Document, merge: bool = False) -> None:
        pass

    @abstractmethod
    async def update(self, collection: str, doc_id: str, fields: Document) -> None:
        """Update fields of an existing document; NotFoundError if it does not exist."""
        pass

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        pass

    @abstractmethod
    async def list(self, collection: str) -> Dict[str, Document]:
        pass

    async def query(self, collection: str, field: str, value: Any) -> Dict[str, Document]:
        docs = await self.list(collection)
        return {doc_id: doc for doc_id, doc in docs.items() if doc.get(field) == value}

    @abstractmethod
    async def commit_batch(self, collection: str, writes: List[Tuple[str, Document]], merge: bool = True) -> None:
        """Write up to BATCH_SIZE documents in one commit."""
        pass

    async def set_many(self, collection: str, writes: Iterable[Tuple[str, Document]], merge: bool = True) -> int:
        """
        Write many documents in commits of BATCH_SIZE.

        Commits are independent; if one fails the earlier ones stay written.

        Returns:
            Number of documents written
        """
        pending = list(writes)
        for start in range(0, len(pending), BATCH_SIZE):
            await self.commit_batch(collection, pending[start:start + BATCH_SIZE], merge=merge)
        return len(pending)


class JsonFileDocumentStore(DocumentStore):
    """Document store persisted as {collection: {doc_id: document}} in one JSON file."""

    def __init__(self, path: str):
        self.path = path
        self._lock = asyncio.Lock()
        self._data: Optional[Dict[str, Dict[str, Document]]] = None

    def _load(self) -> Dict[str, Dict[str, Document]]:
        if self._data is not None:
            return self._data
        self._data = {}
        if os.path.exists(self.path):
            try:
                with open(self.path, 'r') as f:
                    loaded = json.load(f)
                if isinstance(loaded, dict):
                    self._data = loaded
                logger.info(f"[DocumentStore] Loaded {len(self._data)} collections from {self.path}")
            except Exception as e:
                logger.error(f"[DocumentStore] Error loading {self.path}: {e}")
        return self._data

    def _save(self) -> None:
        os.makedirs(os.path.dirname(self.path) or '.', exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, 'w') as f:
            json.dump(self._data, f, indent=2)
        os.replace(tmp_path, self.path)

    def _write(self, collection: str, doc_id: str, data: Document, merge: bool) -> None:
        docs = self._load().setdefault(collection, {})
        if merge and doc_id in docs:
            docs[doc_id].update(copy.deepcopy(data))
        else:
            docs[doc_id] = copy.deepcopy(data)

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        async with self._lock:
            doc = self._load().get(collection, {}).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    async def set(self, collection: str, doc_id: str, data: Document, merge: bool = False) -> None:
        async with self._lock:
            self._write(collection, doc_id, data, merge)
            self._save()

    async def update(self, collection: str, doc_id: str, fields: Document) -> None:
        async with self._lock:
            docs = self._load().get(collection, {})
            if doc_id not in docs:
                raise NotFoundError(f"Document {collection}/{doc_id} does not exist")
            docs[doc_id].update(copy.deepcopy(fields))
            self._save()

    async def delete(self, collection: str, doc_id: str) -> None:
        async with self._lock:
            docs = self._load().get(collection, {})
            if docs.pop(doc_id, None) is not None:
                self._save()

    async def list(self, collection: str) -> Dict[str, Document]:
        async with self._lock:
            return copy.deepcopy(self._load().get(collection, {}))

    async def commit_batch(self, collection: str, writes: List[Tuple[str, Document]], merge: bool = True) -> None:
        async with self._lock:
            for doc_id, data in writes:
                self._write(collection, doc_id, data, merge)
            self._save()
            logger.debug(f"[DocumentStore] Committed {len(writes)} writes to {collection}")

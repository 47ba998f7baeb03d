# Storage engines backing the local (guest) and remote repositories
from .kv_store import KeyValueStore, JsonFileKeyValueStore
from .document_store import DocumentStore, JsonFileDocumentStore, BATCH_SIZE

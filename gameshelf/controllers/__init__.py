# Background controllers
from .background_sync import BackgroundSyncQueue, SyncFailure

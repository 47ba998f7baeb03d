"""Guest identities: a locally-only user backed entirely by on-device storage."""
import logging
import uuid
from typing import Optional

from ..storage.kv_store import KeyValueStore
from .local import GUEST_KEY_ID, GUEST_KEYS

logger = logging.getLogger(__name__)

GUEST_ID_PREFIX = "guest_"


def generate_guest_id() -> str:
    return f"{GUEST_ID_PREFIX}{uuid.uuid4().hex}"


def is_guest_user(user_id: str) -> bool:
    return bool(user_id) and user_id.startswith(GUEST_ID_PREFIX)


class GuestSessionRepository:
    def __init__(self, store: KeyValueStore):
        self.store = store

    async def get_or_create_guest_id(self) -> str:
        guest_id = await self.store.get_item(GUEST_KEY_ID)
        if not guest_id:
            guest_id = generate_guest_id()
            await self.store.set_item(GUEST_KEY_ID, guest_id)
            logger.info(f"[GuestSession] Created guest {guest_id}")
        return guest_id

    async def load_guest_id(self) -> Optional[str]:
        return await self.store.get_item(GUEST_KEY_ID)

    async def clear_guest_session(self) -> None:
        """Forget the guest id and everything stored for it on this device."""
        await self.store.multi_remove(GUEST_KEYS)
        logger.info("[GuestSession] Cleared guest session")

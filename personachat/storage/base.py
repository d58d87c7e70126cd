"""
MessageStore: abstract base for conversation history stores.

Stores are dumb: they append, list and delete rows. Ordering of a turn is
decided by the caller through created_at; stores only promise to return
rows sorted by created_at ascending.
"""

from abc import ABC, abstractmethod

from personachat.storage.models import StoredMessage


class MessageStore(ABC):
    """Abstract async message store."""

    name: str = "store"

    @abstractmethod
    async def append_message(self, message: StoredMessage) -> None:
        """Persist one message. Raises PersistenceError on failure."""
        ...

    @abstractmethod
    async def get_messages(self, user_id: str, mode: str | None = None) -> list[dict]:
        """Return a user's messages in created_at order, optionally for one mode."""
        ...

    @abstractmethod
    async def delete_messages(self, user_id: str) -> int:
        """Delete every message a user owns. Returns the number removed, or -1 if unknown."""
        ...

    async def close(self) -> None:
        """Release resources. Optional."""
        return None

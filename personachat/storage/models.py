"""
Data models for conversation storage.
These define the shape of data flowing between the pipeline and the store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import uuid4


@dataclass
class StoredMessage:
    """One persisted chat message. Immutable once written."""
    user_id: str
    role: str            # "user" or "assistant"
    content: str
    mode: str
    created_at: str      # ISO-8601 UTC
    id: str = field(default_factory=lambda: uuid4().hex)

    def to_record(self) -> dict:
        """Row shape shared by every store: {id, user_id, role, content, mode, created_at}."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "role": self.role,
            "content": self.content,
            "mode": self.mode,
            "created_at": self.created_at,
        }


@dataclass
class ConversationTurn:
    """A completed exchange: the user's message and the assistant's reply."""
    user_id: str
    mode: str
    user_content: str
    assistant_content: str
    assistant_id: str = field(default_factory=lambda: uuid4().hex)

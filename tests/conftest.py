"""
Shared test doubles: a scripted completion backend and an in-memory store.
"""

import pytest

from personachat.backends.base import BaseBackend, BackendResponse
from personachat.errors import PersistenceError
from personachat.storage.base import MessageStore


class FakeBackend(BaseBackend):
    """Scripted provider that records every call."""

    def __init__(self):
        super().__init__("fake", model="fake-model")
        self.reply = "hello"
        self.chunks = ["Hel", "lo"]
        self.error = ""
        self.error_status = 500
        self.stream_error: Exception | None = None
        self.healthy = True
        self.complete_calls: list[list[dict]] = []
        self.stream_calls: list[list[dict]] = []

    async def complete(self, messages):
        self.complete_calls.append(messages)
        if self.error:
            return BackendResponse(
                ok=False, status_code=self.error_status,
                backend_name=self.name, error=self.error,
            )
        return BackendResponse(
            ok=True,
            data={"choices": [{"message": {"role": "assistant", "content": self.reply}}]},
            backend_name=self.name,
        )

    async def stream(self, messages):
        self.stream_calls.append(messages)
        for chunk in self.chunks:
            yield chunk
        if self.stream_error is not None:
            raise self.stream_error

    async def health_check(self):
        return self.healthy

    @property
    def calls(self) -> int:
        return len(self.complete_calls) + len(self.stream_calls)


class FakeStore(MessageStore):
    """In-memory store; roles listed in fail_roles raise on append."""

    name = "fake"

    def __init__(self):
        self.appended = []
        self.fail_roles: set[str] = set()

    async def append_message(self, message):
        if message.role in self.fail_roles:
            raise PersistenceError(f"cannot write {message.role}")
        self.appended.append(message)

    async def get_messages(self, user_id, mode=None):
        rows = [
            m.to_record() for m in self.appended
            if m.user_id == user_id and (mode is None or m.mode == mode)
        ]
        return sorted(rows, key=lambda r: r["created_at"])

    async def delete_messages(self, user_id):
        before = len(self.appended)
        self.appended = [m for m in self.appended if m.user_id != user_id]
        return before - len(self.appended)


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def fake_store():
    return FakeStore()

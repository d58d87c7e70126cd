"""
Supabase message store.

Talks to the project's PostgREST endpoint ({url}/rest/v1/<table>) with
httpx. Row-level security is enforced by Supabase itself; this class only
moves rows. Use a service-role key server-side.
"""

from __future__ import annotations

import logging

import httpx

from personachat.errors import PersistenceError
from personachat.storage.base import MessageStore
from personachat.storage.models import StoredMessage

logger = logging.getLogger(__name__)


class SupabaseStore(MessageStore):

    name = "supabase"

    def __init__(self, url: str, api_key: str, table: str = "messages", timeout: float = 10):
        if not url:
            raise ValueError("SupabaseStore requires storage.supabase_url")
        self.url = url.rstrip("/")
        self.api_key = api_key
        self.table = table
        self.timeout = timeout

    @property
    def _endpoint(self) -> str:
        return f"{self.url}/rest/v1/{self.table}"

    def _headers(self, **extra) -> dict:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        headers.update(extra)
        return headers

    @staticmethod
    def _check(resp: httpx.Response, action: str):
        if resp.status_code >= 400:
            raise PersistenceError(
                f"Supabase {action} failed: HTTP {resp.status_code}: {resp.text[:200]}"
            )

    async def append_message(self, message: StoredMessage) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    self._endpoint,
                    json=[message.to_record()],
                    headers=self._headers(Prefer="return=minimal"),
                )
        except httpx.HTTPError as e:
            raise PersistenceError(f"Supabase insert failed: {e}") from e
        self._check(resp, "insert")
        logger.debug("Stored message %s (role=%s, user=%s)", message.id, message.role, message.user_id)

    async def get_messages(self, user_id: str, mode: str | None = None) -> list[dict]:
        params = {
            "select": "*",
            "user_id": f"eq.{user_id}",
            "order": "created_at.asc",
        }
        if mode:
            params["mode"] = f"eq.{mode}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(self._endpoint, params=params, headers=self._headers())
        except httpx.HTTPError as e:
            raise PersistenceError(f"Supabase select failed: {e}") from e
        self._check(resp, "select")
        try:
            rows = resp.json()
        except ValueError as e:
            raise PersistenceError(f"Supabase select returned a non-JSON body: {e}") from e
        if not isinstance(rows, list):
            raise PersistenceError(f"Supabase select returned {type(rows).__name__}, expected a list")
        return rows

    async def delete_messages(self, user_id: str) -> int:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.delete(
                    self._endpoint,
                    params={"user_id": f"eq.{user_id}"},
                    headers=self._headers(Prefer="return=representation"),
                )
        except httpx.HTTPError as e:
            raise PersistenceError(f"Supabase delete failed: {e}") from e
        self._check(resp, "delete")
        try:
            rows = resp.json()
        except ValueError:
            return -1
        return len(rows) if isinstance(rows, list) else -1

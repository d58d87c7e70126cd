"""
Identity: who owns a chat turn.

The service does no authentication of its own. It either trusts the userId
the browser sends (the store's row-level security is the real gate), or
asks Supabase Auth who the bearer token belongs to.
"""

from __future__ import annotations

import abc
import logging

import httpx
from fastapi import Request

logger = logging.getLogger(__name__)


class IdentityProvider(abc.ABC):

    name: str = "identity"

    @abc.abstractmethod
    async def resolve(self, request: Request, claimed_user_id) -> str | None:
        """Return the owning user id, or None for an anonymous request."""
        ...


class BodyIdentity(IdentityProvider):
    """Trust the client-supplied user id."""

    name = "body"

    async def resolve(self, request: Request, claimed_user_id) -> str | None:
        if isinstance(claimed_user_id, str) and claimed_user_id.strip():
            return claimed_user_id.strip()
        return None


class SupabaseIdentity(IdentityProvider):
    """Resolve the user from an `Authorization: Bearer <access token>` header."""

    name = "supabase"

    def __init__(self, url: str, anon_key: str, timeout: float = 5):
        if not url:
            raise ValueError("SupabaseIdentity requires identity.supabase_url")
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.timeout = timeout

    async def resolve(self, request: Request, claimed_user_id) -> str | None:
        auth = request.headers.get("authorization", "")
        if not auth.lower().startswith("bearer "):
            return None
        token = auth[7:].strip()
        if not token:
            return None

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(
                    f"{self.url}/auth/v1/user",
                    headers={"apikey": self.anon_key, "Authorization": f"Bearer {token}"},
                )
        except httpx.HTTPError as e:
            logger.warning("Supabase identity lookup failed: %s", e)
            return None

        if resp.status_code != 200:
            logger.info("Supabase rejected access token (HTTP %d)", resp.status_code)
            return None
        try:
            data = resp.json()
        except ValueError:
            logger.warning("Supabase identity lookup returned a non-JSON body")
            return None
        if not isinstance(data, dict):
            logger.warning("Supabase identity lookup returned %s, expected an object", type(data).__name__)
            return None
        return data.get("id") or None


def make_identity(cfg: dict) -> IdentityProvider:
    i_cfg = cfg.get("identity", {})
    provider = i_cfg.get("provider", "body")
    if provider == "body":
        return BodyIdentity()
    if provider == "supabase":
        return SupabaseIdentity(
            url=i_cfg.get("supabase_url", ""),
            anon_key=i_cfg.get("supabase_anon_key", ""),
            timeout=float(i_cfg.get("timeout", 5)),
        )
    raise ValueError(f"Unknown identity provider: '{provider}'. Available: body, supabase")

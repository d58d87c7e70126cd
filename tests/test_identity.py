"""
Tests for identity resolution.
"""

from unittest.mock import MagicMock, patch

import httpx
import pytest

from personachat.identity import BodyIdentity, SupabaseIdentity, make_identity

_RealAsyncClient = httpx.AsyncClient


def _request(headers=None):
    req = MagicMock()
    req.headers = httpx.Headers(headers or {})
    return req


def _patched(handler):
    def factory(*args, **kwargs):
        return _RealAsyncClient(transport=httpx.MockTransport(handler), **kwargs)
    return patch("personachat.identity.httpx.AsyncClient", side_effect=factory)


@pytest.mark.asyncio
@pytest.mark.parametrize("claimed,expected", [
    ("user-1", "user-1"),
    ("  user-1 ", "user-1"),
    ("", None),
    ("   ", None),
    (None, None),
    (42, None),
])
async def test_body_identity(claimed, expected):
    assert await BodyIdentity().resolve(_request(), claimed) == expected


@pytest.mark.asyncio
async def test_supabase_identity_resolves_token():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["apikey"] = request.headers["apikey"]
        return httpx.Response(200, json={"id": "uuid-123", "email": "a@b.c"})

    ident = SupabaseIdentity(url="https://proj.supabase.co", anon_key="anon")
    with _patched(handler):
        user_id = await ident.resolve(_request({"Authorization": "Bearer tok"}), "spoofed")

    assert user_id == "uuid-123"
    assert seen == {
        "url": "https://proj.supabase.co/auth/v1/user",
        "auth": "Bearer tok",
        "apikey": "anon",
    }


@pytest.mark.asyncio
async def test_supabase_identity_ignores_claimed_id_without_token():
    ident = SupabaseIdentity(url="https://proj.supabase.co", anon_key="anon")
    assert await ident.resolve(_request(), "user-1") is None
    assert await ident.resolve(_request({"Authorization": "Basic abc"}), "user-1") is None


@pytest.mark.asyncio
async def test_supabase_identity_rejected_token():
    ident = SupabaseIdentity(url="https://proj.supabase.co", anon_key="anon")
    with _patched(lambda request: httpx.Response(401, json={"msg": "invalid JWT"})):
        assert await ident.resolve(_request({"Authorization": "Bearer bad"}), None) is None


@pytest.mark.asyncio
async def test_supabase_identity_unreachable():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    ident = SupabaseIdentity(url="https://proj.supabase.co", anon_key="anon")
    with _patched(handler):
        assert await ident.resolve(_request({"Authorization": "Bearer tok"}), None) is None


def test_make_identity():
    assert isinstance(make_identity({}), BodyIdentity)
    ident = make_identity({"identity": {"provider": "supabase", "supabase_url": "https://x.supabase.co"}})
    assert isinstance(ident, SupabaseIdentity)
    with pytest.raises(ValueError):
        make_identity({"identity": {"provider": "ldap"}})


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    httpx.Response(200, json=["not", "an", "object"]),
    httpx.Response(200, text="<html>captive portal</html>"),
    httpx.Response(200, json="uuid-123"),
])
async def test_supabase_identity_malformed_body_is_anonymous(response):
    ident = SupabaseIdentity(url="https://proj.supabase.co", anon_key="anon")
    with _patched(lambda request: response):
        assert await ident.resolve(_request({"Authorization": "Bearer tok"}), "user-1") is None

"""
Tests for credential stores and the refresh-endpoint client.
"""
import json

import httpx
import pytest
import respx

from resilient_fetch import ApiError, HttpTokenRefresher, KeyValueCredentialStore, MemoryCredentialStore, TokenPair
from resilient_fetch.refresh import ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_KEY, parse_token_pair


class TestMemoryCredentialStore:
    """Tests for MemoryCredentialStore."""

    def test_initial_tokens(self):
        store = MemoryCredentialStore("a", "r")
        assert store.get_access_token() == "a"
        assert store.get_refresh_token() == "r"

    def test_set_and_clear(self):
        store = MemoryCredentialStore()
        store.set_tokens("a2", "r2")
        assert (store.get_access_token(), store.get_refresh_token()) == ("a2", "r2")
        store.clear()
        assert store.get_access_token() is None
        assert store.get_refresh_token() is None


class TestKeyValueCredentialStore:
    """Tests for KeyValueCredentialStore."""

    def test_reads_and_writes_the_same_keys(self):
        """The key written on refresh is the key read for outgoing requests."""
        storage = {}
        store = KeyValueCredentialStore(storage)

        store.set_tokens("access", "refresh")

        assert storage == {ACCESS_TOKEN_KEY: "access", REFRESH_TOKEN_KEY: "refresh"}
        assert store.get_access_token() == "access"
        assert store.get_refresh_token() == "refresh"

    def test_clear_removes_tokens_and_user(self):
        storage = {ACCESS_TOKEN_KEY: "a", REFRESH_TOKEN_KEY: "r", USER_KEY: "{}", "theme": "dark"}
        KeyValueCredentialStore(storage).clear()
        assert storage == {"theme": "dark"}

    def test_empty_values_read_as_none(self):
        store = KeyValueCredentialStore({ACCESS_TOKEN_KEY: ""})
        assert store.get_access_token() is None
        assert store.get_refresh_token() is None

    def test_custom_keys(self):
        storage = {}
        store = KeyValueCredentialStore(storage, "at", "rt", user_key=None)
        store.set_tokens("a", "r")
        assert storage == {"at": "a", "rt": "r"}
        store.clear()
        assert storage == {}


class TestParseTokenPair:
    """Tests for parse_token_pair."""

    def test_envelope(self):
        payload = {
            "success": True,
            "data": {"token": "a", "refreshToken": "r", "expiresIn": 900, "tokenType": "Bearer"},
        }
        assert parse_token_pair(payload, "old") == TokenPair("a", "r", 900, "Bearer")

    def test_flat_body(self):
        pair = parse_token_pair({"accessToken": "a", "refreshToken": "r"}, "old")
        assert pair.access_token == "a"
        assert pair.refresh_token == "r"
        assert pair.expires_in is None

    def test_keeps_previous_refresh_token(self):
        assert parse_token_pair({"token": "a"}, "old").refresh_token == "old"

    def test_missing_access_token(self):
        with pytest.raises(ApiError):
            parse_token_pair({"data": {"refreshToken": "r"}}, "old")

    def test_repr_masks_tokens(self):
        assert "secret" not in repr(TokenPair("secret-access", "secret-refresh"))


class TestHttpTokenRefresher:
    """Tests for HttpTokenRefresher."""

    @pytest.mark.asyncio
    async def test_posts_refresh_token(self):
        router = respx.MockRouter()
        route = router.post("https://api.example.com/api/auth/refresh").mock(
            return_value=httpx.Response(
                200, json={"success": True, "data": {"token": "new", "refreshToken": "r2"}}
            )
        )
        async with httpx.AsyncClient(transport=httpx.MockTransport(router.async_handler)) as client:
            refresher = HttpTokenRefresher(client, "https://api.example.com/api/auth/refresh")
            pair = await refresher("r1")

        assert pair == TokenPair("new", "r2")
        assert route.called
        request = route.calls.last.request
        assert json.loads(request.content) == {"refreshToken": "r1"}
        assert "X-Request-ID" in request.headers

    @pytest.mark.asyncio
    async def test_rejected_refresh_raises(self):
        router = respx.MockRouter()
        router.post("https://api.example.com/api/auth/refresh").mock(
            return_value=httpx.Response(401, json={"message": "Refresh token expired"})
        )
        async with httpx.AsyncClient(transport=httpx.MockTransport(router.async_handler)) as client:
            refresher = HttpTokenRefresher(client, "https://api.example.com/api/auth/refresh")
            with pytest.raises(ApiError) as exc_info:
                await refresher("r1")

        assert exc_info.value.http_status == 401
        assert exc_info.value.message == "Refresh token expired"

    @pytest.mark.asyncio
    async def test_non_json_body_raises(self):
        router = respx.MockRouter()
        router.post("https://api.example.com/api/auth/refresh").mock(
            return_value=httpx.Response(200, text="<html>")
        )
        async with httpx.AsyncClient(transport=httpx.MockTransport(router.async_handler)) as client:
            refresher = HttpTokenRefresher(client, "https://api.example.com/api/auth/refresh")
            with pytest.raises(ApiError):
                await refresher("r1")

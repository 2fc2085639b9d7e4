"""
Tests for the X-API-Key dependency.
"""

import pytest

from app.auth import api_key_matches, verify_api_key
from app.exceptions import AuthenticationError, ConfigurationError, ErrorCode


class TestApiKeyMatches:
    """Tests for the constant-time key comparison."""

    def test_equal_keys_match(self):
        """Identical keys match."""
        assert api_key_matches("secret", "secret")

    def test_different_keys_do_not_match(self):
        """Keys differing in one character do not match."""
        assert not api_key_matches("secreT", "secret")

    def test_missing_key_never_matches(self):
        """An absent or empty header never matches."""
        assert not api_key_matches(None, "secret")
        assert not api_key_matches("", "secret")

    def test_non_ascii_keys(self):
        """Non-ASCII keys are compared as UTF-8 bytes."""
        assert api_key_matches("clé", "clé")
        assert not api_key_matches("cle", "clé")


class TestVerifyApiKey:
    """Tests for verify_api_key."""

    @pytest.mark.asyncio
    async def test_valid_key(self):
        """The configured key is accepted."""
        assert await verify_api_key("test-api-key") is None

    @pytest.mark.asyncio
    async def test_missing_header(self):
        """A missing header is an authentication error."""
        with pytest.raises(AuthenticationError) as exc_info:
            await verify_api_key(None)

        assert exc_info.value.message == "Unauthorized"
        assert exc_info.value.error_code == ErrorCode.AUTHENTICATION_REQUIRED

    @pytest.mark.asyncio
    async def test_wrong_key(self):
        """A wrong key is flagged as invalid."""
        with pytest.raises(AuthenticationError) as exc_info:
            await verify_api_key("wrong")

        assert exc_info.value.error_code == ErrorCode.INVALID_API_KEY

    @pytest.mark.asyncio
    async def test_unconfigured_server(self, monkeypatch):
        """Without API_KEY every request is refused as a server error."""
        from poster.config import get_settings

        monkeypatch.setenv("API_KEY", "")
        get_settings.cache_clear()

        with pytest.raises(ConfigurationError) as exc_info:
            await verify_api_key("anything")

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "Server misconfigured"

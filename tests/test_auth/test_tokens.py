"""Tests for access token verification."""
from datetime import timedelta

import pytest
from jose import jwt

from tutor_relay.auth.tokens import create_access_token, decode_access_token, resolve_identity
from tutor_relay.utils.exceptions import AuthenticationError, ConfigurationError

SECRET = "secret"


class TestResolveIdentity:
    """Tests for resolve_identity()."""

    def test_valid_token(self):
        token = create_access_token("user-1", SECRET)
        assert resolve_identity(f"Bearer {token}", SECRET) == "user-1"

    def test_scheme_case_insensitive(self):
        token = create_access_token("user-1", SECRET)
        assert resolve_identity(f"bearer {token}", SECRET) == "user-1"

    @pytest.mark.parametrize("header", [None, "", "Bearer", "Bearer   ", "Basic dXNlcjpwYXNz", "token"])
    def test_missing_token(self, header):
        with pytest.raises(AuthenticationError, match="Missing"):
            resolve_identity(header, SECRET)

    def test_wrong_secret(self):
        token = create_access_token("user-1", "other-secret")
        with pytest.raises(AuthenticationError, match="Invalid or expired"):
            resolve_identity(f"Bearer {token}", SECRET)

    def test_expired(self):
        token = create_access_token("user-1", SECRET, expires_delta=timedelta(seconds=-10))
        with pytest.raises(AuthenticationError):
            resolve_identity(f"Bearer {token}", SECRET)

    def test_wrong_audience(self):
        token = create_access_token("user-1", SECRET, audience="someone-else")
        with pytest.raises(AuthenticationError):
            resolve_identity(f"Bearer {token}", SECRET)

    def test_audience_not_checked_when_disabled(self):
        token = create_access_token("user-1", SECRET, audience=None)
        assert resolve_identity(f"Bearer {token}", SECRET, audience="") == "user-1"

    def test_missing_subject(self):
        token = jwt.encode({"aud": "authenticated"}, SECRET, algorithm="HS256")
        with pytest.raises(AuthenticationError, match="subject"):
            resolve_identity(f"Bearer {token}", SECRET)

    def test_garbage_token(self):
        with pytest.raises(AuthenticationError):
            resolve_identity("Bearer not.a.jwt", SECRET)

    def test_no_secret_configured(self):
        token = create_access_token("user-1", SECRET)
        with pytest.raises(ConfigurationError):
            resolve_identity(f"Bearer {token}", "")


class TestDecodeAccessToken:
    """Tests for decode_access_token()."""

    def test_claims(self):
        claims = decode_access_token(create_access_token("user-1", SECRET), SECRET)
        assert claims["sub"] == "user-1"
        assert claims["aud"] == "authenticated"
        assert claims["exp"] > claims["iat"]

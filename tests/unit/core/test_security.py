"""
Tests for core security utilities.

Tests:
- JWT token creation and validation
- Token expiration
- Opaque token generation
- Audit payload masking
"""

from datetime import datetime, timedelta, timezone

import jwt as pyjwt
import pytest

from core.exceptions import AuthenticationError
from core.security import (
    create_access_token,
    generate_invite_token,
    generate_magic_link_token,
    mask_pii,
    verify_jwt_token,
)

SECRET = "unit-test-secret-key-that-is-long-enough"


class TestJWT:
    def test_round_trip(self):
        token = create_access_token("owner-1", SECRET, email="hr@example.com")

        payload = verify_jwt_token(token, SECRET)

        assert payload.subject == "owner-1"
        assert payload.email == "hr@example.com"

    def test_expired_token(self):
        token = create_access_token("owner-1", SECRET, expires_minutes=-1)

        with pytest.raises(AuthenticationError) as exc_info:
            verify_jwt_token(token, SECRET)
        assert "expired" in exc_info.value.message

    def test_wrong_secret(self):
        token = create_access_token("owner-1", SECRET)
        with pytest.raises(AuthenticationError):
            verify_jwt_token(token, "another-secret-key-of-decent-length")

    def test_missing_subject(self):
        token = pyjwt.encode(
            {"exp": datetime.now(timezone.utc) + timedelta(minutes=5)}, SECRET, algorithm="HS256"
        )
        with pytest.raises(AuthenticationError):
            verify_jwt_token(token, SECRET)

    def test_garbage(self):
        with pytest.raises(AuthenticationError):
            verify_jwt_token("not-a-jwt", SECRET)


class TestTokens:
    def test_invite_token_is_128_bit_hex(self):
        token = generate_invite_token()
        assert len(token) == 32
        int(token, 16)

    def test_tokens_unique(self):
        assert len({generate_invite_token() for _ in range(50)}) == 50
        assert generate_magic_link_token() != generate_magic_link_token()


def test_audit_payload_masking():
    masked = mask_pii({"candidate_email": "ada@example.com", "nested": [{"name": "Ada"}], "stage": 2})

    assert masked["candidate_email"] == "a***[15]"
    assert masked["nested"][0]["name"] == "A***[3]"
    assert masked["stage"] == 2

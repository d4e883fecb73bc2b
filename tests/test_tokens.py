"""
tests/test_tokens.py -- Unit tests for auth/tokens.py.

Covers:
  - access/refresh round trip and claim contents
  - class separation (a refresh token is not an access token, and vice versa)
  - expiry against the injected clock, to the second
  - malformed input, bad signature, wrong issuer/audience, missing typ
"""

from __future__ import annotations

import logging
from datetime import timedelta

import pytest
from jose import jwt

from auth.errors import TokenExpired, TokenInvalid
from auth.models import TokenClass
from auth.tokens import SigningContext, TokenIssuer
from core.clock import FixedClock
from core.config import Settings
from tests.conftest import T0

# ---------------------------------------------------------------------------
# Round trip
# ---------------------------------------------------------------------------


class TestIssueAndVerify:
    def test_access_round_trip(self, issuer: TokenIssuer):
        claims = issuer.verify_access(issuer.issue_access("user-1"))
        assert claims.subject == "user-1"
        assert claims.token_class is TokenClass.ACCESS
        assert claims.issued_at == int(T0.timestamp())
        assert claims.expires_at == claims.issued_at + 15 * 60

    def test_refresh_round_trip(self, issuer: TokenIssuer):
        claims = issuer.verify_refresh(issuer.issue_refresh("user-1"))
        assert claims.subject == "user-1"
        assert claims.token_class is TokenClass.REFRESH
        assert claims.expires_at == claims.issued_at + 7 * 24 * 3600

    def test_payload_carries_issuer_audience_and_type(self, issuer: TokenIssuer, settings: Settings):
        payload = jwt.get_unverified_claims(issuer.issue_access("user-1"))
        assert payload["iss"] == settings.token_issuer
        assert payload["aud"] == settings.token_audience
        assert payload["typ"] == "access"
        assert payload["jti"]

    def test_tokens_issued_in_same_second_differ(self, issuer: TokenIssuer):
        first = issuer.issue_refresh("user-1")
        second = issuer.issue_refresh("user-1")
        assert first != second
        assert issuer.verify_refresh(first).token_id != issuer.verify_refresh(second).token_id


# ---------------------------------------------------------------------------
# Class separation
# ---------------------------------------------------------------------------


class TestTokenClasses:
    def test_refresh_token_rejected_as_access(self, issuer: TokenIssuer):
        with pytest.raises(TokenInvalid):
            issuer.verify_access(issuer.issue_refresh("user-1"))

    def test_access_token_rejected_as_refresh(self, issuer: TokenIssuer):
        with pytest.raises(TokenInvalid):
            issuer.verify_refresh(issuer.issue_access("user-1"))

    def test_typ_claim_separates_classes_when_secrets_match(self, clock: FixedClock, caplog):
        secret = "s" * 40
        with caplog.at_level(logging.WARNING, logger="taskguard.auth"):
            shared = TokenIssuer(
                SigningContext(TokenClass.ACCESS, secret, timedelta(minutes=15)),
                SigningContext(TokenClass.REFRESH, secret, timedelta(days=7)),
                issuer="iss",
                audience="aud",
                clock=clock,
            )
        assert "share a secret" in caplog.text
        with pytest.raises(TokenInvalid) as exc_info:
            shared.verify_access(shared.issue_refresh("user-1"))
        assert exc_info.value.reason == "claims"


# ---------------------------------------------------------------------------
# Expiry
# ---------------------------------------------------------------------------


class TestExpiry:
    def test_valid_one_second_before_expiry(self, issuer: TokenIssuer, clock: FixedClock):
        token = issuer.issue_access("user-1")
        clock.advance(seconds=15 * 60 - 1)
        assert issuer.verify_access(token).subject == "user-1"

    def test_expired_at_exp(self, issuer: TokenIssuer, clock: FixedClock):
        token = issuer.issue_access("user-1")
        clock.advance(seconds=15 * 60)
        with pytest.raises(TokenExpired):
            issuer.verify_access(token)

    def test_expired_refresh(self, issuer: TokenIssuer, clock: FixedClock):
        token = issuer.issue_refresh("user-1")
        clock.advance(days=7, seconds=1)
        with pytest.raises(TokenExpired):
            issuer.verify_refresh(token)

    def test_expired_is_distinct_from_invalid(self, issuer: TokenIssuer, clock: FixedClock):
        token = issuer.issue_access("user-1")
        clock.advance(hours=1)
        with pytest.raises(TokenExpired) as exc_info:
            issuer.verify_access(token)
        assert not isinstance(exc_info.value, TokenInvalid)


# ---------------------------------------------------------------------------
# Rejections
# ---------------------------------------------------------------------------


class TestRejections:
    @pytest.mark.parametrize("token", ["", "garbage", "not.a.jwt", "a.b"])
    def test_malformed(self, issuer: TokenIssuer, token: str):
        with pytest.raises(TokenInvalid) as exc_info:
            issuer.verify_access(token)
        assert exc_info.value.reason == "malformed"

    def test_bad_signature(self, issuer: TokenIssuer, settings: Settings):
        payload = jwt.get_unverified_claims(issuer.issue_access("user-1"))
        forged = jwt.encode(payload, "x" * 40, algorithm="HS256")
        with pytest.raises(TokenInvalid) as exc_info:
            issuer.verify_access(forged)
        assert exc_info.value.reason == "bad_signature"

    def test_tampered_payload(self, issuer: TokenIssuer):
        header, _, signature = issuer.issue_access("user-1").split(".")
        other_payload = issuer.issue_access("user-2").split(".")[1]
        with pytest.raises(TokenInvalid) as exc_info:
            issuer.verify_access(f"{header}.{other_payload}.{signature}")
        assert exc_info.value.reason == "bad_signature"

    @pytest.mark.parametrize("field,value", [("iss", "someone-else"), ("aud", "another-client")])
    def test_wrong_issuer_or_audience(self, issuer: TokenIssuer, settings: Settings, field, value):
        payload = jwt.get_unverified_claims(issuer.issue_access("user-1"))
        payload[field] = value
        token = jwt.encode(payload, settings.access_token_secret, algorithm="HS256")
        with pytest.raises(TokenInvalid) as exc_info:
            issuer.verify_access(token)
        assert exc_info.value.reason == "claims"

    def test_missing_typ(self, issuer: TokenIssuer, settings: Settings):
        payload = jwt.get_unverified_claims(issuer.issue_access("user-1"))
        del payload["typ"]
        token = jwt.encode(payload, settings.access_token_secret, algorithm="HS256")
        with pytest.raises(TokenInvalid) as exc_info:
            issuer.verify_access(token)
        assert exc_info.value.reason == "claims"

    def test_missing_subject(self, issuer: TokenIssuer, settings: Settings):
        payload = jwt.get_unverified_claims(issuer.issue_access("user-1"))
        del payload["sub"]
        token = jwt.encode(payload, settings.access_token_secret, algorithm="HS256")
        with pytest.raises(TokenInvalid):
            issuer.verify_access(token)

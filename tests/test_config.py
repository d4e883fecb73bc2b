"""
tests/test_config.py -- Tests for core/config.py (Settings secret policy).

Settings is constructed directly with keyword arguments; explicit values take
precedence over the environment, so these tests are independent of the
DEBUG/BCRYPT_ROUNDS defaults conftest.py puts in os.environ.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings

ACCESS = "a" * 40
REFRESH = "r" * 40


def test_explicit_secrets_accepted():
    s = Settings(debug=False, access_token_secret=ACCESS, refresh_token_secret=REFRESH)
    assert s.access_token_secret == ACCESS
    assert s.refresh_token_secret == REFRESH


def test_defaults():
    s = Settings(debug=False, access_token_secret=ACCESS, refresh_token_secret=REFRESH, bcrypt_rounds=10)
    assert s.access_token_expire_seconds == 24 * 3600
    assert s.refresh_token_expire_seconds == 7 * 24 * 3600
    assert s.lockout_threshold == 5
    assert s.lockout_seconds == 2 * 3600
    assert s.token_issuer == "task-management-api"
    assert s.token_audience == "task-management-client"


def test_debug_generates_distinct_secrets():
    s = Settings(debug=True, access_token_secret="", refresh_token_secret="")
    assert len(s.access_token_secret) >= 32
    assert len(s.refresh_token_secret) >= 32
    assert s.access_token_secret != s.refresh_token_secret


def test_production_requires_secrets():
    with pytest.raises(ValidationError, match="ACCESS_TOKEN_SECRET is required"):
        Settings(debug=False, access_token_secret="", refresh_token_secret=REFRESH)


def test_short_secret_rejected():
    with pytest.raises(ValidationError, match="at least 32 characters"):
        Settings(debug=False, access_token_secret="short", refresh_token_secret=REFRESH)


def test_equal_secrets_rejected():
    with pytest.raises(ValidationError, match="must differ"):
        Settings(debug=True, access_token_secret=ACCESS, refresh_token_secret=ACCESS)


@pytest.mark.parametrize("rounds", [3, 32])
def test_bcrypt_rounds_bounded(rounds):
    with pytest.raises(ValidationError):
        Settings(debug=True, bcrypt_rounds=rounds)

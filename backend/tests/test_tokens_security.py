"""
Security tests for the local bearer-token pre-check.

The pre-check must reject anything that is not a JWT with a usable `exp`
before the identity provider is contacted, and must never treat parsing as
verification.
"""

from __future__ import annotations

import time

import pytest

from backend.identity_access import tokens as tokens_mod
from backend.identity_access.tokens import (
    AccessTokenVerificationError,
    extract_bearer_token,
    precheck_access_token,
)
from utils.fakes import make_jwt


@pytest.mark.parametrize(
    "header,expected",
    [
        ("Bearer abc", "abc"),
        ("bearer   abc  ", "abc"),
        ("Basic abc", None),
        ("Bearer", None),
        ("", None),
        (None, None),
    ],
)
def test_extract_bearer_token(header, expected):
    assert extract_bearer_token(header) == expected


def test_valid_token_returns_claims():
    claims = precheck_access_token(make_jwt("u1"))
    assert claims["sub"] == "u1"


def test_garbage_is_malformed():
    with pytest.raises(AccessTokenVerificationError) as exc:
        precheck_access_token("not.a.jwt")
    assert exc.value.code == "malformed_token"


def test_expired_token_is_rejected():
    now = time.time()
    token = make_jwt("u1", expires_in=-60, now=now)
    with pytest.raises(AccessTokenVerificationError) as exc:
        precheck_access_token(token, now=now)
    assert exc.value.code == "token_expired"


def test_small_clock_skew_is_tolerated():
    now = time.time()
    token = make_jwt("u1", expires_in=0, now=now)
    precheck_access_token(token, now=now + tokens_mod.MAX_CLOCK_SKEW_SECONDS - 1)


def test_missing_exp_is_malformed(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(tokens_mod.jwt, "get_unverified_claims", lambda _t: {"sub": "u1"})
    with pytest.raises(AccessTokenVerificationError) as exc:
        precheck_access_token("whatever")
    assert exc.value.code == "malformed_token"


def test_future_iat_is_rejected(monkeypatch: pytest.MonkeyPatch):
    now = time.time()
    monkeypatch.setattr(
        tokens_mod.jwt, "get_unverified_claims", lambda _t: {"exp": now + 3600, "iat": now + 600}
    )
    with pytest.raises(AccessTokenVerificationError):
        precheck_access_token("whatever", now=now)

"""Tests for Supabase JWT verification."""
import time

import jwt
import pytest
from fastapi import HTTPException

from nfc_card.core.auth import get_current_user, verify_supabase_jwt
from nfc_card.core.config import settings

SECRET = "test-secret-with-enough-length-for-hs256"
PROJECT_URL = "https://project.supabase.example"


@pytest.fixture
def hs_settings(monkeypatch):
    monkeypatch.setattr(settings, "supabase_url", PROJECT_URL)
    monkeypatch.setattr(settings, "supabase_jwt_secret", SECRET)
    monkeypatch.setattr(settings, "supabase_jwt_issuer", None)


def _token(secret=SECRET, **overrides):
    claims = {
        "sub": "user-123",
        "email": "owner@example.com",
        "aud": "authenticated",
        "iss": f"{PROJECT_URL}/auth/v1",
        "exp": int(time.time()) + 600,
    }
    claims.update(overrides)
    return jwt.encode(claims, secret, algorithm="HS256")


def test_valid_token_yields_user(hs_settings):
    user = get_current_user(authorization=f"Bearer {_token()}")
    assert user.user_id == "user-123"
    assert user.email == "owner@example.com"


def test_bad_signature_is_rejected(hs_settings):
    with pytest.raises(HTTPException) as excinfo:
        verify_supabase_jwt(_token(secret="another-secret-with-enough-length-xx"))
    assert excinfo.value.status_code == 401


def test_wrong_audience_is_rejected(hs_settings):
    with pytest.raises(HTTPException) as excinfo:
        verify_supabase_jwt(_token(aud="anon"))
    assert excinfo.value.status_code == 401


def test_missing_header(hs_settings):
    with pytest.raises(HTTPException) as excinfo:
        get_current_user(authorization="")
    assert excinfo.value.status_code == 401


def test_token_without_subject(hs_settings):
    with pytest.raises(HTTPException) as excinfo:
        get_current_user(authorization=f"Bearer {_token(sub='')}")
    assert excinfo.value.status_code == 401

"""Unit tests for the bearer-token identity dependency."""

from __future__ import annotations

from dataclasses import replace

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from mathlab.config import get_settings
from mathlab.core import security
from mathlab.core.security import ANONYMOUS_UID, get_current_identity


def _credentials(token: str = "id-token") -> HTTPAuthorizationCredentials:
  return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


@pytest.fixture
def auth_settings():
  return replace(get_settings(), auth_enabled=True, firebase_project_id="mathlab-test")


@pytest.mark.anyio
async def test_anonymous_identity_when_auth_disabled() -> None:
  identity = await get_current_identity(None, replace(get_settings(), auth_enabled=False))
  assert identity.uid == ANONYMOUS_UID
  assert identity.anonymous


@pytest.mark.anyio
async def test_missing_token_is_rejected_when_auth_enabled(auth_settings) -> None:
  with pytest.raises(HTTPException) as excinfo:
    await get_current_identity(None, auth_settings)
  assert excinfo.value.status_code == 401
  assert excinfo.value.headers == {"WWW-Authenticate": "Bearer"}


@pytest.mark.anyio
async def test_invalid_token_is_rejected(monkeypatch, auth_settings) -> None:
  monkeypatch.setattr(security, "verify_id_token", lambda token: None)
  with pytest.raises(HTTPException) as excinfo:
    await get_current_identity(_credentials(), auth_settings)
  assert excinfo.value.status_code == 401


@pytest.mark.anyio
async def test_token_without_uid_is_rejected(monkeypatch, auth_settings) -> None:
  monkeypatch.setattr(security, "verify_id_token", lambda token: {"email": "a@example.com"})
  with pytest.raises(HTTPException, match="Invalid token claims"):
    await get_current_identity(_credentials(), auth_settings)


@pytest.mark.anyio
async def test_verified_token_yields_identity(monkeypatch, auth_settings) -> None:
  seen: list[str] = []

  def _verify(token: str) -> dict:
    seen.append(token)
    return {"uid": "user-1", "email": "a@example.com"}

  monkeypatch.setattr(security, "verify_id_token", _verify)
  identity = await get_current_identity(_credentials("abc"), auth_settings)
  assert seen == ["abc"]
  assert identity.uid == "user-1"
  assert identity.claims["email"] == "a@example.com"
  assert not identity.anonymous

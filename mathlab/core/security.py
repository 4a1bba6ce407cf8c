from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.concurrency import run_in_threadpool

from mathlab.config import Settings, get_settings
from mathlab.core.firebase import verify_id_token

security_scheme = HTTPBearer(auto_error=False)
ANONYMOUS_UID = "anonymous"


@dataclass(frozen=True)
class Identity:
  """Caller identity attached to a job request."""

  uid: str
  claims: dict[str, Any] = field(default_factory=dict)

  @property
  def anonymous(self) -> bool:
    return self.uid == ANONYMOUS_UID


def _unauthorized(detail: str) -> HTTPException:
  return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail, headers={"WWW-Authenticate": "Bearer"})


async def get_current_identity(token: Annotated[HTTPAuthorizationCredentials | None, Depends(security_scheme)], settings: Settings = Depends(get_settings)) -> Identity:  # noqa: B008
  """Verify the Firebase ID token when auth is on; otherwise treat the caller as anonymous."""
  if not settings.auth_enabled:
    return Identity(uid=ANONYMOUS_UID)

  if token is None or not token.credentials:
    raise _unauthorized("Not authenticated")

  # The Admin SDK verifies synchronously and may fetch signing certs.
  decoded_claims = await run_in_threadpool(verify_id_token, token.credentials)
  if not decoded_claims:
    raise _unauthorized("Invalid authentication credentials")

  firebase_uid = decoded_claims.get("uid")
  if not firebase_uid:
    raise _unauthorized("Invalid token claims")

  return Identity(uid=str(firebase_uid), claims=decoded_claims)

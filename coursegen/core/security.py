from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from typing import Annotated, Any

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.concurrency import run_in_threadpool

from coursegen.config import Settings, get_settings
from coursegen.core.firebase import verify_id_token

logger = logging.getLogger(__name__)

security_scheme = HTTPBearer()

ADMIN_SECRET_HEADER = "x-coursegen-admin-secret"


@dataclass(frozen=True)
class Owner:
  """Authenticated caller; every job and course is scoped to `owner_id`."""

  owner_id: str
  email: str | None = None
  claims: dict[str, Any] | None = None


async def get_current_owner(token: Annotated[HTTPAuthorizationCredentials, Depends(security_scheme)]) -> Owner:
  """Verify the Firebase ID token and return the owning principal."""
  decoded_claims = await run_in_threadpool(verify_id_token, token.credentials)
  if not decoded_claims:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication credentials", headers={"WWW-Authenticate": "Bearer"})

  owner_id = decoded_claims.get("uid")
  if not owner_id:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token claims")

  email = decoded_claims.get("email")
  return Owner(owner_id=str(owner_id), email=str(email) if email else None, claims=decoded_claims)


async def require_admin_secret(settings: Annotated[Settings, Depends(get_settings)], x_coursegen_admin_secret: str | None = Header(default=None)) -> None:
  """Gate operator endpoints behind the shared admin secret."""
  if not settings.admin_secret:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin authentication is not configured.")
  if not secrets.compare_digest((x_coursegen_admin_secret or ""), settings.admin_secret):
    logger.warning("Unauthorized access attempt to admin endpoint")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid admin secret.")

from __future__ import annotations

import os
import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials


basic = HTTPBasic(auto_error=False)


def app_password() -> Optional[str]:
    """APP_PASSWORD, or None when unset/blank (single-user local mode)."""
    pw = (os.environ.get("APP_PASSWORD") or "").strip()
    return pw or None


def default_user() -> str:
    return (os.environ.get("APP_USER_DEFAULT") or "").strip() or "local"


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication required",
        headers={"WWW-Authenticate": "Basic"},
    )


def require_user(request: Request, credentials: Optional[HTTPBasicCredentials] = Depends(basic)) -> str:
    """
    User id every query is scoped to.

    With APP_PASSWORD set, HTTP Basic is enforced and the username is the user id.
    Without it, the X-User header (or APP_USER_DEFAULT) is trusted as-is.
    """
    expected = app_password()
    if expected is None:
        return request.headers.get("X-User", "").strip() or default_user()

    if credentials is None:
        raise _unauthorized()
    if not secrets.compare_digest(credentials.password.encode("utf-8"), expected.encode("utf-8")):
        raise _unauthorized()
    return credentials.username.strip() or default_user()

from typing import Optional

from fastapi import Cookie, Depends, Header, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from .settings import settings
import secrets

security = HTTPBasic()


def _matches(candidate: Optional[str], expected: str) -> bool:
    if not candidate:
        return False
    return secrets.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))


def admin_guard(
    x_admin_secret: Optional[str] = Header(default=None),
    admin_cookie: Optional[str] = Cookie(default=None, alias=settings.ADMIN_COOKIE_NAME),
):
    """Shared-secret check: X-Admin-Secret header or the admin cookie."""
    expected = settings.ADMIN_SECRET
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="ADMIN_SECRET_NOT_CONFIGURED",
        )
    if not (_matches(x_admin_secret, expected) or _matches(admin_cookie, expected)):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="UNAUTHORIZED")


def basic_login(creds: HTTPBasicCredentials = Depends(security)) -> str:
    """Checks basic credentials; returns the secret to store in the admin cookie."""
    # No built-in default password; login stays closed until one is configured
    if not settings.ADMIN_PASS:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="ADMIN_PASS_NOT_CONFIGURED",
        )
    ok_user = secrets.compare_digest(creds.username.encode("utf-8"), settings.ADMIN_USER.encode("utf-8"))
    ok_pass = secrets.compare_digest(creds.password.encode("utf-8"), settings.ADMIN_PASS.encode("utf-8"))
    if not (ok_user and ok_pass):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="UNAUTHORIZED",
            headers={"WWW-Authenticate": "Basic"},
        )
    if not settings.ADMIN_SECRET:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="ADMIN_SECRET_NOT_CONFIGURED",
        )
    return settings.ADMIN_SECRET

"""Access control for the admin JSON API.

The API exposes finished salary inquiries and their retrieval citations,
so it is closed unless ``ADMIN_WEB_PASSWORD`` is set. One shared
password; the Basic Auth username only names the operator in ADMIN_ACCESS
audit events.
"""

from __future__ import annotations

import hmac
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from src.config import settings

logger = logging.getLogger(__name__)

REALM = "Tarifbot Admin"

basic_auth = HTTPBasic(realm=REALM)


def _password_matches(given: str, expected: str) -> bool:
    return hmac.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


async def verify_admin(credentials: HTTPBasicCredentials = Depends(basic_auth)) -> str:  # noqa: B008
    """Return the operator name for a request carrying the admin password.

    503 while no password is configured, 401 for a wrong one.
    """
    expected = settings.security.admin_web_password
    if not expected:
        logger.warning("Admin API called but no admin password is configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API disabled: no admin password configured",
        )

    if not _password_matches(credentials.password, expected):
        logger.warning("Rejected admin login for %r", credentials.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Wrong admin password",
            headers={"WWW-Authenticate": f'Basic realm="{REALM}"'},
        )

    return credentials.username or "admin"

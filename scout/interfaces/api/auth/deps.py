"""
Authentication Dependencies - Verify the admin token header.

Diagnostic and maintenance endpoints expect ``X-Admin-Token`` to match
``Settings.admin_token``. When no token is configured the guard is open,
which is the local development default.
"""

from __future__ import annotations

import logging
import secrets

from fastapi import Depends, Header, HTTPException

from scout.config import Settings, get_settings

logger = logging.getLogger(__name__)


async def require_admin_token(
    x_admin_token: str | None = Header(None),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Reject requests without the configured admin token.

    Raises:
        HTTPException 401 if the header is missing or wrong
    """
    expected = settings.admin_token
    if not expected:
        return

    if not x_admin_token or not secrets.compare_digest(x_admin_token, expected):
        logger.warning("Rejected admin request: invalid or missing token")
        raise HTTPException(status_code=401, detail="Invalid admin token")

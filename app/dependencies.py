"""
PayAdjust - FastAPI Dependencies

Shared request dependencies.

Authentication and organization membership are enforced by the upstream
gateway, which forwards the caller's profile id in the X-Profile-Id header.
"""

import uuid
from typing import Optional

from fastapi import Header

from app.utils.error_handling import AuthenticationException


PROFILE_HEADER = "X-Profile-Id"


async def get_current_profile_id(
    x_profile_id: Optional[str] = Header(None, alias=PROFILE_HEADER),
) -> uuid.UUID:
    """
    Get the caller's profile id.

    Raises:
        AuthenticationException: If the header is missing or not a UUID
    """
    if not x_profile_id:
        raise AuthenticationException(f"Missing {PROFILE_HEADER} header")

    try:
        return uuid.UUID(x_profile_id)
    except ValueError:
        raise AuthenticationException(f"Invalid {PROFILE_HEADER} header")

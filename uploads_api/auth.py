# uploads_api/auth.py
"""
Shared identity dependencies.

Sessions are owned by the fronting forum application; it forwards the
resolved user in X-User-* headers. API clients additionally present
X-API-Key.
"""

import secrets

from fastapi import Depends, Header

from uploads_api.access import Actor
from uploads_api.config import Settings, get_settings
from uploads_api.errors import InvalidAccess

TRUTHY = {"1", "true", "yes", "on"}


def _flag(value: str | None) -> bool:
    return value is not None and value.strip().lower() in TRUTHY


def is_api_request(
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    settings: Settings = Depends(get_settings),
) -> bool:
    """True when the request carries the configured API key."""
    expected_key = settings.API_KEY
    if not expected_key or not x_api_key:
        return False
    return secrets.compare_digest(x_api_key, expected_key)


def get_current_actor(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
    x_username: str | None = Header(default=None, alias="X-Username"),
    x_user_admin: str | None = Header(default=None, alias="X-User-Admin"),
    x_user_moderator: str | None = Header(default=None, alias="X-User-Moderator"),
    x_user_trust_level: str | None = Header(default=None, alias="X-User-Trust-Level"),
    is_api: bool = Depends(is_api_request),
) -> Actor | None:
    """Resolve the requester; None for anonymous."""
    if not x_user_id or not x_user_id.strip().isdigit():
        return None

    trust_level = 0
    if x_user_trust_level and x_user_trust_level.strip().isdigit():
        trust_level = int(x_user_trust_level)

    return Actor(
        id=int(x_user_id),
        username=x_username,
        admin=_flag(x_user_admin),
        moderator=_flag(x_user_moderator),
        trust_level=trust_level,
        is_api=is_api,
    )


def require_actor(actor: Actor | None = Depends(get_current_actor)) -> Actor:
    """Reject anonymous requesters."""
    if actor is None:
        raise InvalidAccess("You need to be logged in to do that.")
    return actor

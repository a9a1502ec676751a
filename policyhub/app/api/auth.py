"""Minimal auth dependency.

Stub implementation that takes the actor id from a bearer token or falls back
to the configured dev admin actor. Real identity-provider validation is out of
scope for the admin policy manager.
"""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from policyhub.app.config import Settings, get_settings
from policyhub.app.db.context import RequestContext


async def get_current_context(
    settings: Annotated[Settings, Depends(get_settings)],
    authorization: Annotated[str | None, Header()] = None,
) -> RequestContext:
    """Extract request context from authorization header.

    Stub implementation that either:
    - Parses a simple "Bearer <actor_id>" format
    - Returns the dev admin actor if no header

    Args:
        settings: Application settings
        authorization: Authorization header (e.g., "Bearer legal@example.com")

    Returns:
        RequestContext with actor_id

    Raises:
        HTTPException: If authorization is invalid
    """
    if not authorization:
        return RequestContext(actor_id=settings.dev_actor_id)

    if not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
            headers={"WWW-Authenticate": "Bearer"},
        )

    actor_id = authorization[7:].strip()  # Strip "Bearer "
    if not actor_id or any(char.isspace() for char in actor_id):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid bearer token (expected actor id)",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return RequestContext(actor_id=actor_id)

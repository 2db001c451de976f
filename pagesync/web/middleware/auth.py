"""Auth middleware -- FastAPI dependency for the webhook shared secret.

Gitea sends the configured secret as ``Authorization: Bearer <token>``.
The header must match exactly; anything else is rejected with
``410 Gone`` so the sender stops retrying.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException, Request, status

from pagesync.sync.engine import SyncEngine


def get_engine(request: Request) -> SyncEngine:
    """Return the engine attached to the running application."""
    return request.app.state.engine


async def require_token(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> None:
    """FastAPI dependency that checks the bearer token."""
    expected = "Bearer " + request.app.state.token
    if authorization != expected:
        raise HTTPException(
            status_code=status.HTTP_410_GONE,
            detail="invalid token",
        )

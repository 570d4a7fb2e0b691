"""
Nestmate — Shared FastAPI dependencies.

The storage backend lives on ``app.state`` (set during lifespan startup).
Viewer identity is resolved upstream; the gateway forwards it in the
``X-User-Id`` header.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException, Request, status

from app.storage.base import Storage


def get_storage(request: Request) -> Storage:
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Storage backend not initialised.",
        )
    return storage


def get_viewer_id(
    x_user_id: Optional[int] = Header(None, alias="X-User-Id"),
) -> Optional[int]:
    return x_user_id


def require_viewer_id(
    x_user_id: Optional[int] = Header(None, alias="X-User-Id"),
) -> int:
    if x_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required.",
        )
    return x_user_id


def split_csv(value: Optional[str]) -> Optional[list[str]]:
    """Parse a comma-separated query parameter into a tag list."""
    if not value:
        return None
    return [part.strip() for part in value.split(",") if part.strip()]

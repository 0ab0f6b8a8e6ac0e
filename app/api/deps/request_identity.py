from __future__ import annotations

from fastapi import Header

from app.models.mixins import SYSTEM_ACTOR


def get_request_user_email(
    x_user_email: str | None = Header(default=None, alias="X-User-Email"),
) -> str:
    """
    Acting user for audit columns. Authentication happens upstream; the
    header is trusted as-is and falls back to the system actor.
    """
    email = (x_user_email or "").strip().lower()
    if not email:
        return SYSTEM_ACTOR
    return email

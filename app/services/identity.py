from __future__ import annotations

from fastapi import Header


def get_current_user(x_user_email: str | None = Header(default=None, alias="x-user-email")) -> str | None:
    """Email of the signed-in caller, or ``None`` for anonymous requests.

    Sign-in itself happens upstream; this only reads the identity it forwards.
    """
    if not x_user_email or not x_user_email.strip():
        return None
    return x_user_email.strip().lower()

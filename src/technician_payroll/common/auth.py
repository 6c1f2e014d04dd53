"""Session identity written by the external login layer."""

from __future__ import annotations

from functools import wraps
from typing import Optional

from flask import session

from ..core.enums import Role
from .http import fail


def current_role() -> Optional[Role]:
    try:
        return Role(session.get("role"))
    except ValueError:
        return None


def current_user_id() -> Optional[int]:
    raw = session.get("user_id")
    return int(raw) if raw is not None else None


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if "user_id" not in session or current_role() is None:
            return fail("Please sign in to continue", status=401, code="UNAUTHENTICATED")
        return view(*args, **kwargs)

    return wrapper


def admin_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if "user_id" not in session:
            return fail("Please sign in to continue", status=401, code="UNAUTHENTICATED")
        if current_role() != Role.ADMIN:
            return fail("Only administrators can do this", status=403, code="FORBIDDEN")
        return view(*args, **kwargs)

    return wrapper


def can_view_technician(technician_id: int) -> bool:
    """Admins see everyone; technicians only themselves."""
    if current_role() == Role.ADMIN:
        return True
    return current_user_id() == int(technician_id)

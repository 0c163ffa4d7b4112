"""
Credential resolution and forced-logout handling.
"""

from .session_guard import SessionGuard, TOKEN_SLOTS, CURRENT_USER_SLOT

__all__ = [
    "SessionGuard",
    "TOKEN_SLOTS",
    "CURRENT_USER_SLOT",
]

"""
Auth resolver and session guard.
"""

from typing import Optional, Sequence

from crm_common.logging import get_logger
from ..adapters.navigation import Navigator
from ..adapters.storage import CredentialStorage

# Checked in order, durable scope first
TOKEN_SLOTS = ("crm_accessToken", "auth_token", "accessToken", "token")
CURRENT_USER_SLOT = "crm_currentUser"
LOGIN_PATH = "/login"


class SessionGuard:
    """Reads bearer credentials and tears the session down on a 401."""

    def __init__(self,
                 storage: CredentialStorage,
                 navigator: Navigator,
                 login_path: str = LOGIN_PATH,
                 token_slots: Sequence[str] = TOKEN_SLOTS,
                 current_user_slot: str = CURRENT_USER_SLOT):
        self.storage = storage
        self.navigator = navigator
        self.login_path = login_path
        self.token_slots = tuple(token_slots)
        self.current_user_slot = current_user_slot
        self.logger = get_logger("crm_http.session_guard")

    def resolve_token(self) -> Optional[str]:
        """First non-empty credential across all slots, durable scope first."""
        for scope in self.storage.scopes:
            for slot in self.token_slots:
                value = scope.get(slot)
                if value:
                    return value
        return None

    def clear_credentials(self) -> None:
        for scope in self.storage.scopes:
            for slot in self.token_slots:
                scope.remove(slot)
        self.storage.durable.remove(self.current_user_slot)

    def handle_unauthorized(self) -> bool:
        """Clear the session and redirect to login.

        Returns True when a redirect was issued; nothing is issued when the
        current location is already under the login path.
        """
        self.clear_credentials()
        self.logger.warning("Session invalidated after unauthorized response")

        current = self.navigator.current_path()
        if current.startswith(self.login_path):
            return False

        self.navigator.replace(self.login_path)
        return True

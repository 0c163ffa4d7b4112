"""
Navigation capability used to send the user back to the login entry point.
"""

from typing import List, Protocol

from crm_common.logging import get_logger


class Navigator(Protocol):
    def current_path(self) -> str:
        ...

    def replace(self, path: str) -> None:
        """Replace the current location without adding a history entry."""
        ...


class InMemoryNavigator:
    """Navigator that tracks the location in memory.

    Used by headless clients and tests; ``history`` lists every replacement.
    """

    def __init__(self, initial_path: str = "/"):
        self._path = initial_path
        self.history: List[str] = []
        self.logger = get_logger("crm_http.navigator")

    def current_path(self) -> str:
        return self._path

    def replace(self, path: str) -> None:
        self.logger.info("Navigating", from_path=self._path, to_path=path)
        self._path = path
        self.history.append(path)

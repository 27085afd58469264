"""
Cooperative cancellation and progress messages for a load.
"""

from typing import Callable, Optional


class LoadCancelled(Exception):
    """Raised when the host cancels a load in progress."""


class TaskMonitor:
    """
    Cancellation flag checked by the loader between steps.

    The host calls cancel() (from a UI callback, a signal handler,
    or a test); the loader calls check_cancelled() before each region
    creation and each scan step. Work already done is kept.
    """

    def __init__(self, message_callback: Optional[Callable[[str], None]] = None):
        self._cancelled = False
        self._message_callback = message_callback
        self.message = ""

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def check_cancelled(self) -> None:
        if self._cancelled:
            raise LoadCancelled("Load cancelled")

    def set_message(self, message: str) -> None:
        self.message = message
        if self._message_callback:
            self._message_callback(message)

"""Cancellation signal helpers.

Every store operation accepts an optional ``threading.Event`` as ``cancel``.
Multi-step mutations call ``check_cancelled`` on entry and between steps.
"""

import threading

from project_entities.errors import OperationCancelledError

Cancel = threading.Event | None


def check_cancelled(cancel: Cancel) -> None:
    """Raise OperationCancelledError if the signal is set."""
    if cancel is not None and cancel.is_set():
        raise OperationCancelledError()

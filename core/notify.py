"""User-facing notifications.

The editor reports outcomes through a plain callable
``notify(message, kind)``. Two implementations live here: one that writes
to the log and one that prints for the command line.
"""
from __future__ import annotations

from enum import Enum
from typing import Callable, TextIO, Optional
import logging
import sys

logger = logging.getLogger(__name__)


class NotifyKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


Notifier = Callable[[str, NotifyKind], None]


def capitalize_first_letter(text: str) -> str:
    if not text:
        return text
    return text[0].upper() + text[1:]


def log_notifier(message: str, kind: NotifyKind) -> None:
    if kind is NotifyKind.ERROR:
        logger.error(message)
    else:
        logger.info(message)


class ConsoleNotifier:
    """Prints notifications, errors to stderr."""

    def __init__(self, out: Optional[TextIO] = None, err: Optional[TextIO] = None) -> None:
        self.out = out
        self.err = err

    def __call__(self, message: str, kind: NotifyKind) -> None:
        if kind is NotifyKind.ERROR:
            print(f"Error: {message}", file=self.err or sys.stderr)
        else:
            print(message, file=self.out or sys.stdout)

"""
Task and outcome types shared by the retry wrapper and the batch executor.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Union

from .config import ERROR_KEY_MAX_CHARS

_DIGIT_RUN = re.compile(r"\d{4,}")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class Task:
    """
    A deferred unit of work: ``action`` is awaited once per attempt.

    ``follow_up``, when set, is awaited once with the successful result and
    returns the data stored on the :class:`Success`.  It runs after the retry
    loop, outside the per-attempt timeout, so a slow or failing follow-up
    never causes ``action`` to be repeated.
    """

    task_id: str
    action: Callable[[], Awaitable[Any]]
    context: dict = field(default_factory=dict, compare=False)
    follow_up: Callable[[Any], Awaitable[Any]] | None = field(default=None, compare=False)


@dataclass(frozen=True)
class Success:
    task_id: str
    data: Any
    attempts: int
    duration_seconds: float = 0.0
    context: dict = field(default_factory=dict, compare=False)
    follow_up_error: str | None = None

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    task_id: str
    error: str
    category: str
    attempts: int
    duration_seconds: float = 0.0
    error_type: str = "Exception"
    context: dict = field(default_factory=dict, compare=False)

    @property
    def ok(self) -> bool:
        return False

    @property
    def error_key(self) -> str:
        return normalize_error_key(self.error_type, self.error)


Outcome = Union[Success, Failure]


def normalize_error_key(error_type: str, message: str) -> str:
    """
    Collapse an error message into a histogram bucket key.

    Digit runs of four or more (transaction codes, timestamps, amounts)
    become ``#`` and whitespace is collapsed, so the same failure on
    different transactions lands in the same bucket.

    Args:
        error_type: Exception class name.
        message: Exception message.

    Returns:
        ``'<error_type>: <message>'`` truncated to ``ERROR_KEY_MAX_CHARS``.
    """
    text = _WHITESPACE.sub(" ", _DIGIT_RUN.sub("#", message or "")).strip()
    key = f"{error_type}: {text}" if text else error_type
    if len(key) > ERROR_KEY_MAX_CHARS:
        key = key[: ERROR_KEY_MAX_CHARS - 3] + "..."
    return key

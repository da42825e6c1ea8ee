"""Structured, non-fatal diagnostics emitted while searching for crossings."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock
from typing import Any, Callable, Dict, List, Mapping

__all__ = ["Diagnostic", "DiagnosticChannel", "Severity"]

LOGGER = logging.getLogger(__name__)

NEAR_HORIZON_CULMINATION = "near_horizon_culmination"
INCOMPLETE_SCAN = "incomplete_scan"
WINDOW_EXTENDED = "window_extended"
POST_SEARCH_AMBIGUITY = "post_search_ambiguity"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"


@dataclass(frozen=True)
class Diagnostic:
    """One diagnostic record: what happened and the numbers behind it."""

    severity: Severity
    code: str
    message: str
    context: Mapping[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "event": self.code,
            "severity": self.severity.value,
            "message": self.message,
            **self.context,
        }


Subscriber = Callable[[Diagnostic], None]


class DiagnosticChannel:
    """Fan-out of diagnostics to subscribers, mirrored to the module logger.

    Subscribers only observe: a failing subscriber is logged and skipped so
    it can never change the outcome of a search.
    """

    def __init__(self) -> None:
        self._subscribers: List[Subscriber] = []
        self._lock = Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def emit(
        self,
        severity: Severity,
        code: str,
        message: str,
        **context: Any,
    ) -> Diagnostic:
        diagnostic = Diagnostic(severity=severity, code=code, message=message, context=context)
        level = logging.WARNING if severity is Severity.WARNING else logging.INFO
        LOGGER.log(level, json.dumps(diagnostic.as_dict(), default=str))
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(diagnostic)
            except Exception:
                LOGGER.exception("Diagnostic subscriber failed for %s", code)
        return diagnostic

# =============================================================================
# lib/diagnostic_log.py - Bounded Diagnostic Event Log
# =============================================================================
# A forensic side channel for the upload pipeline. Every component appends
# structured events here so a failed upload can be reconstructed later and
# exported as a JSON document.
#
# The log is a bounded FIFO (default 50 events): appending past capacity
# evicts the oldest entry. Each append is also mirrored to the standard
# logger at DEBUG level.
#
# There is no module-level instance. Whoever wires the pipeline decides
# whether one log is shared process-wide or each uploader owns its own.
#
# Usage:
#   from lib.diagnostic_log import DiagnosticLog
#   log = DiagnosticLog(capacity=50)
#   log.append("STORAGE_TEST", "Missing required buckets", {"missing": [...]})
#   export = log.export()   # DiagnosticExport(filename=..., content=...)
# =============================================================================

from __future__ import annotations

import json
import logging
from collections import deque
from collections.abc import Callable
from typing import Any

from core.models.diagnostics import DiagnosticEvent, DiagnosticExport
from lib.utils import sortable_timestamp, utc_now_iso

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 50


def _jsonable(value: Any) -> Any:
    """Best-effort conversion of payload values to JSON-compatible data."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    if isinstance(value, BaseException):
        return {"type": type(value).__name__, "message": str(value)}
    if hasattr(value, "model_dump"):
        return _jsonable(value.model_dump(mode="json"))
    if hasattr(value, "value"):  # Enum
        return _jsonable(value.value)
    return str(value)


class DiagnosticLog:
    """
    Session-scoped ring buffer of DiagnosticEvents.

    Example:
        log = DiagnosticLog()
        log.append("UPLOAD", "Upload initiated", {"kind": "user"})
        for event in log.list_events():
            print(event.context, event.message)
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], str] = utc_now_iso,
    ):
        if capacity < 1:
            raise ValueError("Diagnostic log capacity must be at least 1")
        self.capacity = capacity
        self._clock = clock
        self._events: deque[DiagnosticEvent] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._events)

    def append(
        self,
        context: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> DiagnosticEvent:
        """
        Record one event, evicting the oldest when full.

        Args:
            context: Subsystem tag, e.g. "STORAGE_TEST"
            message: Free-text message
            data: Optional structured payload (converted to JSON-safe values)

        Returns:
            The stored DiagnosticEvent
        """
        event = DiagnosticEvent(
            timestamp=self._clock(),
            context=context,
            message=message,
            data=_jsonable(data) if data else None,
        )
        self._events.append(event)

        if event.data:
            logger.debug(f"[{context}] {message} {event.data}")
        else:
            logger.debug(f"[{context}] {message}")
        return event

    def clear(self) -> None:
        """Drop all events."""
        self._events.clear()
        logger.debug("Diagnostic log cleared")

    def list_events(self) -> list[DiagnosticEvent]:
        """Point-in-time copy of the events, oldest first."""
        return list(self._events)

    def export(self) -> DiagnosticExport:
        """
        Serialize all events to a downloadable JSON document.

        The filename embeds a sortable timestamp:
            upload-debug-2026-10-19T08-15-02-114Z.json

        The export itself is recorded as a DEBUG_EXPORT event after the
        snapshot is taken, so it is not part of the exported content.
        """
        events = self.list_events()
        filename = f"upload-debug-{sortable_timestamp(self._clock())}.json"
        content = json.dumps(
            [event.model_dump(mode="json") for event in events],
            indent=2,
        )

        self.append(
            "DEBUG_EXPORT",
            "Debug logs exported",
            {"filename": filename, "log_count": len(events)},
        )
        return DiagnosticExport(filename=filename, content=content, event_count=len(events))

"""Lifecycle events and the sinks that receive them.

Every invocation that passes validation produces exactly one
``invoked`` event followed by exactly one terminal event
(``completed``, ``failed`` or ``cancelled``).  Events are immutable and
self-contained, so sinks can accept concurrent writers without any
invocation-level locking.

Emission is fire-and-forget: :class:`LifecycleEmitter` logs sink
failures locally and never lets them reach the invocation they describe.

Example::

    sink = InMemoryLifecycleSink()
    dispatcher = InvocationDispatcher(registry, emitter=LifecycleEmitter([sink]))
    ...
    for event in sink.events:
        print(event.phase, event.detail)
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, TextIO

_logger = logging.getLogger(__name__)


class LifecyclePhase(str, Enum):
    INVOKED = "invoked"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self is not LifecyclePhase.INVOKED


@dataclass(frozen=True)
class LifecycleEvent:
    """A single phase transition of one invocation."""

    invocation_id: str
    skill_id: str
    operation: str
    phase: LifecyclePhase
    detail: str = ""
    attempts: int = 0
    exit_code: int | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "invocation_id": self.invocation_id,
            "skill_id": self.skill_id,
            "operation": self.operation,
            "phase": self.phase.value,
            "detail": self.detail,
            "attempts": self.attempts,
            "exit_code": self.exit_code,
            "timestamp": self.timestamp.isoformat(),
        }


class LifecycleSink(ABC):
    """Append-only consumer of :class:`LifecycleEvent` records.

    The runtime only ever writes to a sink; it never reads one back.
    Implementations must tolerate concurrent calls to :meth:`write`.

    Besides ``invoked``, ``completed`` and ``failed``, sinks also receive
    ``cancelled`` as a terminal phase when an invocation is stopped by
    its caller.  :attr:`LifecyclePhase.terminal` covers all three
    terminal phases.
    """

    @abstractmethod
    def write(self, event: LifecycleEvent) -> None:
        """Record *event*.  May raise; the emitter contains failures."""


class LoggingLifecycleSink(LifecycleSink):
    """Writes each event as one log record.

    Event fields are attached to the record via ``extra`` under the
    ``lifecycle`` key so structured log handlers can pick them up.

    Args:
        logger: Target logger.  Defaults to ``skillrun.lifecycle``.
        level: Level for ``invoked``/``completed`` events.  ``failed``
            events are always logged at ``WARNING`` or above.
    """

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.INFO) -> None:
        self._logger = logger or logging.getLogger("skillrun.lifecycle")
        self._level = level

    def write(self, event: LifecycleEvent) -> None:
        level = self._level
        if event.phase is LifecyclePhase.FAILED:
            level = max(level, logging.WARNING)
        self._logger.log(
            level,
            "%s %s/%s %s%s",
            event.invocation_id,
            event.skill_id,
            event.operation,
            event.phase.value,
            f": {event.detail}" if event.detail else "",
            extra={"lifecycle": event.to_dict()},
        )


class InMemoryLifecycleSink(LifecycleSink):
    """Keeps events in a list; useful for tests and audits in-process."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: list[LifecycleEvent] = []

    def write(self, event: LifecycleEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> list[LifecycleEvent]:
        """Snapshot of recorded events in emission order."""
        with self._lock:
            return list(self._events)

    def for_invocation(self, invocation_id: str) -> list[LifecycleEvent]:
        return [e for e in self.events if e.invocation_id == invocation_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


class JsonLinesLifecycleSink(LifecycleSink):
    """Appends each event as one JSON object per line.

    The file is opened on the first write and kept open; every line is
    flushed before :meth:`write` returns.  Writes are blocking file I/O
    on the calling thread, so point it at local storage.

    Args:
        path: Audit file; parent directories are created on first write.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._fh: TextIO | None = None

    @property
    def path(self) -> Path:
        return self._path

    def write(self, event: LifecycleEvent) -> None:
        line = json.dumps(event.to_dict(), default=str)
        with self._lock:
            if self._fh is None:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                self._fh = self._path.open("a", encoding="utf-8")
            self._fh.write(line + "\n")
            self._fh.flush()

    def close(self) -> None:
        """Close the underlying file.  A later write reopens it."""
        with self._lock:
            if self._fh is not None:
                self._fh.close()
                self._fh = None


class LifecycleEmitter:
    """Fans events out to zero or more sinks.

    A sink that raises is logged and skipped; remaining sinks still
    receive the event and the invocation proceeds unaffected.
    """

    def __init__(self, sinks: Iterable[LifecycleSink] | LifecycleSink | None = None) -> None:
        if sinks is None:
            self._sinks: tuple[LifecycleSink, ...] = ()
        elif isinstance(sinks, LifecycleSink):
            self._sinks = (sinks,)
        else:
            self._sinks = tuple(sinks)
        for sink in self._sinks:
            if not isinstance(sink, LifecycleSink):
                raise TypeError(f"sink must be a LifecycleSink, got {type(sink).__name__}")

    def __repr__(self) -> str:
        return f"LifecycleEmitter({len(self._sinks)} sinks)"

    @property
    def sinks(self) -> tuple[LifecycleSink, ...]:
        return self._sinks

    def emit(self, event: LifecycleEvent) -> None:
        for sink in self._sinks:
            try:
                sink.write(event)
            except Exception:
                _logger.warning(
                    "Lifecycle sink %s failed for %s (%s)",
                    type(sink).__name__,
                    event.invocation_id,
                    event.phase.value,
                    exc_info=True,
                )

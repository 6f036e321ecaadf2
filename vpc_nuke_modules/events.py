"""
Progress events emitted while a default VPC is torn down.

Every mutation (or skipped mutation in dry-run mode) produces one
ProgressEvent. Sinks are plain callables so the CLI, the tests and any
other presentation layer can consume the same stream.
"""

import enum
import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class Outcome(enum.Enum):
    DONE = "done"
    ABSENT = "absent"
    DRY_RUN = "dry_run"
    FAILED = "failed"


@dataclass(frozen=True)
class ProgressEvent:
    region: str
    stage: str
    kind: str
    resource_id: str
    label: str
    action: str
    outcome: Outcome
    error: Optional[str] = None


EventSink = Callable[[ProgressEvent], None]


class LoggingEventSink:
    """Writes each event as a log line, in the same register as the cleaners"""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def __call__(self, event: ProgressEvent) -> None:
        if event.outcome is Outcome.DONE:
            self.log.info(f"[{event.region}] >>> {event.action} {event.kind}: {event.label}")
        elif event.outcome is Outcome.DRY_RUN:
            self.log.info(f"[{event.region}] [DRY RUN] Would {event.action} {event.kind}: {event.label}")
        elif event.outcome is Outcome.ABSENT:
            self.log.info(f"[{event.region}] {event.kind} {event.label} already gone, skipping {event.action}")
        else:
            self.log.error(f"[{event.region}] Failed to {event.action} {event.kind} {event.label}: {event.error}")


class CollectingEventSink:
    """Keeps every event in memory; safe to share between worker threads"""

    def __init__(self):
        self._lock = threading.Lock()
        self.events: List[ProgressEvent] = []

    def __call__(self, event: ProgressEvent) -> None:
        with self._lock:
            self.events.append(event)

    def for_region(self, region: str) -> List[ProgressEvent]:
        with self._lock:
            return [event for event in self.events if event.region == region]


def fan_out(*sinks: EventSink) -> EventSink:
    def emit(event: ProgressEvent) -> None:
        for sink in sinks:
            sink(event)

    return emit

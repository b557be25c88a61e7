"""Progress events emitted by volume builds, and the default logging sink."""

from __future__ import annotations

import logging
from typing import Callable, List

from .types_ import BuildEvent

logger = logging.getLogger("comicenc")

EventSink = Callable[[BuildEvent], None]

# Event kinds
CHAPTER_SCANNED = "chapter_scanned"
CHAPTER_ADDED = "chapter_added"
PAGE_ADDED = "page_added"
PAGE_TRANSCODED = "page_transcoded"
ARCHIVE_FINISHED = "archive_finished"
VOLUME_SKIPPED = "volume_skipped"
VOLUME_WRITTEN = "volume_written"


def log_event(event: BuildEvent) -> None:
    """Forward an event to the `comicenc` logger at the event's level."""
    logger.log(event.level, event.message)


class EventRecorder:
    """Sink collecting events in memory, for callers that report later."""

    def __init__(self):
        self.events: List[BuildEvent] = []

    def __call__(self, event: BuildEvent) -> None:
        self.events.append(event)

    def kinds(self) -> List[str]:
        return [e.kind for e in self.events]

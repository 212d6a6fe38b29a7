"""
Server-sent event channel for one analysis session.

Order enforced per session: either a single `cached` event, or a
non-decreasing run of `progress` events followed by exactly one terminal
`complete` or `error` event. The channel closes right after the terminal
event; anything emitted later is dropped.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Optional

from .progress import TOTAL_STEPS

logger = logging.getLogger(__name__)

PROGRESS = "progress"
CACHED = "cached"
COMPLETE = "complete"
ERROR = "error"

TERMINAL_TYPES = (CACHED, COMPLETE, ERROR)


@dataclass
class StreamEvent:
    type: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "data": self.data}


class StreamEmitter:
    """Single-producer/single-consumer event channel."""

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._emitted = 0
        self._last_step = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _put(self, event: StreamEvent) -> bool:
        if self._closed:
            logger.warning("Dropping %s event on a closed stream", event.type)
            return False
        self._queue.put_nowait(event)
        self._emitted += 1
        if event.type in TERMINAL_TYPES:
            self.close()
        return True

    def progress(self, step: int, status: str, **data: Any) -> bool:
        """Emit a progress event; the step never moves backwards."""
        step = min(max(step, self._last_step), TOTAL_STEPS)
        self._last_step = step
        return self._put(StreamEvent(PROGRESS, {"step": step, "currentStatus": status, **data}))

    def cached(self, result: Dict[str, Any]) -> bool:
        if self._emitted:
            logger.warning("Cached result must be the only event of a session")
            return False
        return self._put(StreamEvent(CACHED, {**result, "fromCache": True}))

    def complete(self, result: Dict[str, Any]) -> bool:
        return self._put(StreamEvent(COMPLETE, result))

    def error(self, code: str, message: str, description: Optional[str] = None) -> bool:
        return self._put(StreamEvent(ERROR, {
            "code": code,
            "message": message,
            "description": description or message,
        }))

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    async def events(self) -> AsyncIterator[StreamEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event

    async def stream(self) -> AsyncIterator[Dict[str, str]]:
        """Events as server-sent message dicts, one JSON payload each."""
        async for event in self.events():
            yield {"data": json.dumps(event.to_dict(), ensure_ascii=False, default=str)}

"""SSE Event Bus for live run updates.

The walker publishes node_started / node_completed / run_finished through
the run manager into this bus; clients read them from
GET /runs/{run_id}/stream.

Architecture:
  - Runs push with EventBus.push() (synchronous, called from the run task)
  - Clients subscribe via EventBus.subscribe(), an async generator of SSE text
  - Events pushed before anyone subscribes are buffered (bounded by count
    and age), so a client may connect after the run has already finished

Event Envelope:
  {
    "event": "<event_type>",
    "data": {
      "runId": "<run_id>",
      "timestamp": "<ISO 8601>",
      ...payload
    }
  }
"""

from __future__ import annotations

import asyncio
import json
import time
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

from flowengine.logging_config import get_sse_logger
from flowengine.settings import EVENT_BUFFER_MAX_AGE_SECS, EVENT_BUFFER_MAX_EVENTS

logger = get_sse_logger()

# Events that tell the SSE generator to close the connection
STOP_EVENTS = frozenset({"run_finished"})


class EventBus:
    """Active SSE queues per run plus buffering for runs nobody watches yet."""

    def __init__(
        self,
        buffer_max_events: int = EVENT_BUFFER_MAX_EVENTS,
        buffer_max_age_secs: int = EVENT_BUFFER_MAX_AGE_SECS,
    ):
        self._streams: dict[str, asyncio.Queue] = {}
        self._buffers: dict[str, dict] = {}
        self._buffer_max_events = buffer_max_events
        self._buffer_max_age_secs = buffer_max_age_secs
        self._lock = asyncio.Lock()

    def push(self, run_id: str, event_type: str, data: dict) -> None:
        """Deliver an event to the run's subscriber, or buffer it.

        Synchronous: no await points, so it needs no lock in a single
        event loop. The lock guards subscribe/cleanup.
        """
        if "timestamp" not in data:
            data = {**data, "timestamp": datetime.now(timezone.utc).isoformat()}

        event = {"event": event_type, "data": data}
        queue = self._streams.get(run_id)
        if queue:
            queue.put_nowait(event)
            logger.info(f"Event sent: {event_type} for {run_id}")
        else:
            self._buffer_event(run_id, event, event_type)

    async def subscribe(
        self,
        run_id: str,
        stop_events: Optional[frozenset] = None,
        keepalive_interval: float = 30.0,
    ) -> AsyncGenerator[str, None]:
        """Yield SSE-formatted events for a run until a stop event arrives.

        Buffered events are flushed first, then live events follow.
        """
        if stop_events is None:
            stop_events = STOP_EVENTS

        logger.info(f"Client subscribed: {run_id}")
        queue: asyncio.Queue = asyncio.Queue()

        async with self._lock:
            self._streams[run_id] = queue
            buf = self._buffers.pop(run_id, None)

        buffered = buf["events"] if buf else []
        if buffered:
            logger.info(f"Flushing {len(buffered)} buffered events for {run_id}")

        try:
            for event in buffered:
                yield _format_sse(event)
                if event.get("event") in stop_events:
                    return

            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=keepalive_interval)
                    if event is None:  # Sentinel to stop
                        break
                    yield _format_sse(event)

                    if event.get("event") in stop_events:
                        break
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
        finally:
            async with self._lock:
                self._streams.pop(run_id, None)
                self._buffers.pop(run_id, None)

    def has_subscriber(self, run_id: str) -> bool:
        return run_id in self._streams

    def buffered_events(self, run_id: str) -> list:
        buf = self._buffers.get(run_id)
        return list(buf["events"]) if buf else []

    def _buffer_event(self, run_id: str, event: dict, event_type: str) -> None:
        if run_id not in self._buffers:
            self._cleanup_stale_buffers()
            self._buffers[run_id] = {
                "events": [],
                "created_at": time.monotonic(),
            }

        buf = self._buffers[run_id]
        if len(buf["events"]) < self._buffer_max_events:
            buf["events"].append(event)
        elif event_type in STOP_EVENTS:
            # Keep the terminal event so late subscribers still see the end
            buf["events"][-1] = event
        else:
            logger.warning(
                f"Buffer full ({self._buffer_max_events}), "
                f"dropping: {event_type} for {run_id}"
            )

    def _cleanup_stale_buffers(self) -> None:
        """Remove event buffers that are too old."""
        now = time.monotonic()
        stale = [
            rid
            for rid, buf in self._buffers.items()
            if now - buf["created_at"] > self._buffer_max_age_secs
        ]
        for rid in stale:
            removed = self._buffers.pop(rid, None)
            if removed:
                logger.info(
                    f"Cleaned up stale buffer for {rid} "
                    f"({len(removed['events'])} events)"
                )


def _format_sse(event: dict) -> str:
    return f"event: {event['event']}\ndata: {json.dumps(event['data'], default=str)}\n\n"


# --- Singleton ---

_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    """Get the global EventBus singleton."""
    global _bus
    if _bus is None:
        _bus = EventBus()
    return _bus


def push_event(run_id: str, event_type: str, data: dict) -> None:
    get_event_bus().push(run_id, event_type, data)


async def subscribe_events(
    run_id: str,
    stop_events: Optional[frozenset] = None,
) -> AsyncGenerator[str, None]:
    async for event_str in get_event_bus().subscribe(run_id, stop_events=stop_events):
        yield event_str

"""
Event fan-out to sinks.

- EventEmitter: hand each finalized event to every sink; one failing sink never
  affects the others or the caller
- LogFileSink: append flat records to an events log
- BackgroundSink: run any sink on a worker thread so slow I/O stays off the frame tick
- BroadcastHub: push records to asyncio subscribers (websocket clients)
"""
from __future__ import annotations
import asyncio
import json
import logging
import queue
import threading
from datetime import datetime, timezone
from typing import Callable, List, Optional, Set, Tuple

from gestures.models import GestureEvent

logger = logging.getLogger(__name__)

Sink = Callable[[GestureEvent], None]


class EventEmitter:
    def __init__(self, sinks: Optional[List[Sink]] = None):
        self.sinks: List[Sink] = list(sinks or [])

    def add_sink(self, sink: Sink) -> None:
        self.sinks.append(sink)

    def emit(self, event: GestureEvent) -> None:
        for sink in list(self.sinks):
            try:
                sink(event)
            except Exception:
                logger.exception(f"[emitter] sink {sink!r} failed for {event.kind}")


class LogFileSink:
    """Appends `ISO-time | source | json-record` lines."""
    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def __call__(self, event: GestureEvent) -> None:
        self.write(event.to_record(), event.session_id or "-")

    def write(self, record: dict, source: str = "-") -> None:
        line = f"{datetime.now(timezone.utc).isoformat()} | {source} | {json.dumps(record)}\n"
        with self._lock:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line)


class BackgroundSink:
    """
    Wraps a sink with a bounded queue and a daemon worker thread.

    The wrapped sink may take events or flat record dicts. Calls never block:
    when the queue is full the item is dropped and logged.
    """
    _STOP = object()

    def __init__(self, sink: Sink, maxsize: int = 256, name: str = "sink"):
        self.sink = sink
        self.name = name
        self._q: queue.Queue = queue.Queue(maxsize=maxsize)
        self._thread = threading.Thread(target=self._loop, name=f"bg-{name}", daemon=True)
        self._thread.start()

    def __call__(self, item) -> None:
        try:
            self._q.put_nowait(item)
        except queue.Full:
            label = item.get("type") if isinstance(item, dict) else item.kind
            logger.warning(f"[emitter] {self.name} queue full, dropping {label}")

    def _loop(self) -> None:
        while True:
            item = self._q.get()
            try:
                if item is self._STOP:
                    return
                self.sink(item)
            except Exception:
                logger.exception(f"[emitter] background sink {self.name} failed")
            finally:
                self._q.task_done()

    def flush(self) -> None:
        """Block until everything queued so far has been delivered."""
        self._q.join()

    def close(self, timeout: float = 2.0) -> None:
        self._q.put(self._STOP)
        self._thread.join(timeout)


class BroadcastHub:
    """
    Fan-out of records to asyncio queues.

    publish() may be called from any thread; each queue is fed on its own
    loop via call_soon_threadsafe. A full queue loses its oldest record.
    """
    def __init__(self, maxsize: int = 64):
        self.maxsize = maxsize
        self._subs: Set[Tuple[asyncio.AbstractEventLoop, asyncio.Queue]] = set()
        self._lock = threading.Lock()

    def __call__(self, event: GestureEvent) -> None:
        self.publish(event.to_record())

    def subscribe(self) -> asyncio.Queue:
        """Register a queue bound to the running event loop."""
        q: asyncio.Queue = asyncio.Queue(maxsize=self.maxsize)
        with self._lock:
            self._subs.add((asyncio.get_running_loop(), q))
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        with self._lock:
            self._subs = {(lp, sq) for lp, sq in self._subs if sq is not q}

    def publish(self, record: dict) -> None:
        with self._lock:
            targets = list(self._subs)
        for loop, q in targets:
            try:
                loop.call_soon_threadsafe(_put_latest, q, record)
            except RuntimeError:
                # loop already closed
                self.unsubscribe(q)

    def __len__(self) -> int:
        return len(self._subs)


def _put_latest(q: asyncio.Queue, record: dict) -> None:
    if q.full():
        try:
            q.get_nowait()
        except asyncio.QueueEmpty:
            pass
    q.put_nowait(record)

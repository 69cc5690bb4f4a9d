import queue
import threading
import time
from typing import Callable, Dict, List

import config
from voicegate.control_events import ControlEvent, ALLOWED_EVENTS, LOSSY_EVENTS
from voicegate.logging_utils import setup_logger, log_debug, log_warning

Handler = Callable[[ControlEvent], None]

# Drop reason -> stats counter
_DROP_COUNTERS = {
    "drop_new": "dropped_new",
    "drop_oldest": "dropped_oldest",
    "shed_lossy": "shed_lossy",
}


class EventBus:
    """
    In-process event bus for VAD and transcript events.

    publish() is called from the audio loop and never blocks: handlers run on
    a background dispatcher thread. When the queue backs up past
    EVENT_BUS_LOSSY_WATERMARK, volume_change/threshold_update are shed so
    speech and lifecycle events keep their place. A full queue then follows
    EVENT_BUS_DROP_POLICY (drop_new or drop_oldest).
    """

    def __init__(self, debug: bool = False):
        self._handlers: Dict[str, List[Handler]] = {}
        self._all_handlers: List[Handler] = []
        self._maxsize = int(getattr(config, "EVENT_BUS_MAX_QUEUE", 1000))
        self._drop_policy = getattr(config, "EVENT_BUS_DROP_POLICY", "drop_new").lower()
        self._enforce_whitelist = bool(getattr(config, "EVENT_BUS_ENFORCE_WHITELIST", True))
        watermark = float(getattr(config, "EVENT_BUS_LOSSY_WATERMARK", 0.8))
        self._lossy_limit = max(1, int(self._maxsize * watermark))
        self._allowed_events = set(ALLOWED_EVENTS)
        self._queue: "queue.Queue[ControlEvent]" = queue.Queue(maxsize=self._maxsize)
        self._stats = {
            "published": 0,
            "dropped": 0,
            "dropped_oldest": 0,
            "dropped_new": 0,
            "shed_lossy": 0,
            "last_drop_event": None,
            "last_drop_reason": None,
        }
        self._lock = threading.Lock()
        self._running = False
        self._thread: threading.Thread | None = None
        self.debug = debug
        self.logger = setup_logger(__name__, debug=debug)

    def start(self):
        if self._running:
            return
        self._running = True
        self._thread = threading.Thread(target=self._dispatch_loop, name="voicegate-events", daemon=True)
        self._thread.start()
        log_debug(self.logger, "EventBus dispatcher started")

    def stop(self):
        """Stop accepting events; already queued events are still delivered."""
        self._running = False
        if self._thread:
            self._thread.join(timeout=1.0)
            self._thread = None
        log_debug(self.logger, "EventBus dispatcher stopped")

    def subscribe(self, event_name: str, handler: Handler):
        with self._lock:
            self._handlers.setdefault(event_name, []).append(handler)

    def subscribe_all(self, handler: Handler):
        with self._lock:
            self._all_handlers.append(handler)

    def unsubscribe(self, event_name: str, handler: Handler) -> bool:
        with self._lock:
            handlers = self._handlers.get(event_name, [])
            if handler in handlers:
                handlers.remove(handler)
                return True
            return False

    def publish(self, event: ControlEvent) -> bool:
        if not self._running:
            log_warning(self.logger, f"EventBus not running; dropping event: {event.name}")
            return False
        if self._enforce_whitelist and event.name not in self._allowed_events:
            log_warning(self.logger, f"EventBus unknown event: {event.name}")
            return False

        if event.name in LOSSY_EVENTS and self._queue.qsize() >= self._lossy_limit:
            # Expected under load; no warning per frame
            self._record_drop(event.name, "shed_lossy")
            return False

        try:
            self._queue.put_nowait(event)
        except queue.Full:
            if self._drop_policy != "drop_oldest" or not self._drop_oldest():
                self._record_drop(event.name, "drop_new")
                log_warning(self.logger, f"EventBus queue full; dropping event: {event.name}")
                return False
            try:
                self._queue.put_nowait(event)
            except queue.Full:
                self._record_drop(event.name, "drop_new")
                return False

        self._stats["published"] += 1
        return True

    def _drop_oldest(self) -> bool:
        try:
            dropped = self._queue.get_nowait()
        except queue.Empty:
            return False
        self._queue.task_done()
        self._record_drop(dropped.name, "drop_oldest")
        return True

    def _record_drop(self, event_name: str, reason: str):
        self._stats["dropped"] += 1
        self._stats[_DROP_COUNTERS[reason]] += 1
        self._stats["last_drop_event"] = event_name
        self._stats["last_drop_reason"] = reason

    def get_stats(self) -> dict:
        stats = dict(self._stats)
        stats["queued"] = self._queue.qsize()
        return stats

    def wait_idle(self, timeout: float = 1.0) -> bool:
        """Block until every queued event has been handled. Returns False on timeout."""
        deadline = time.monotonic() + timeout
        while self._queue.unfinished_tasks:
            if time.monotonic() >= deadline:
                return False
            time.sleep(0.005)
        return True

    def _dispatch_loop(self):
        while self._running or not self._queue.empty():
            try:
                event = self._queue.get(timeout=0.2)
            except queue.Empty:
                continue

            with self._lock:
                handlers = list(self._handlers.get(event.name, []))
                handlers.extend(self._all_handlers)

            if self.debug and event.name not in LOSSY_EVENTS:
                log_debug(self.logger, f"Dispatching event: {event.name} ({len(handlers)} handlers)")

            for handler in handlers:
                try:
                    handler(event)
                except Exception as e:
                    log_warning(self.logger, f"Event handler error for {event.name}: {e}")

            self._queue.task_done()

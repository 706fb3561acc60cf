"""Reader and consumer threads moving AMI events into the call state store."""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable

from telephony.ami_codec import AmiMessage
from telephony.ami_transport import AmiTransport
from telephony.call_state import CallStateStore
from telephony.errors import AmiConnectionLost

LOGGER = logging.getLogger(__name__)


class EventQueue:
    """Bounded FIFO hand-off; a full queue drops its oldest entry."""

    def __init__(self, maxsize: int = 10000) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be positive")
        self._items: deque[AmiMessage] = deque()
        self._maxsize = maxsize
        self._cond = threading.Condition()
        self.dropped = 0

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)

    def put(self, message: AmiMessage) -> None:
        with self._cond:
            if len(self._items) >= self._maxsize:
                stale = self._items.popleft()
                self.dropped += 1
                LOGGER.warning(
                    "Event queue full (%d); dropped oldest %s event (%d dropped so far)",
                    self._maxsize,
                    stale.event or "unnamed",
                    self.dropped,
                )
            self._items.append(message)
            self._cond.notify()

    def get(self, timeout: float | None = None) -> AmiMessage | None:
        """Pop the oldest message, or None if nothing arrives within ``timeout``."""

        with self._cond:
            if not self._items:
                self._cond.wait(timeout)
            if not self._items:
                return None
            return self._items.popleft()


class EventIngestionLoop:
    """Continuously reads AMI messages on a dedicated thread.

    Responses are offered to ``route_response`` first (ActionID correlation);
    everything it does not claim is queued in arrival order. A transport
    failure ends the loop and clears ``running``; there is no reconnect.
    """

    def __init__(
        self,
        transport: AmiTransport,
        queue: EventQueue,
        running: threading.Event,
        *,
        route_response: Callable[[AmiMessage], bool] | None = None,
        on_stop: Callable[[Exception], None] | None = None,
    ) -> None:
        self._transport = transport
        self._queue = queue
        self._running = running
        self._route_response = route_response
        self._on_stop = on_stop
        self._thread: threading.Thread | None = None
        self.messages_read = 0

    @property
    def alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.alive:
            return
        self._thread = threading.Thread(target=self.run, name="ami-ingestion", daemon=True)
        self._thread.start()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def run(self) -> None:
        error: Exception = AmiConnectionLost("AMI ingestion stopped")
        try:
            while self._running.is_set():
                message = self._transport.read_message()
                self.messages_read += 1
                if message.is_response:
                    if self._route_response is not None and self._route_response(message):
                        continue
                    LOGGER.debug("Unclaimed AMI response: %s", dict(message))
                    continue
                self._queue.put(message)
        except AmiConnectionLost as exc:
            error = exc
            if self._running.is_set():
                LOGGER.error("AMI connection lost: %s", exc.detail)
        except Exception as exc:
            error = exc
            LOGGER.exception("AMI ingestion loop crashed")
        finally:
            self._running.clear()
            if self._on_stop is not None:
                self._on_stop(error)


class EventConsumer:
    """Applies queued events to the store in order while ``running`` is set."""

    poll_interval = 0.25

    def __init__(self, queue: EventQueue, store: CallStateStore, running: threading.Event) -> None:
        self._queue = queue
        self._store = store
        self._running = running
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        self._thread = threading.Thread(target=self.run, name="ami-consumer", daemon=True)
        self._thread.start()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def drain(self) -> int:
        """Apply everything currently queued without blocking."""

        applied = 0
        while True:
            message = self._queue.get(timeout=0)
            if message is None:
                return applied
            self._store.apply_event(message)
            applied += 1

    def run(self) -> None:
        while self._running.is_set():
            message = self._queue.get(timeout=self.poll_interval)
            if message is not None:
                self._store.apply_event(message)

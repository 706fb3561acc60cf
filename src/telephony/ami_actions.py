"""AMI commands and ActionID-based response correlation.

Events and command responses share one connection, so a response is never
taken positionally. Each command carries a fresh ``ActionID``; the ingestion
thread hands every ``Response`` message to :meth:`ActionClient.resolve`, which
completes the matching :class:`PendingAction`. Everything else stays on the
event path.
"""

from __future__ import annotations

import itertools
import logging
import threading
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field

from telephony.ami_codec import AmiMessage
from telephony.ami_transport import AmiTransport
from telephony.errors import ActionTimeoutError, AmiConnectionLost, SupervisorNotConfiguredError

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ActionResult:
    action: str
    action_id: str
    success: bool
    message: str = ""
    fields: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_response(cls, action: str, action_id: str, response: AmiMessage) -> ActionResult:
        return cls(
            action=action,
            action_id=action_id,
            success=response.response.lower() == "success",
            message=response.get("Message", ""),
            fields=dict(response),
        )


@dataclass(frozen=True, slots=True)
class OriginateTarget:
    """Where supervisory monitor legs are originated."""

    endpoint: str | None
    context: str = "supervisor-monitor"
    prefix: str = "*55"
    timeout_ms: int = 30000


class PendingAction:
    """Completion signal for one in-flight command."""

    def __init__(self, action: str, action_id: str) -> None:
        self.action = action
        self.action_id = action_id
        self.response: AmiMessage | None = None
        self.error: Exception | None = None
        self._done = threading.Event()

    def wait(self, timeout: float | None) -> AmiMessage:
        if not self._done.wait(timeout):
            raise ActionTimeoutError(f"{self.action}: no response in {timeout:.1f} sec")
        if self.error is not None:
            raise self.error
        if self.response is None:
            raise AmiConnectionLost(f"{self.action}: completed without a response")
        return self.response

    def complete(self, response: AmiMessage) -> None:
        self.response = response
        self._done.set()

    def fail(self, error: Exception) -> None:
        self.error = error
        self._done.set()


class ActionClient:
    def __init__(
        self,
        transport: AmiTransport,
        *,
        timeout: float = 5.0,
        originate: OriginateTarget | None = None,
    ) -> None:
        self._transport = transport
        self._timeout = timeout
        self._originate = originate or OriginateTarget(endpoint=None)
        self._pending: dict[str, PendingAction] = {}
        self._pending_lock = threading.Lock()
        self._prefix = uuid.uuid4().hex[:8]
        self._counter = itertools.count(1)

    @property
    def monitor_enabled(self) -> bool:
        return bool(self._originate.endpoint)

    def next_action_id(self) -> str:
        return f"{self._prefix}-{next(self._counter)}"

    # --- correlation ---

    def resolve(self, message: AmiMessage) -> bool:
        """Complete the pending command this response answers, if any."""

        action_id = message.action_id
        if not action_id:
            return False
        with self._pending_lock:
            pending = self._pending.pop(action_id, None)
        if pending is None:
            return False
        pending.complete(message)
        return True

    def fail_all(self, error: Exception) -> None:
        with self._pending_lock:
            pending = list(self._pending.values())
            self._pending.clear()
        for item in pending:
            item.fail(error)

    def pending_count(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    # --- sending ---

    def send(self, action: str, fields: Iterable[tuple[str, str]] = ()) -> str:
        """Send without waiting for the response; returns the ActionID."""

        action_id = self.next_action_id()
        self._transport.send([("Action", action), ("ActionID", action_id), *fields])
        return action_id

    def request(
        self,
        action: str,
        fields: Iterable[tuple[str, str]] = (),
        *,
        timeout: float | None = None,
    ) -> ActionResult:
        """Send and wait for the correlated response."""

        action_id = self.next_action_id()
        pending = PendingAction(action, action_id)
        with self._pending_lock:
            self._pending[action_id] = pending
        try:
            self._transport.send([("Action", action), ("ActionID", action_id), *fields])
            response = pending.wait(self._timeout if timeout is None else timeout)
        finally:
            with self._pending_lock:
                self._pending.pop(action_id, None)

        result = ActionResult.from_response(action, action_id, response)
        if result.success:
            LOGGER.info("%s succeeded (%s)", action, action_id)
        else:
            LOGGER.warning("%s failed (%s): %s", action, action_id, result.message or "no message")
        return result

    # --- operations ---

    def hangup(self, channel: str) -> ActionResult:
        return self.request("Hangup", [("Channel", channel)])

    def kick(self, bridge_id: str, channel: str) -> ActionResult:
        return self.request("BridgeKick", [("BridgeUniqueid", bridge_id), ("Channel", channel)])

    def destroy_bridge(self, bridge_id: str) -> ActionResult:
        return self.request("BridgeDestroy", [("BridgeUniqueid", bridge_id)])

    def resync(self) -> ActionResult:
        """Ask for a CoreShowChannel event per live channel."""

        return self.request("CoreShowChannels")

    def originate_monitor(self, target_channel: str) -> ActionResult:
        """Call the supervisor endpoint and drop it into ChanSpy on ``target_channel``."""

        target = self._originate
        if not target.endpoint:
            raise SupervisorNotConfiguredError()
        return self.request(
            "Originate",
            [
                ("Channel", target.endpoint),
                ("Context", target.context),
                ("Exten", f"{target.prefix}{target_channel}"),
                ("Priority", "1"),
                ("Timeout", str(target.timeout_ms)),
                ("CallerID", f"Monitor <{target.prefix}>"),
                ("Async", "true"),
            ],
        )

    def hangup_all(self, channels: Iterable[str]) -> list[str]:
        """Fire a Hangup for every channel; returns the ActionIDs sent."""

        sent = [self.send("Hangup", [("Channel", channel)]) for channel in channels]
        LOGGER.info("Sent Hangup for %d channels", len(sent))
        return sent

    def logoff(self) -> None:
        self._transport.logoff()

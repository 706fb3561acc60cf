"""Session orchestration for the AMI call monitor.

A :class:`CallMonitor` owns one AMI session end to end: connect and log in,
start the ingestion and consumer threads, request an initial channel snapshot,
answer queries from the state store and forward control commands.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field

from config.settings import Settings
from telephony.ami_actions import ActionClient, ActionResult, OriginateTarget
from telephony.ami_transport import AmiTransport
from telephony.call_state import BridgeSnapshot, CallStateStore, Channel
from telephony.classifier import ClassificationRules, Direction, classify_bridge, classify_channel
from telephony.errors import AmiAuthenticationError, AmiConnectionLost, MonitorError, MonitorNotRunningError
from telephony.ingestion import EventConsumer, EventIngestionLoop, EventQueue

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MonitorConfig:
    host: str = "127.0.0.1"
    port: int = 5038
    username: str = ""
    secret: str = ""
    action_timeout: float = 5.0
    queue_size: int = 10000
    originate: OriginateTarget = field(default_factory=lambda: OriginateTarget(endpoint=None))
    rules: ClassificationRules = field(default_factory=ClassificationRules)

    @classmethod
    def from_settings(cls, settings: Settings) -> MonitorConfig:
        return cls(
            host=settings.ami_host,
            port=settings.ami_port,
            username=settings.ami_username or "",
            secret=settings.ami_secret or "",
            action_timeout=settings.action_timeout_seconds,
            queue_size=settings.event_queue_size,
            originate=OriginateTarget(
                endpoint=settings.supervisor_endpoint,
                context=settings.supervisor_context,
                prefix=settings.supervisor_prefix,
                timeout_ms=settings.originate_timeout_ms,
            ),
            rules=ClassificationRules.from_lists(
                settings.inbound_contexts,
                settings.outbound_prefixes,
                settings.direction_variable,
            ),
        )


@dataclass(frozen=True, slots=True)
class MonitorStatus:
    running: bool
    connected: bool
    channels: int
    bridges: int
    events_applied: int
    events_dropped: int
    queued: int


class CallMonitor:
    def __init__(
        self,
        config: MonitorConfig,
        *,
        transport_factory: Callable[[str, int], AmiTransport] = AmiTransport,
        store: CallStateStore | None = None,
    ) -> None:
        self._config = config
        self._transport_factory = transport_factory
        self._rules = config.rules
        self._running = threading.Event()
        self.store = store or CallStateStore()
        self.queue = EventQueue(config.queue_size)
        self._transport: AmiTransport | None = None
        self._actions: ActionClient | None = None
        self._ingestion: EventIngestionLoop | None = None
        self._consumer: EventConsumer | None = None

    # --- lifecycle ---

    @property
    def running(self) -> bool:
        return self._running.is_set()

    def start(self) -> None:
        """Connect, log in and start tracking; raises on connect or login failure."""

        if self.running:
            return

        transport = self._transport_factory(self._config.host, self._config.port)
        try:
            transport.connect()
            if not transport.login(self._config.username, self._config.secret):
                raise AmiAuthenticationError(f"AMI login failed for user {self._config.username!r}")
        except MonitorError:
            transport.close()
            raise

        self._transport = transport
        self._actions = ActionClient(
            transport,
            timeout=self._config.action_timeout,
            originate=self._config.originate,
        )
        self._running.set()
        self._ingestion = EventIngestionLoop(
            transport,
            self.queue,
            self._running,
            route_response=self._actions.resolve,
            on_stop=self._actions.fail_all,
        )
        self._consumer = EventConsumer(self.queue, self.store, self._running)
        self._ingestion.start()
        self._consumer.start()
        LOGGER.info("Call monitor started against %s", transport.address)

        # CoreShowChannels answers with one CoreShowChannel event per live channel.
        self._actions.send("CoreShowChannels")

    def stop(self, timeout: float = 2.0) -> None:
        was_running = self._running.is_set()
        self._running.clear()
        if self._transport is not None:
            if was_running:
                try:
                    self._transport.logoff()
                except AmiConnectionLost:
                    LOGGER.debug("Connection already gone at logoff")
            self._transport.close()
        if self._ingestion is not None:
            self._ingestion.join(timeout)
        if self._consumer is not None:
            self._consumer.join(timeout)
        self.store.clear()
        LOGGER.info("Call monitor stopped")

    def __enter__(self) -> CallMonitor:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    # --- rules ---

    @property
    def rules(self) -> ClassificationRules:
        return self._rules

    def set_rules(self, rules: ClassificationRules) -> None:
        self._rules = rules
        LOGGER.info(
            "Classification rules updated: inbound=%s outbound=%s",
            ",".join(rules.inbound_contexts),
            ",".join(rules.outbound_prefixes),
        )

    # --- queries ---

    def bridges(self) -> list[BridgeSnapshot]:
        return self.store.snapshot_bridges()

    def bridge(self, bridge_id: str) -> BridgeSnapshot | None:
        return self.store.snapshot_bridge(bridge_id)

    def channel(self, name: str) -> Channel | None:
        return self.store.snapshot_channel(name)

    def classify_bridge(self, bridge: BridgeSnapshot) -> Direction:
        return classify_bridge(bridge.channels, self._rules)

    def classify_channel(self, channel: Channel) -> Direction:
        return classify_channel(channel, self._rules)

    def status(self) -> MonitorStatus:
        channels, bridges = self.store.counts()
        return MonitorStatus(
            running=self.running,
            connected=self._transport is not None and self._transport.connected,
            channels=channels,
            bridges=bridges,
            events_applied=self.store.events_applied,
            events_dropped=self.queue.dropped,
            queued=len(self.queue),
        )

    # --- commands ---

    @property
    def monitor_enabled(self) -> bool:
        return bool(self._config.originate.endpoint)

    def _require_actions(self) -> ActionClient:
        if self._actions is None or not self.running:
            raise MonitorNotRunningError()
        return self._actions

    def hangup(self, channel: str) -> ActionResult:
        return self._require_actions().hangup(channel)

    def kick(self, bridge_id: str, channel: str) -> ActionResult:
        return self._require_actions().kick(bridge_id, channel)

    def destroy_bridge(self, bridge_id: str) -> ActionResult:
        return self._require_actions().destroy_bridge(bridge_id)

    def resync(self) -> ActionResult:
        return self._require_actions().resync()

    def originate_monitor(self, target_channel: str) -> ActionResult:
        return self._require_actions().originate_monitor(target_channel)

    def hangup_all(self) -> list[str]:
        actions = self._require_actions()
        # Names are copied out first; no command is sent while holding the store lock.
        return actions.hangup_all(self.store.channel_names())

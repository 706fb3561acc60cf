"""In-memory model of active channels and the bridges joining them.

``CallStateStore`` is the only mutable structure shared between the AMI
ingestion path and the query/command path. Every read and write takes the same
lock, and callers only ever receive copies.

Invariants kept by every handler:

- a channel's ``bridge_id``, when set, names an observable bridge listing that
  channel as a member, and every member of a bridge points back at it;
- a bridge without members is never returned by a query, and a bridge emptied
  by a leave or a hangup is deleted;
- an update never blanks a known field because the event did not carry it.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace

from telephony.ami_codec import AmiMessage
from telephony.ami_events import EventKind

LOGGER = logging.getLogger(__name__)

# Asterisk reports unset caller id fields with this placeholder.
UNKNOWN_PLACEHOLDER = "<unknown>"

# Channel attribute -> AMI field names that may carry it, in order of preference.
CHANNEL_FIELDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("unique_id", ("Uniqueid", "UniqueID")),
    ("linked_id", ("Linkedid", "LinkedID")),
    ("caller_num", ("CallerIDNum",)),
    ("caller_name", ("CallerIDName",)),
    ("connected_num", ("ConnectedLineNum",)),
    ("connected_name", ("ConnectedLineName",)),
    ("context", ("Context",)),
    ("exten", ("Exten", "Extension")),
    ("state", ("ChannelStateDesc",)),
)


def parse_channel_name(name: str) -> tuple[str, str]:
    """Split ``PJSIP/1001-0000002a`` into ``("PJSIP", "1001")``."""

    technology, sep, resource = name.partition("/")
    if not sep:
        return "", ""
    resource = resource.split(";", 1)[0]
    peer, dash, _suffix = resource.rpartition("-")
    if not dash:
        peer = resource
    return technology, peer


def parse_duration(value: str) -> int | None:
    """Parse ``Duration`` as either plain seconds or ``HH:MM:SS``."""

    value = value.strip()
    if not value:
        return None
    try:
        if ":" in value:
            seconds = 0
            for part in value.split(":"):
                seconds = seconds * 60 + int(part)
            return seconds
        return int(value)
    except ValueError:
        return None


def _present(value: str | None) -> bool:
    return bool(value) and value != UNKNOWN_PLACEHOLDER


@dataclass(slots=True)
class Channel:
    name: str
    unique_id: str = ""
    linked_id: str = ""
    caller_num: str = ""
    caller_name: str = ""
    connected_num: str = ""
    connected_name: str = ""
    context: str = ""
    exten: str = ""
    state: str = ""
    bridge_id: str | None = None
    duration_seconds: int = 0
    variables: dict[str, str] = field(default_factory=dict)
    created_at: float = 0.0
    last_update: float = 0.0

    @property
    def technology(self) -> str:
        return parse_channel_name(self.name)[0]

    @property
    def peer(self) -> str:
        return parse_channel_name(self.name)[1]

    def age(self, now: float) -> int:
        """Leg duration: the switch-reported value or time since first sighting."""

        observed = int(now - self.created_at) if self.created_at else 0
        return max(self.duration_seconds, observed)

    def copy(self) -> Channel:
        return replace(self, variables=dict(self.variables))


@dataclass(slots=True)
class Bridge:
    bridge_id: str
    bridge_type: str = ""
    technology: str = ""
    members: set[str] = field(default_factory=set)
    created_at: float | None = None


@dataclass(frozen=True, slots=True)
class BridgeSnapshot:
    """Point-in-time copy of a bridge together with its member channels."""

    bridge_id: str
    bridge_type: str
    technology: str
    created_at: float | None
    channels: tuple[Channel, ...]

    @property
    def member_names(self) -> list[str]:
        return [channel.name for channel in self.channels]

    def max_leg_duration(self, now: float) -> int:
        return max((channel.age(now) for channel in self.channels), default=0)


class CallStateStore:
    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._lock = threading.RLock()
        self._clock = clock
        self._channels: dict[str, Channel] = {}
        self._bridges: dict[str, Bridge] = {}
        self._handlers: dict[EventKind, Callable[[AmiMessage], None]] = {
            EventKind.NEW_CHANNEL: self._on_channel_update,
            EventKind.CORE_SHOW_CHANNEL: self._on_core_show_channel,
            EventKind.NEW_STATE: self._on_channel_update,
            EventKind.NEW_CALLERID: self._on_channel_update,
            EventKind.NEW_CONNECTED_LINE: self._on_channel_update,
            EventKind.NEW_EXTEN: self._on_channel_update,
            EventKind.VAR_SET: self._on_var_set,
            EventKind.RENAME: self._on_rename,
            EventKind.HANGUP: self._on_hangup,
            EventKind.BRIDGE_CREATE: self._on_bridge_create,
            EventKind.BRIDGE_DESTROY: self._on_bridge_destroy,
            EventKind.BRIDGE_ENTER: self._on_bridge_enter,
            EventKind.BRIDGE_LEAVE: self._on_bridge_leave,
            EventKind.OTHER: self._ignore,
        }
        self.events_applied = 0

    # --- mutation ---

    def apply_event(self, message: AmiMessage) -> EventKind:
        kind = EventKind.of(message)
        with self._lock:
            self._handlers[kind](message)
            self.events_applied += 1
        return kind

    def remove_channel(self, name: str) -> bool:
        with self._lock:
            if name not in self._channels:
                return False
            self._discard_channel(name)
            return True

    def clear(self) -> None:
        with self._lock:
            self._channels.clear()
            self._bridges.clear()

    # --- queries ---

    def snapshot_channel(self, name: str) -> Channel | None:
        with self._lock:
            channel = self._channels.get(name)
            return channel.copy() if channel is not None else None

    def snapshot_channels(self) -> list[Channel]:
        with self._lock:
            return [self._channels[name].copy() for name in sorted(self._channels)]

    def channel_names(self) -> list[str]:
        with self._lock:
            return sorted(self._channels)

    def snapshot_bridge(self, bridge_id: str) -> BridgeSnapshot | None:
        with self._lock:
            bridge = self._bridges.get(bridge_id)
            if bridge is None or not bridge.members:
                return None
            return self._snapshot(bridge)

    def snapshot_bridges(self) -> list[BridgeSnapshot]:
        with self._lock:
            return [
                self._snapshot(self._bridges[bridge_id])
                for bridge_id in sorted(self._bridges)
                if self._bridges[bridge_id].members
            ]

    def counts(self) -> tuple[int, int]:
        """Return ``(channels, observable bridges)``."""

        with self._lock:
            bridges = sum(1 for bridge in self._bridges.values() if bridge.members)
            return len(self._channels), bridges

    def _snapshot(self, bridge: Bridge) -> BridgeSnapshot:
        channels = tuple(
            self._channels[name].copy() for name in sorted(bridge.members) if name in self._channels
        )
        return BridgeSnapshot(
            bridge_id=bridge.bridge_id,
            bridge_type=bridge.bridge_type,
            technology=bridge.technology,
            created_at=bridge.created_at,
            channels=channels,
        )

    # --- event handlers (called with the lock held) ---

    def _ignore(self, message: AmiMessage) -> None:
        return None

    def _on_channel_update(self, message: AmiMessage) -> None:
        self._merge_channel(message)

    def _on_core_show_channel(self, message: AmiMessage) -> None:
        channel = self._merge_channel(message)
        if channel is None:
            return
        duration = parse_duration(message.get("Duration", ""))
        if duration is not None:
            channel.duration_seconds = duration
        bridge_id = message.value("BridgeId", "BridgeUniqueid")
        if bridge_id:
            self._join(channel, bridge_id)

    def _on_var_set(self, message: AmiMessage) -> None:
        channel = self._merge_channel(message)
        variable = message.get("Variable", "").lstrip("_")
        if channel is None or not variable:
            return
        value = message.get("Value", "")
        if value:
            channel.variables[variable] = value
        else:
            channel.variables.pop(variable, None)

    def _on_rename(self, message: AmiMessage) -> None:
        old_name = message.get("Channel", "")
        new_name = message.get("Newname", "")
        if not old_name or not new_name or old_name == new_name:
            self._merge_channel(message)
            return

        channel = self._channels.pop(old_name, None)
        if channel is None:
            LOGGER.debug("Rename of unseen channel %s -> %s", old_name, new_name)
            self._merge_channel(message, name=new_name)
            return

        if new_name in self._channels:
            self._discard_channel(new_name)
        channel.name = new_name
        self._channels[new_name] = channel
        for bridge in self._bridges.values():
            if old_name in bridge.members:
                bridge.members.discard(old_name)
                bridge.members.add(new_name)
        self._merge_channel(message, name=new_name)

    def _on_hangup(self, message: AmiMessage) -> None:
        name = message.get("Channel", "")
        if name:
            self._discard_channel(name)

    def _on_bridge_create(self, message: AmiMessage) -> None:
        bridge_id = message.value("BridgeUniqueid", "BridgeId")
        if bridge_id:
            self._update_bridge_metadata(self._bridges.setdefault(bridge_id, Bridge(bridge_id)), message)

    def _on_bridge_destroy(self, message: AmiMessage) -> None:
        bridge_id = message.value("BridgeUniqueid", "BridgeId")
        bridge = self._bridges.pop(bridge_id, None)
        if bridge is None:
            return
        for name in bridge.members:
            channel = self._channels.get(name)
            if channel is not None and channel.bridge_id == bridge_id:
                channel.bridge_id = None

    def _on_bridge_enter(self, message: AmiMessage) -> None:
        bridge_id = message.value("BridgeUniqueid", "BridgeId")
        channel = self._merge_channel(message)
        if not bridge_id or channel is None:
            return
        bridge = self._join(channel, bridge_id)
        self._update_bridge_metadata(bridge, message)

    def _on_bridge_leave(self, message: AmiMessage) -> None:
        bridge_id = message.value("BridgeUniqueid", "BridgeId")
        channel = self._merge_channel(message)
        if not bridge_id or channel is None:
            return
        self._drop_member(bridge_id, channel.name)

    # --- helpers (called with the lock held) ---

    def _merge_channel(self, message: AmiMessage, *, name: str | None = None) -> Channel | None:
        name = name or message.get("Channel", "")
        if not name:
            return None

        now = self._clock()
        channel = self._channels.get(name)
        if channel is None:
            channel = Channel(name=name, created_at=now)
            self._channels[name] = channel

        for attribute, field_names in CHANNEL_FIELDS:
            for field_name in field_names:
                value = message.get(field_name)
                if _present(value):
                    setattr(channel, attribute, value)
                    break
        channel.last_update = now
        return channel

    def _join(self, channel: Channel, bridge_id: str) -> Bridge:
        if channel.bridge_id and channel.bridge_id != bridge_id:
            self._drop_member(channel.bridge_id, channel.name)

        bridge = self._bridges.setdefault(bridge_id, Bridge(bridge_id))
        if not bridge.members:
            bridge.created_at = self._clock()
        bridge.members.add(channel.name)
        channel.bridge_id = bridge_id
        return bridge

    def _drop_member(self, bridge_id: str, name: str) -> None:
        bridge = self._bridges.get(bridge_id)
        if bridge is not None:
            bridge.members.discard(name)
            if not bridge.members:
                del self._bridges[bridge_id]
        channel = self._channels.get(name)
        if channel is not None and channel.bridge_id == bridge_id:
            channel.bridge_id = None

    def _discard_channel(self, name: str) -> None:
        channel = self._channels.pop(name, None)
        if channel is not None and channel.bridge_id:
            self._drop_member(channel.bridge_id, name)

    @staticmethod
    def _update_bridge_metadata(bridge: Bridge, message: AmiMessage) -> None:
        bridge_type = message.get("BridgeType", "")
        technology = message.get("BridgeTechnology", "")
        if bridge_type:
            bridge.bridge_type = bridge_type
        if technology:
            bridge.technology = technology

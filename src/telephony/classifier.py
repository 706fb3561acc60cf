"""Traffic direction heuristics for channels and bridges."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from telephony.call_state import Channel


class Direction(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"
    INTERNAL = "internal"
    UNKNOWN = "unknown"
    MIXED = "mixed"


CHANNEL_DIRECTIONS = frozenset({Direction.INBOUND, Direction.OUTBOUND, Direction.INTERNAL})


@dataclass(frozen=True, slots=True)
class ClassificationRules:
    inbound_contexts: tuple[str, ...] = ("from-external", "from-trunk", "inbound")
    outbound_prefixes: tuple[str, ...] = ("PJSIP/outbound", "PJSIP/mytrunk", "PJSIP/siptrunk")
    direction_variable: str = "CALL_DIRECTION"

    @classmethod
    def from_lists(
        cls,
        inbound_contexts: Sequence[str],
        outbound_prefixes: Sequence[str],
        direction_variable: str = "CALL_DIRECTION",
    ) -> ClassificationRules:
        return cls(
            inbound_contexts=tuple(c.strip() for c in inbound_contexts if c.strip()),
            outbound_prefixes=tuple(p.strip() for p in outbound_prefixes if p.strip()),
            direction_variable=direction_variable,
        )

    def is_inbound_context(self, context: str) -> bool:
        wanted = context.strip().lower()
        return bool(wanted) and any(wanted == c.lower() for c in self.inbound_contexts)

    def has_outbound_prefix(self, channel_name: str) -> bool:
        return bool(channel_name) and any(channel_name.startswith(p) for p in self.outbound_prefixes)


def direction_hint(channel: Channel, rules: ClassificationRules) -> Direction | None:
    raw = channel.variables.get(rules.direction_variable, "").strip().lower()
    for direction in CHANNEL_DIRECTIONS:
        if raw == direction.value:
            return direction
    return None


def classify_channel(channel: Channel, rules: ClassificationRules) -> Direction:
    """Label one channel; never returns ``Direction.MIXED``."""

    hint = direction_hint(channel, rules)
    if hint is not None:
        return hint
    if rules.is_inbound_context(channel.context):
        return Direction.INBOUND
    if rules.has_outbound_prefix(channel.name):
        return Direction.OUTBOUND
    if channel.peer.isdigit():
        return Direction.INTERNAL
    return Direction.UNKNOWN


def classify_bridge(channels: Iterable[Channel], rules: ClassificationRules) -> Direction:
    labels = {classify_channel(channel, rules) for channel in channels}
    if Direction.INBOUND in labels and Direction.OUTBOUND in labels:
        return Direction.MIXED
    if Direction.INBOUND in labels:
        return Direction.INBOUND
    if Direction.OUTBOUND in labels:
        return Direction.OUTBOUND
    if len(labels) == 1:
        return labels.pop()
    return Direction.UNKNOWN

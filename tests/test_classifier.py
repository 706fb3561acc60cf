from __future__ import annotations

import pytest

from telephony.call_state import Channel
from telephony.classifier import (
    ClassificationRules,
    Direction,
    classify_bridge,
    classify_channel,
)

RULES = ClassificationRules()


def test_scenario_trunk_plus_extension_is_inbound() -> None:
    members = [
        Channel(name="PJSIP/trunk-001", context="from-external"),
        Channel(name="PJSIP/1001-002", context="internal"),
    ]

    assert classify_channel(members[0], RULES) is Direction.INBOUND
    assert classify_channel(members[1], RULES) is Direction.INTERNAL
    assert classify_bridge(members, RULES) is Direction.INBOUND


def test_context_match_is_case_insensitive() -> None:
    assert classify_channel(Channel(name="PJSIP/x-1", context="FROM-Trunk"), RULES) is Direction.INBOUND


def test_outbound_prefix_match() -> None:
    channel = Channel(name="PJSIP/mytrunk-00000009", context="from-internal")

    assert classify_channel(channel, RULES) is Direction.OUTBOUND


def test_direction_hint_wins_over_everything() -> None:
    channel = Channel(
        name="PJSIP/mytrunk-00000009",
        context="from-external",
        variables={"CALL_DIRECTION": " Internal "},
    )

    assert classify_channel(channel, RULES) is Direction.INTERNAL


def test_invalid_hint_is_ignored() -> None:
    channel = Channel(name="PJSIP/1001-01", variables={"CALL_DIRECTION": "sideways"})

    assert classify_channel(channel, RULES) is Direction.INTERNAL


def test_custom_rules_change_only_classification() -> None:
    rules = ClassificationRules.from_lists(["ext-in", " "], ["SIP/carrier"], "DIR")
    channel = Channel(name="SIP/carrier-01", context="from-external")

    assert rules.inbound_contexts == ("ext-in",)
    assert classify_channel(channel, rules) is Direction.OUTBOUND
    assert channel.context == "from-external"


@pytest.mark.parametrize(
    "channel",
    [
        Channel(name=""),
        Channel(name="", context="", variables={}),
        Channel(name="garbage"),
        Channel(name="PJSIP/alice-0001"),
    ],
)
def test_classification_is_total_and_deterministic(channel: Channel) -> None:
    first = classify_channel(channel, RULES)

    assert first in {Direction.INBOUND, Direction.OUTBOUND, Direction.INTERNAL, Direction.UNKNOWN}
    assert all(classify_channel(channel, RULES) is first for _ in range(5))


def test_empty_fields_are_unknown() -> None:
    assert classify_channel(Channel(name=""), RULES) is Direction.UNKNOWN


@pytest.mark.parametrize(
    ("members", "expected"),
    [
        (
            [Channel(name="PJSIP/a-1", context="from-external"), Channel(name="PJSIP/outbound-2")],
            Direction.MIXED,
        ),
        ([Channel(name="PJSIP/siptrunk-1"), Channel(name="PJSIP/1001-2")], Direction.OUTBOUND),
        ([Channel(name="PJSIP/1001-1"), Channel(name="PJSIP/1002-2")], Direction.INTERNAL),
        ([Channel(name="PJSIP/1001-1"), Channel(name="PJSIP/alice-2")], Direction.UNKNOWN),
        ([], Direction.UNKNOWN),
    ],
)
def test_bridge_aggregate(members: list[Channel], expected: Direction) -> None:
    assert classify_bridge(members, RULES) is expected

"""FastAPI routes exposing call state queries and AMI control commands."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from fastapi import APIRouter, Depends, HTTPException, Path

from api.dependencies import get_monitor
from api.schemas import (
    IDENTIFIER_PATTERN,
    ActionResponse,
    BridgeDetailResponse,
    BridgeSummaryResponse,
    ChannelCommand,
    ChannelResponse,
    HangupAllResponse,
    RulesPayload,
    StatusResponse,
)
from telephony.ami_actions import ActionResult
from telephony.call_monitor import CallMonitor
from telephony.call_state import BridgeSnapshot, Channel
from telephony.classifier import ClassificationRules
from telephony.errors import MonitorError

LOGGER = logging.getLogger(__name__)

router = APIRouter()

T = TypeVar("T")


def _guarded(call: Callable[[], T]) -> T:
    try:
        return call()
    except MonitorError as exc:
        LOGGER.warning("Monitor command failed: %s", exc.detail)
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc


def _channel_response(monitor: CallMonitor, channel: Channel, now: float) -> ChannelResponse:
    return ChannelResponse(
        name=channel.name,
        technology=channel.technology,
        peer=channel.peer,
        unique_id=channel.unique_id,
        linked_id=channel.linked_id,
        caller_num=channel.caller_num,
        caller_name=channel.caller_name,
        connected_num=channel.connected_num,
        connected_name=channel.connected_name,
        context=channel.context,
        exten=channel.exten,
        state=channel.state,
        bridge_id=channel.bridge_id,
        duration_seconds=channel.age(now),
        direction=monitor.classify_channel(channel).value,
    )


def _bridge_summary(monitor: CallMonitor, bridge: BridgeSnapshot, now: float) -> BridgeSummaryResponse:
    return BridgeSummaryResponse(
        bridge_id=bridge.bridge_id,
        bridge_type=bridge.bridge_type,
        direction=monitor.classify_bridge(bridge).value,
        member_count=len(bridge.channels),
        max_leg_duration=bridge.max_leg_duration(now),
    )


def _action_response(result: ActionResult) -> ActionResponse:
    return ActionResponse(
        action=result.action,
        action_id=result.action_id,
        success=result.success,
        message=result.message,
    )


@router.get("/status", response_model=StatusResponse)
def get_status(monitor: CallMonitor = Depends(get_monitor)) -> StatusResponse:
    status = monitor.status()
    return StatusResponse(
        running=status.running,
        connected=status.connected,
        channels=status.channels,
        bridges=status.bridges,
        events_applied=status.events_applied,
        events_dropped=status.events_dropped,
        queued=status.queued,
        monitor_enabled=monitor.monitor_enabled,
    )


@router.get("/bridges", response_model=list[BridgeSummaryResponse])
def list_bridges(monitor: CallMonitor = Depends(get_monitor)) -> list[BridgeSummaryResponse]:
    now = time.time()
    return [_bridge_summary(monitor, bridge, now) for bridge in monitor.bridges()]


@router.get("/bridges/{bridge_id}", response_model=BridgeDetailResponse)
def get_bridge(bridge_id: str, monitor: CallMonitor = Depends(get_monitor)) -> BridgeDetailResponse:
    bridge = monitor.bridge(bridge_id)
    if bridge is None:
        raise HTTPException(status_code=404, detail="Bridge not found.")

    now = time.time()
    summary = _bridge_summary(monitor, bridge, now)
    return BridgeDetailResponse(
        **summary.model_dump(),
        technology=bridge.technology,
        created_at=bridge.created_at,
        members=[_channel_response(monitor, channel, now) for channel in bridge.channels],
    )


@router.post("/bridges/{bridge_id}/kick", response_model=ActionResponse)
def kick_channel(
    command: ChannelCommand,
    bridge_id: str = Path(pattern=IDENTIFIER_PATTERN),
    monitor: CallMonitor = Depends(get_monitor),
) -> ActionResponse:
    return _action_response(_guarded(lambda: monitor.kick(bridge_id, command.channel)))


@router.delete("/bridges/{bridge_id}", response_model=ActionResponse)
def destroy_bridge(
    bridge_id: str = Path(pattern=IDENTIFIER_PATTERN),
    monitor: CallMonitor = Depends(get_monitor),
) -> ActionResponse:
    return _action_response(_guarded(lambda: monitor.destroy_bridge(bridge_id)))


@router.post("/channels/hangup", response_model=ActionResponse)
def hangup_channel(command: ChannelCommand, monitor: CallMonitor = Depends(get_monitor)) -> ActionResponse:
    return _action_response(_guarded(lambda: monitor.hangup(command.channel)))


@router.post("/channels/monitor", response_model=ActionResponse)
def monitor_channel(command: ChannelCommand, monitor: CallMonitor = Depends(get_monitor)) -> ActionResponse:
    return _action_response(_guarded(lambda: monitor.originate_monitor(command.channel)))


@router.get("/channels/{channel_name:path}", response_model=ChannelResponse)
def get_channel(channel_name: str, monitor: CallMonitor = Depends(get_monitor)) -> ChannelResponse:
    channel = monitor.channel(channel_name)
    if channel is None:
        raise HTTPException(status_code=404, detail="Channel not found.")
    return _channel_response(monitor, channel, time.time())


@router.post("/hangup-all", response_model=HangupAllResponse)
def hangup_all(monitor: CallMonitor = Depends(get_monitor)) -> HangupAllResponse:
    action_ids = _guarded(monitor.hangup_all)
    return HangupAllResponse(sent=len(action_ids), action_ids=action_ids)


@router.post("/resync", response_model=ActionResponse)
def resync(monitor: CallMonitor = Depends(get_monitor)) -> ActionResponse:
    return _action_response(_guarded(monitor.resync))


@router.get("/rules", response_model=RulesPayload)
def get_rules(monitor: CallMonitor = Depends(get_monitor)) -> RulesPayload:
    rules = monitor.rules
    return RulesPayload(
        inbound_contexts=list(rules.inbound_contexts),
        outbound_prefixes=list(rules.outbound_prefixes),
        direction_variable=rules.direction_variable,
    )


@router.put("/rules", response_model=RulesPayload)
def update_rules(payload: RulesPayload, monitor: CallMonitor = Depends(get_monitor)) -> RulesPayload:
    monitor.set_rules(
        ClassificationRules.from_lists(
            payload.inbound_contexts,
            payload.outbound_prefixes,
            payload.direction_variable,
        )
    )
    return get_rules(monitor)

"""API-facing Pydantic models."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

# Identifiers end up as AMI header values, where CR/LF would start a new action.
IDENTIFIER_PATTERN = r"^[^\x00-\x1f\x7f]+$"


def has_control_chars(value: str) -> bool:
    return any(ord(char) < 0x20 or ord(char) == 0x7F for char in value)


class StatusResponse(BaseModel):
    running: bool
    connected: bool
    channels: int
    bridges: int
    events_applied: int
    events_dropped: int
    queued: int
    monitor_enabled: bool


class ChannelResponse(BaseModel):
    name: str
    technology: str
    peer: str
    unique_id: str
    linked_id: str
    caller_num: str
    caller_name: str
    connected_num: str
    connected_name: str
    context: str
    exten: str
    state: str
    bridge_id: str | None
    duration_seconds: int
    direction: str


class BridgeSummaryResponse(BaseModel):
    bridge_id: str
    bridge_type: str
    direction: str
    member_count: int
    max_leg_duration: int = Field(description="Longest member leg, in seconds.")


class BridgeDetailResponse(BridgeSummaryResponse):
    technology: str
    created_at: float | None
    members: list[ChannelResponse]


class ChannelCommand(BaseModel):
    channel: str

    @field_validator("channel")
    @classmethod
    def channel_is_valid(cls, value: str) -> str:
        channel = value.strip()
        if not channel:
            raise ValueError("Channel may not be empty.")
        if has_control_chars(channel):
            raise ValueError("Channel may not contain control characters.")
        return channel


class ActionResponse(BaseModel):
    action: str
    action_id: str
    success: bool
    message: str = ""


class HangupAllResponse(BaseModel):
    sent: int
    action_ids: list[str]


class RulesPayload(BaseModel):
    inbound_contexts: list[str]
    outbound_prefixes: list[str]
    direction_variable: str = "CALL_DIRECTION"

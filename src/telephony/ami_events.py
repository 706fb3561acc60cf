"""AMI event names the call state store understands."""

from __future__ import annotations

from enum import Enum

from telephony.ami_codec import AmiMessage


class EventKind(str, Enum):
    NEW_CHANNEL = "Newchannel"
    CORE_SHOW_CHANNEL = "CoreShowChannel"
    NEW_STATE = "Newstate"
    NEW_CALLERID = "NewCallerid"
    NEW_CONNECTED_LINE = "NewConnectedLine"
    NEW_EXTEN = "NewExten"
    VAR_SET = "VarSet"
    RENAME = "Rename"
    HANGUP = "Hangup"
    BRIDGE_CREATE = "BridgeCreate"
    BRIDGE_DESTROY = "BridgeDestroy"
    BRIDGE_ENTER = "BridgeEnter"
    BRIDGE_LEAVE = "BridgeLeave"
    OTHER = ""

    @classmethod
    def of(cls, message: AmiMessage) -> EventKind:
        try:
            kind = cls(message.event)
        except ValueError:
            return cls.OTHER
        return kind

"""
Pydantic models for the media stream WebSocket protocol.

Both supported providers open a WebSocket to the bridge and exchange JSON frames
tagged by an "event" field. Twilio names the stream "streamSid" while Telnyx uses
"stream_id"; the models accept either spelling.
"""

from typing import Any, Dict, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class MediaBaseMessage(BaseModel):
    """Base model for all media stream frames."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    event: str = Field(..., description="Event type identifier")
    stream_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("stream_id", "streamSid"),
        description="Provider-assigned stream identifier",
    )
    sequence_number: Optional[str] = Field(
        None, validation_alias=AliasChoices("sequence_number", "sequenceNumber")
    )


class StartDetails(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    call_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("call_control_id", "callSid", "call_id")
    )
    media_format: Optional[Dict[str, Any]] = Field(
        None, validation_alias=AliasChoices("media_format", "mediaFormat")
    )


class StartMessage(MediaBaseMessage):
    event: Literal["start"]
    start: StartDetails = Field(default_factory=StartDetails)


class MediaPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    track: Optional[str] = None
    chunk: Optional[str] = None
    timestamp: Optional[str] = None
    payload: str = ""


class MediaMessage(MediaBaseMessage):
    event: Literal["media"]
    media: MediaPayload


class MarkDetails(BaseModel):
    name: str


class MarkMessage(MediaBaseMessage):
    event: Literal["mark"]
    mark: MarkDetails


class ClearMessage(MediaBaseMessage):
    event: Literal["clear"]


class DtmfDetails(BaseModel):
    digit: str


class DtmfMessage(MediaBaseMessage):
    event: Literal["dtmf"]
    dtmf: DtmfDetails


class StopMessage(MediaBaseMessage):
    event: Literal["stop"]


class MarkEcho(BaseModel):
    """Mark frame sent back to the far end once a mark has been reached."""

    event: Literal["mark"] = "mark"
    stream_id: Optional[str] = None
    mark: MarkDetails


class ClearAck(BaseModel):
    """Acknowledgment that buffered outbound audio was cleared."""

    event: Literal["clear"] = "clear"
    stream_id: Optional[str] = None

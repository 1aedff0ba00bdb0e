"""
Models describing a voice-AI session: what is requested from the backend and what it returns.
"""

from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.config.constants import FIRST_SPEAKER_AGENT, FIRST_SPEAKER_USER


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


class CallDirection(str, Enum):
    """Direction of a phone call relative to this service."""
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class SessionRequest(BaseModel):
    """
    Request body for creating one Ultravox call.

    The request is frozen, selections included: each tool selection is stored as a
    read-only mapping, and to_payload() hands out fresh copies.
    Enrichment after construction must go through model_copy(update=...).
    """

    model_config = ConfigDict(frozen=True)

    system_prompt: str
    model: str
    voice: str
    temperature: float = Field(ge=0.0, le=1.0)
    first_speaker: str
    medium: str
    recording_enabled: bool = True
    selected_tools: Tuple[Mapping[str, Any], ...] = ()

    @field_validator("first_speaker")
    @classmethod
    def validate_first_speaker(cls, v: str) -> str:
        if v not in (FIRST_SPEAKER_AGENT, FIRST_SPEAKER_USER):
            raise ValueError(f"Unknown first speaker: {v}")
        return v

    @field_validator("selected_tools")
    @classmethod
    def freeze_selections(cls, v: Tuple[Mapping[str, Any], ...]) -> Tuple[Mapping[str, Any], ...]:
        return tuple(_freeze(selection) for selection in v)

    def to_payload(self) -> Dict[str, Any]:
        """Render the camelCase JSON body the Ultravox API expects."""
        return {
            "systemPrompt": self.system_prompt,
            "model": self.model,
            "voice": self.voice,
            "temperature": self.temperature,
            "firstSpeaker": self.first_speaker,
            "medium": {self.medium: {}},
            "recordingEnabled": self.recording_enabled,
            "selectedTools": [_thaw(tool) for tool in self.selected_tools],
        }


class SessionHandle(BaseModel):
    """Join handle returned by the backend; the telephony leg streams media to join_url."""

    model_config = ConfigDict(frozen=True)

    join_url: str
    call_id: Optional[str] = None


class OutboundCallRequest(BaseModel):
    """JSON body accepted by POST /outgoing. Field names follow the public API."""

    model_config = ConfigDict(extra="ignore")

    destinationNumber: Optional[str] = None
    systemPrompt: Optional[str] = None
    voiceId: Optional[str] = None
    corpusId: Optional[str] = None
    tools: Optional[List[str]] = None
    agentName: Optional[str] = None
    deferConnect: bool = False

"""
Pydantic models for Telnyx Call Control webhook notifications.

Every notification arrives as {"data": {"event_type": ..., "payload": {...}}}.
Only the fields the bridge acts on are modelled; everything else is kept as extra.
"""

import base64
import binascii
import json
import logging
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.config.constants import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)


class TelnyxCallPayload(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    call_control_id: Optional[str] = None
    call_leg_id: Optional[str] = None
    direction: Optional[str] = None
    from_: Optional[str] = Field(None, alias="from")
    to: Optional[str] = None
    client_state: Optional[str] = None
    state: Optional[str] = None

    @property
    def is_outgoing(self) -> bool:
        return self.direction == "outgoing"

    def decoded_client_state(self) -> Dict[str, Any]:
        """Decode the base64 JSON client_state attached when the call was dialled."""
        if not self.client_state:
            return {}
        try:
            decoded = json.loads(base64.b64decode(self.client_state).decode("utf-8"))
        except (binascii.Error, UnicodeDecodeError, ValueError) as e:
            logger.warning(f"Ignoring undecodable client_state on call {self.call_control_id}: {e}")
            return {}
        return decoded if isinstance(decoded, dict) else {}


class TelnyxEventData(BaseModel):
    model_config = ConfigDict(extra="allow")

    event_type: str
    id: Optional[str] = None
    payload: TelnyxCallPayload = Field(default_factory=TelnyxCallPayload)


class TelnyxWebhook(BaseModel):
    model_config = ConfigDict(extra="allow")

    data: TelnyxEventData


def encode_client_state(state: Dict[str, Any]) -> str:
    """Encode a mapping the way Telnyx expects client_state: base64 of a JSON document."""
    return base64.b64encode(json.dumps(state).encode("utf-8")).decode("ascii")

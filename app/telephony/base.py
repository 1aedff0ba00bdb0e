"""
Common interface for telephony provider adapters.

An adapter translates between the bridge's direction-agnostic call model and one
provider's protocol. The route layer only ever talks to a TelephonyAdapter; which
concrete adapter is active is decided once at startup.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from app.config.constants import FIRST_SPEAKER_AGENT, LOGGER_NAME
from app.config.settings import Settings
from app.models.call_state import CallSessionStore, PendingCallContext
from app.models.session import CallDirection, SessionHandle
from app.services.session_negotiator import SessionNegotiator

logger = logging.getLogger(LOGGER_NAME)


class ProviderAPIError(Exception):
    """The telephony provider rejected a control command."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CallNotReadyError(ProviderAPIError):
    """The provider refused a command because the call is not in a state that allows it yet."""


@dataclass
class InboundResult:
    """
    Protocol response an adapter hands back to the route layer.

    Attributes:
        call_id: Provider call identifier, when the trigger carried one
        handled: Whether the trigger led to the call being bridged (or progressing)
        body: Markup string or JSON-serialisable acknowledgment
        media_type: Content type of body
    """

    call_id: Optional[str]
    handled: bool
    body: Union[str, Dict[str, Any]]
    media_type: str = "application/json"


class TelephonyAdapter(ABC):
    """Capabilities every provider adapter offers."""

    provider: str = ""

    def __init__(
        self,
        settings: Settings,
        negotiator: SessionNegotiator,
        call_store: CallSessionStore,
    ):
        self.settings = settings
        self.negotiator = negotiator
        self.call_store = call_store

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether the provider credentials needed for outbound calls are present."""

    @abstractmethod
    async def originate_outbound(
        self, destination: str, handle: SessionHandle, status_callback: str
    ) -> str:
        """Place a call to destination that streams to handle.join_url; returns the provider call id."""

    @abstractmethod
    async def originate_deferred(
        self, destination: str, call_key: str, base_url: str, status_callback: str
    ) -> str:
        """Place a call whose session is negotiated only once the leg connects."""

    @abstractmethod
    async def accept_inbound(self, trigger_payload: Mapping[str, Any]) -> InboundResult:
        """Handle an inbound trigger; must always produce a valid protocol response."""

    @abstractmethod
    async def connect_deferred(
        self, call_key: str, trigger_payload: Mapping[str, Any]
    ) -> InboundResult:
        """Bind a deferred outbound leg to a newly negotiated session."""

    def store_pending(
        self,
        system_prompt: str,
        persona_name: Optional[str] = None,
        voice: Optional[str] = None,
        corpus_id: Optional[str] = None,
        tool_names: Optional[Sequence[str]] = None,
    ) -> PendingCallContext:
        """Store the context of a deferred outbound call under a fresh key."""
        context = PendingCallContext(
            call_key=uuid.uuid4().hex,
            system_prompt=system_prompt,
            agent_persona_name=persona_name,
            voice=voice,
            corpus_id=corpus_id,
            tool_names=tuple(tool_names) if tool_names is not None else None,
        )
        self.call_store.put(context)
        return context

    async def negotiate_pending(self, context: PendingCallContext) -> SessionHandle:
        """Negotiate the session of a deferred outbound call; the agent speaks first."""
        return await self.negotiator.negotiate(
            CallDirection.OUTBOUND,
            explicit_prompt=context.system_prompt,
            persona_name=context.agent_persona_name,
            voice_override=context.voice,
            corpus_override=context.corpus_id,
            tool_names=context.tool_names,
            first_speaker=FIRST_SPEAKER_AGENT,
        )

    async def aclose(self) -> None:
        """Release any network resources held by the adapter."""

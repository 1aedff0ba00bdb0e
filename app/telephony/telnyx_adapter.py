"""
Telnyx adapter: the asynchronous, event-driven telephony model.

Telnyx reports call progress through webhook events and expects explicit control
commands in return. An inbound call is answered on "call.initiated"; only once
"call.answered" arrives is a session negotiated and media streaming started.
Webhooks may be duplicated, reordered or missing, so every event is checked against
the call's tracked state and anything that does not fit is logged and ignored.
"""

import logging
from typing import Any, Dict, Mapping, Optional

import httpx
from pydantic import ValidationError

from app.config.constants import (
    LOGGER_NAME,
    PROVIDER_TELNYX,
    TELNYX_EVENT_CALL_ANSWERED,
    TELNYX_EVENT_CALL_HANGUP,
    TELNYX_EVENT_CALL_INITIATED,
    TELNYX_EVENT_STREAMING_STARTED,
    TELNYX_EVENT_STREAMING_STOPPED,
)
from app.config.settings import ConfigurationError, Settings
from app.models.call_state import (
    CallSessionStore,
    InboundCallState,
    InboundCallTracker,
    PendingContextNotFound,
)
from app.models.session import CallDirection, SessionHandle
from app.models.telnyx_schemas import TelnyxCallPayload, TelnyxWebhook, encode_client_state
from app.services.session_negotiator import SessionNegotiator
from app.telephony.base import (
    CallNotReadyError,
    InboundResult,
    ProviderAPIError,
    TelephonyAdapter,
)

logger = logging.getLogger(LOGGER_NAME)

STREAM_TRACK = "both_tracks"
BIDIRECTIONAL_MODE = "rtp"
CALL_KEY_STATE_FIELD = "call_key"


def _ack(call_id: Optional[str], handled: bool, detail: str) -> InboundResult:
    return InboundResult(call_id, handled, {"status": "received", "handled": handled, "detail": detail})


class TelnyxAdapter(TelephonyAdapter):
    """Bridges Telnyx Call Control calls to voice-AI sessions."""

    provider = PROVIDER_TELNYX

    def __init__(
        self,
        settings: Settings,
        negotiator: SessionNegotiator,
        call_store: CallSessionStore,
        tracker: Optional[InboundCallTracker] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(settings, negotiator, call_store)
        self.tracker = tracker or InboundCallTracker(ttl_seconds=settings.pending_call_ttl)
        self._http = http_client

    def is_configured(self) -> bool:
        return bool(
            self.settings.telnyx_api_key
            and self.settings.telnyx_connection_id
            and self.settings.telnyx_phone_number
        )

    @property
    def http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                base_url=self.settings.telnyx_api_url, timeout=self.settings.telnyx_timeout
            )
        return self._http

    async def _command(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """
        Send one authenticated Call Control command.

        Raises:
            ConfigurationError: If no API key is configured
            ProviderAPIError: On transport errors or a non-2xx response
        """
        self.settings.require("TELNYX_API_KEY")

        headers = {
            "Authorization": f"Bearer {self.settings.telnyx_api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        try:
            response = await self.http.post(path, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise ProviderAPIError(f"Telnyx request to {path} failed: {e}") from e

        if response.status_code >= 400:
            detail = response.text[:500]
            raise ProviderAPIError(
                f"Telnyx rejected {path} with HTTP {response.status_code}: {detail}",
                response.status_code,
            )

        try:
            return response.json()
        except ValueError:
            return {}

    async def answer(self, call_id: str, client_state: Optional[str] = None) -> None:
        body: Dict[str, Any] = {}
        if client_state:
            body["client_state"] = client_state
        await self._command(f"/calls/{call_id}/actions/answer", body)
        logger.info(f"Answer command sent for call {call_id}")

    async def start_streaming(self, call_id: str, handle: SessionHandle) -> None:
        """
        Ask Telnyx to stream the call's media to the session's join URL.

        Raises:
            CallNotReadyError: Telnyx answered 422, i.e. the call cannot stream yet
            ProviderAPIError: Any other rejection
        """
        body = {
            "stream_url": handle.join_url,
            "stream_track": STREAM_TRACK,
            "stream_bidirectional_mode": BIDIRECTIONAL_MODE,
        }
        try:
            await self._command(f"/calls/{call_id}/actions/streaming_start", body)
        except ProviderAPIError as e:
            if e.status_code == 422:
                raise CallNotReadyError(
                    f"Call {call_id} is not in a state that allows streaming yet "
                    f"(answer may not have completed): {e}",
                    e.status_code,
                ) from e
            raise
        logger.info(f"Streaming started for call {call_id}")

    async def _dial(self, destination: str, extra: Dict[str, Any]) -> str:
        self.settings.require("TELNYX_API_KEY", "TELNYX_CONNECTION_ID", "TELNYX_PHONE_NUMBER")
        body = {
            "connection_id": self.settings.telnyx_connection_id,
            "to": destination,
            "from": self.settings.telnyx_phone_number,
            "webhook_url_method": "POST",
            **extra,
        }
        result = await self._command("/calls", body)
        call_id = (result.get("data") or {}).get("call_control_id")
        if not call_id:
            raise ProviderAPIError("Telnyx did not return a call_control_id")
        return call_id

    async def originate_outbound(
        self, destination: str, handle: SessionHandle, status_callback: str
    ) -> str:
        """Dial destination with the stream target supplied up front."""
        call_id = await self._dial(
            destination,
            {
                "stream_url": handle.join_url,
                "stream_track": STREAM_TRACK,
                "stream_bidirectional_mode": BIDIRECTIONAL_MODE,
                "webhook_url": status_callback,
            },
        )
        logger.info(f"Outbound call initiated with call control id: {call_id}")
        return call_id

    async def originate_deferred(
        self, destination: str, call_key: str, base_url: str, status_callback: str
    ) -> str:
        """
        Dial destination without a stream; the call key travels in client_state and the
        session is negotiated when the call.answered webhook arrives at /incoming.
        """
        call_id = await self._dial(
            destination,
            {
                "client_state": encode_client_state({CALL_KEY_STATE_FIELD: call_key}),
                "webhook_url": f"{base_url.rstrip('/')}/incoming",
            },
        )
        logger.info(f"Deferred outbound call initiated with call control id: {call_id} (call key {call_key})")
        return call_id

    async def accept_inbound(self, trigger_payload: Mapping[str, Any]) -> InboundResult:
        """
        Dispatch one webhook event. Always returns an acknowledgment.

        Args:
            trigger_payload: The decoded webhook JSON body
        """
        try:
            webhook = TelnyxWebhook.model_validate(trigger_payload)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed Telnyx webhook: {e}")
            return _ack(None, False, "malformed event")

        event_type = webhook.data.event_type
        payload = webhook.data.payload
        call_id = payload.call_control_id
        logger.info(f"Received Telnyx event {event_type} for call {call_id}")

        if not call_id:
            logger.warning(f"Telnyx event {event_type} carried no call_control_id")
            return _ack(None, False, "missing call id")

        if event_type == TELNYX_EVENT_CALL_INITIATED:
            return await self._on_initiated(call_id, payload)
        if event_type == TELNYX_EVENT_CALL_ANSWERED:
            return await self._on_answered(call_id, payload)
        if event_type == TELNYX_EVENT_CALL_HANGUP:
            self.tracker.forget(call_id)
            logger.info(f"Call {call_id} hung up")
            return _ack(call_id, True, "hangup recorded")
        if event_type in (TELNYX_EVENT_STREAMING_STARTED, TELNYX_EVENT_STREAMING_STOPPED):
            logger.info(f"Media stream for call {call_id} reported {event_type}")
            return _ack(call_id, True, f"{event_type} recorded")

        return _ack(call_id, False, f"event {event_type} ignored")

    async def _on_initiated(self, call_id: str, payload: TelnyxCallPayload) -> InboundResult:
        if payload.is_outgoing:
            return _ack(call_id, False, "outgoing call initiated")

        if not self.tracker.advance(call_id, InboundCallState.INITIATED):
            logger.info(f"Ignoring call.initiated for call {call_id} in state {self.tracker.state(call_id).value}")
            return _ack(call_id, False, "duplicate or late call.initiated")

        try:
            await self.answer(call_id, payload.client_state)
        except (ProviderAPIError, ConfigurationError) as e:
            self.tracker.advance(call_id, InboundCallState.FAILED)
            logger.error(f"Failed to answer call {call_id}: {e}")
            return _ack(call_id, False, "answer failed")
        return _ack(call_id, True, "answer sent")

    async def _on_answered(self, call_id: str, payload: TelnyxCallPayload) -> InboundResult:
        call_key = payload.decoded_client_state().get(CALL_KEY_STATE_FIELD)
        if payload.is_outgoing and not call_key:
            # Dialled with a stream_url, already streaming.
            return _ack(call_id, False, "outgoing call already streaming")

        if not self.tracker.advance(call_id, InboundCallState.ANSWERED):
            logger.info(f"Ignoring call.answered for call {call_id} in state {self.tracker.state(call_id).value}")
            return _ack(call_id, False, "duplicate or late call.answered")

        if call_key:
            return await self.connect_deferred(call_key, {"call_control_id": call_id})

        try:
            handle = await self.negotiator.negotiate(CallDirection.INBOUND)
        except Exception as e:
            self.tracker.advance(call_id, InboundCallState.FAILED)
            logger.error(f"Session negotiation failed for call {call_id}: {e}", exc_info=True)
            return _ack(call_id, False, "session negotiation failed")

        return await self._stream(call_id, handle)

    async def _stream(self, call_id: str, handle: SessionHandle) -> InboundResult:
        try:
            await self.start_streaming(call_id, handle)
        except CallNotReadyError as e:
            self.tracker.advance(call_id, InboundCallState.FAILED)
            logger.error(f"Timing error starting stream: {e}")
            return _ack(call_id, False, "call not ready for streaming")
        except (ProviderAPIError, ConfigurationError) as e:
            self.tracker.advance(call_id, InboundCallState.FAILED)
            logger.error(f"Failed to start streaming for call {call_id}: {e}")
            return _ack(call_id, False, "streaming start failed")

        if not self.tracker.advance(call_id, InboundCallState.STREAMING):
            logger.warning(
                f"Streaming started for call {call_id} but its state is now "
                f"{self.tracker.state(call_id).value}, the call probably hung up meanwhile"
            )
            return _ack(call_id, False, "call ended before streaming started")
        return _ack(call_id, True, "streaming started")

    async def connect_deferred(
        self, call_key: str, trigger_payload: Mapping[str, Any]
    ) -> InboundResult:
        """Negotiate the pending session for a deferred call and start streaming to it."""
        call_id = trigger_payload.get("call_control_id")
        if not call_id:
            logger.error(f"Cannot connect deferred call {call_key} without a call_control_id")
            return _ack(None, False, "missing call id")

        try:
            context = self.call_store.take_once(call_key)
            handle = await self.negotiate_pending(context)
        except PendingContextNotFound as e:
            self.tracker.advance(call_id, InboundCallState.FAILED)
            logger.error(f"Error connecting outgoing call: {e}")
            return _ack(call_id, False, "no pending context")
        except Exception as e:
            self.tracker.advance(call_id, InboundCallState.FAILED)
            logger.error(f"Error connecting outgoing call {call_key}: {e}", exc_info=True)
            return _ack(call_id, False, "session negotiation failed")

        return await self._stream(call_id, handle)

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

"""
Twilio adapter: the synchronous, request/response telephony model.

Twilio asks for instructions with one HTTP request per call and expects a TwiML
document in the response. The session therefore has to be negotiated before the
response is written, and every failure still has to produce valid TwiML.
"""

import asyncio
import logging
from typing import Any, Mapping, Optional

from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client
from twilio.twiml.voice_response import VoiceResponse

from app.config.constants import (
    DEFERRED_CONNECT_APOLOGY,
    INBOUND_APOLOGY,
    LOGGER_NAME,
    PROVIDER_TWILIO,
)
from app.config.settings import ConfigurationError, Settings
from app.models.call_state import CallSessionStore, PendingContextNotFound
from app.models.session import CallDirection, SessionHandle
from app.services.session_negotiator import SessionNegotiator
from app.telephony.base import InboundResult, ProviderAPIError, TelephonyAdapter

logger = logging.getLogger(LOGGER_NAME)

TWIML_MEDIA_TYPE = "text/xml"
STREAM_NAME = "ultravox"


def stream_twiml(join_url: str) -> str:
    """TwiML connecting the call to a bidirectional media stream."""
    response = VoiceResponse()
    connect = response.connect()
    connect.stream(url=join_url, name=STREAM_NAME)
    return str(response)


def apology_twiml(message: str) -> str:
    """TwiML that only speaks an apology; no stream is attached."""
    response = VoiceResponse()
    response.say(message)
    return str(response)


class TwilioAdapter(TelephonyAdapter):
    """Bridges Twilio Programmable Voice calls to voice-AI sessions."""

    provider = PROVIDER_TWILIO

    def __init__(
        self,
        settings: Settings,
        negotiator: SessionNegotiator,
        call_store: CallSessionStore,
        client: Optional[Client] = None,
    ):
        super().__init__(settings, negotiator, call_store)
        self._client = client

    def is_configured(self) -> bool:
        return bool(self.settings.twilio_auth_token and self.settings.twilio_phone_number)

    @property
    def client(self) -> Client:
        if self._client is None:
            if not self.is_configured() or not self.settings.twilio_account_sid:
                raise ConfigurationError(
                    "Twilio credentials not properly configured. Check TWILIO_ACCOUNT_SID, "
                    "TWILIO_AUTH_TOKEN and TWILIO_PHONE_NUMBER in .env file."
                )
            self._client = Client(self.settings.twilio_account_sid, self.settings.twilio_auth_token)
        return self._client

    async def _create_call(self, **kwargs: Any) -> str:
        client = self.client
        try:
            call = await asyncio.to_thread(
                client.calls.create,
                from_=self.settings.twilio_phone_number,
                status_callback_method="POST",
                **kwargs,
            )
        except TwilioRestException as e:
            logger.error(f"Twilio rejected call creation: {e.msg}")
            raise ProviderAPIError(f"Twilio rejected call creation: {e.msg}", e.status) from e
        return call.sid

    async def originate_outbound(
        self, destination: str, handle: SessionHandle, status_callback: str
    ) -> str:
        """
        Dial destination with the stream instruction embedded as inline TwiML.

        Returns:
            The Twilio call SID
        """
        call_sid = await self._create_call(
            twiml=stream_twiml(handle.join_url),
            to=destination,
            status_callback=status_callback,
        )
        logger.info(f"Outbound call initiated with SID: {call_sid}")
        return call_sid

    async def originate_deferred(
        self, destination: str, call_key: str, base_url: str, status_callback: str
    ) -> str:
        """Dial destination; Twilio fetches /direct-connect/<call_key> when the leg connects."""
        call_sid = await self._create_call(
            url=f"{base_url.rstrip('/')}/direct-connect/{call_key}",
            method="POST",
            to=destination,
            status_callback=status_callback,
        )
        logger.info(f"Deferred outbound call initiated with SID: {call_sid} (call key {call_key})")
        return call_sid

    async def accept_inbound(self, trigger_payload: Mapping[str, Any]) -> InboundResult:
        """
        Negotiate a session for an incoming call and answer with stream TwiML.

        Args:
            trigger_payload: Twilio's voice webhook form fields (CallSid, From, To, ...)

        Returns:
            InboundResult with TwiML; an apology without stream when negotiation fails
        """
        call_sid = trigger_payload.get("CallSid")
        logger.info(f"Incoming call {call_sid} from {trigger_payload.get('From')}")

        try:
            handle = await self.negotiator.negotiate(CallDirection.INBOUND)
        except Exception as e:
            logger.error(f"Error handling incoming call {call_sid}: {e}", exc_info=True)
            return InboundResult(call_sid, False, apology_twiml(INBOUND_APOLOGY), TWIML_MEDIA_TYPE)

        twiml = stream_twiml(handle.join_url)
        logger.info(f"Sending connect TwiML for call {call_sid}")
        return InboundResult(call_sid, True, twiml, TWIML_MEDIA_TYPE)

    async def connect_deferred(
        self, call_key: str, trigger_payload: Mapping[str, Any]
    ) -> InboundResult:
        """Take the pending context for call_key and answer with stream TwiML."""
        call_sid = trigger_payload.get("CallSid")
        try:
            context = self.call_store.take_once(call_key)
            logger.info(f"Creating Ultravox call for direct connect with call ID {call_key}")
            handle = await self.negotiate_pending(context)
        except PendingContextNotFound as e:
            logger.error(f"Error connecting outgoing call: {e}")
            return InboundResult(call_sid, False, apology_twiml(DEFERRED_CONNECT_APOLOGY), TWIML_MEDIA_TYPE)
        except Exception as e:
            logger.error(f"Error connecting outgoing call {call_key}: {e}", exc_info=True)
            return InboundResult(call_sid, False, apology_twiml(DEFERRED_CONNECT_APOLOGY), TWIML_MEDIA_TYPE)

        logger.info(f"Sending connect TwiML for direct connect call {call_key}")
        return InboundResult(call_sid, True, stream_twiml(handle.join_url), TWIML_MEDIA_TYPE)

from unittest.mock import AsyncMock, MagicMock

import pytest
from twilio.base.exceptions import TwilioRestException

from app.config.settings import ConfigurationError
from app.models.call_state import PendingCallContext
from app.models.session import CallDirection, SessionHandle
from app.services.session_negotiator import SessionNegotiator
from app.services.ultravox_client import RemoteSessionError
from app.telephony.base import ProviderAPIError
from app.telephony.twilio_adapter import TwilioAdapter, apology_twiml, stream_twiml

JOIN_URL = "wss://voice.example.com/calls/abc/join"


@pytest.fixture
def negotiator():
    negotiator = MagicMock(spec=SessionNegotiator)
    negotiator.negotiate = AsyncMock(return_value=SessionHandle(join_url=JOIN_URL))
    return negotiator


@pytest.fixture
def twilio_client():
    client = MagicMock()
    client.calls.create.return_value = MagicMock(sid="CA123")
    return client


@pytest.fixture
def adapter(settings, negotiator, call_store, twilio_client):
    return TwilioAdapter(settings, negotiator, call_store, client=twilio_client)


class TestTwiml:

    def test_stream_twiml(self):
        twiml = stream_twiml(JOIN_URL)
        assert "<Connect>" in twiml
        assert "<Stream" in twiml
        assert f'url="{JOIN_URL}"' in twiml
        assert 'name="ultravox"' in twiml

    def test_apology_twiml(self):
        twiml = apology_twiml("Sorry.")
        assert "<Say>Sorry.</Say>" in twiml
        assert "<Stream" not in twiml


@pytest.mark.asyncio
class TestTwilioInbound:

    async def test_inbound_streams_to_join_url(self, adapter, negotiator):
        result = await adapter.accept_inbound({"CallSid": "CA1", "From": "+15551234567"})

        assert result.handled is True
        assert result.call_id == "CA1"
        assert result.media_type == "text/xml"
        assert JOIN_URL in result.body
        negotiator.negotiate.assert_awaited_once_with(CallDirection.INBOUND)

    async def test_session_error_gives_apology(self, adapter, negotiator):
        negotiator.negotiate.side_effect = RemoteSessionError("Received HTML error page from Ultravox API")

        result = await adapter.accept_inbound({"CallSid": "CA1"})

        assert result.handled is False
        assert result.media_type == "text/xml"
        assert "Sorry, there was an error processing your call." in result.body
        assert "<Stream" not in result.body


@pytest.mark.asyncio
class TestTwilioDeferred:

    async def test_connect_takes_context_once(self, adapter, negotiator, call_store):
        context = adapter.store_pending("Remind them.", persona_name="Ada", voice="voice-2")

        result = await adapter.connect_deferred(context.call_key, {"CallSid": "CA9"})

        assert result.handled is True
        assert JOIN_URL in result.body
        kwargs = negotiator.negotiate.await_args.kwargs
        assert negotiator.negotiate.await_args.args == (CallDirection.OUTBOUND,)
        assert kwargs["explicit_prompt"] == "Remind them."
        assert kwargs["persona_name"] == "Ada"
        assert kwargs["voice_override"] == "voice-2"
        assert kwargs["first_speaker"] == "FIRST_SPEAKER_AGENT"
        assert len(call_store) == 0

        again = await adapter.connect_deferred(context.call_key, {"CallSid": "CA9"})
        assert again.handled is False
        assert "unable to connect to our AI assistant" in again.body

    async def test_unknown_key_gives_apology(self, adapter, negotiator):
        result = await adapter.connect_deferred("missing", {})
        assert result.handled is False
        assert "<Say>" in result.body
        negotiator.negotiate.assert_not_awaited()

    async def test_negotiation_failure_gives_apology(self, adapter, negotiator, call_store):
        call_store.put(PendingCallContext(call_key="k1", system_prompt="Hi"))
        negotiator.negotiate.side_effect = RemoteSessionError("boom")

        result = await adapter.connect_deferred("k1", {})

        assert result.handled is False
        assert "<Stream" not in result.body


@pytest.mark.asyncio
class TestTwilioOutbound:

    async def test_originate_outbound(self, adapter, twilio_client):
        sid = await adapter.originate_outbound(
            "+15557654321", SessionHandle(join_url=JOIN_URL), "https://bridge.example.com/call-status"
        )

        assert sid == "CA123"
        kwargs = twilio_client.calls.create.call_args.kwargs
        assert kwargs["to"] == "+15557654321"
        assert kwargs["from_"] == "+15550000000"
        assert kwargs["status_callback"] == "https://bridge.example.com/call-status"
        assert kwargs["status_callback_method"] == "POST"
        assert JOIN_URL in kwargs["twiml"]

    async def test_originate_deferred_points_at_direct_connect(self, adapter, twilio_client):
        await adapter.originate_deferred(
            "+15557654321", "key-1", "https://bridge.example.com/", "https://bridge.example.com/call-status"
        )
        kwargs = twilio_client.calls.create.call_args.kwargs
        assert kwargs["url"] == "https://bridge.example.com/direct-connect/key-1"
        assert "twiml" not in kwargs

    async def test_rest_error_becomes_provider_error(self, adapter, twilio_client):
        twilio_client.calls.create.side_effect = TwilioRestException(
            400, "https://api.twilio.com/Calls.json", msg="Invalid 'To' number"
        )
        with pytest.raises(ProviderAPIError) as exc_info:
            await adapter.originate_outbound("bad", SessionHandle(join_url=JOIN_URL), "https://x/call-status")
        assert exc_info.value.status_code == 400

    async def test_missing_credentials(self, make_settings, negotiator, call_store):
        adapter = TwilioAdapter(make_settings(twilio_auth_token=None), negotiator, call_store)
        assert adapter.is_configured() is False
        with pytest.raises(ConfigurationError):
            await adapter.originate_outbound("+1555", SessionHandle(join_url=JOIN_URL), "https://x/call-status")

import pytest
from pydantic import ValidationError

from app.models.session import OutboundCallRequest, SessionRequest
from app.models.telnyx_schemas import TelnyxCallPayload, TelnyxWebhook, encode_client_state
from app.telephony import create_adapter
from app.telephony.telnyx_adapter import TelnyxAdapter
from app.telephony.twilio_adapter import TwilioAdapter


def session_request(**overrides):
    values = dict(
        system_prompt="Hello",
        model="fixie-ai/ultravox-70B",
        voice="voice-1",
        temperature=0.3,
        first_speaker="FIRST_SPEAKER_USER",
        medium="telnyx",
    )
    values.update(overrides)
    return SessionRequest(**values)


class TestSessionRequest:

    def test_payload_shape(self):
        payload = session_request(selected_tools=({"toolName": "hangUp"},)).to_payload()
        assert payload == {
            "systemPrompt": "Hello",
            "model": "fixie-ai/ultravox-70B",
            "voice": "voice-1",
            "temperature": 0.3,
            "firstSpeaker": "FIRST_SPEAKER_USER",
            "medium": {"telnyx": {}},
            "recordingEnabled": True,
            "selectedTools": [{"toolName": "hangUp"}],
        }

    def test_temperature_bounds(self):
        with pytest.raises(ValidationError):
            session_request(temperature=1.2)
        with pytest.raises(ValidationError):
            session_request(temperature=-0.1)

    def test_unknown_first_speaker(self):
        with pytest.raises(ValidationError):
            session_request(first_speaker="FIRST_SPEAKER_NOBODY")

    def test_selections_are_read_only(self):
        selection = {"temporaryTool": {"modelToolName": "weather", "dynamicParameters": [{"name": "city"}]}}
        request = session_request(selected_tools=(selection,))

        selection["temporaryTool"]["modelToolName"] = "changed"
        with pytest.raises(TypeError):
            request.selected_tools[0]["temporaryTool"]["description"] = "changed"

        payload = request.to_payload()
        assert payload["selectedTools"] == [
            {"temporaryTool": {"modelToolName": "weather", "dynamicParameters": [{"name": "city"}]}}
        ]
        payload["selectedTools"][0]["temporaryTool"]["dynamicParameters"].append({"name": "country"})
        assert request.to_payload()["selectedTools"][0]["temporaryTool"]["dynamicParameters"] == [{"name": "city"}]

    def test_frozen(self):
        request = session_request()
        with pytest.raises(ValidationError):
            request.voice = "other"
        updated = request.model_copy(update={"system_prompt": "Changed"})
        assert updated.system_prompt == "Changed"
        assert request.system_prompt == "Hello"


class TestTelnyxSchemas:

    def test_client_state_round_trip(self):
        payload = TelnyxCallPayload(client_state=encode_client_state({"call_key": "k1"}))
        assert payload.decoded_client_state() == {"call_key": "k1"}

    def test_undecodable_client_state(self):
        assert TelnyxCallPayload(client_state="bm90IGpzb24=").decoded_client_state() == {}

    def test_webhook_parsing(self):
        webhook = TelnyxWebhook.model_validate({
            "data": {
                "event_type": "call.initiated",
                "payload": {"call_control_id": "c1", "direction": "incoming", "from": "+1555"},
            }
        })
        assert webhook.data.payload.from_ == "+1555"
        assert webhook.data.payload.is_outgoing is False


def test_outbound_call_request_defaults():
    request = OutboundCallRequest.model_validate({"destinationNumber": "+1555", "extra": 1})
    assert request.tools is None
    assert request.deferConnect is False


class TestCreateAdapter:

    def test_twilio(self, settings, make_negotiator, call_store):
        assert isinstance(create_adapter(settings, make_negotiator(settings), call_store), TwilioAdapter)

    def test_telnyx(self, make_settings, make_negotiator, call_store):
        settings = make_settings(telephony_provider="telnyx")
        adapter = create_adapter(settings, make_negotiator(settings), call_store)
        assert isinstance(adapter, TelnyxAdapter)
        assert adapter.provider == "telnyx"

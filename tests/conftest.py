import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.config.settings import Settings
from app.models.call_state import CallSessionStore
from app.models.session import SessionHandle
from app.models.tools import ToolDefinition, ToolExample, ToolParameter
from app.services.corpus_gate import CorpusGate
from app.services.prompt_composer import PromptComposer
from app.services.session_negotiator import SessionNegotiator
from app.services.tool_registry import ToolRegistry
from app.services.ultravox_client import UltravoxClient

JOIN_URL = "wss://voice.example.com/calls/abc/join"


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    yield


@pytest.fixture
def make_settings():
    """Build Settings with test credentials; keyword arguments override fields."""

    def _make(**overrides):
        values = dict(
            telephony_provider="twilio",
            twilio_account_sid="AC123",
            twilio_auth_token="token",
            twilio_phone_number="+15550000000",
            telnyx_api_key="KEY123",
            telnyx_connection_id="conn-1",
            telnyx_phone_number="+15550000001",
            ultravox_api_key="uv-key",
            persona_name="Jimothy",
            inbound_prompt="Help the caller.",
            outbound_prompt="Call the customer.",
        )
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings()


@pytest.fixture
def weather_tool():
    return ToolDefinition(
        name="weather",
        description="Get the current weather for a city.",
        endpoint_template="https://tools.example.com/weather",
        http_method="GET",
        parameters=(ToolParameter(name="city", location="query", schema={"type": "string"}, required=True),),
        examples=(ToolExample(query="Weather in Paris?", response="Sunny, 21 degrees."),),
    )


@pytest.fixture
def news_tool():
    return ToolDefinition(
        name="news",
        description="Read the latest headlines.",
        endpoint_template="https://tools.example.com/news",
        http_method="post",
    )


@pytest.fixture
def registry(weather_tool, news_tool):
    return ToolRegistry([weather_tool, news_tool])


@pytest.fixture
def ultravox_client():
    client = MagicMock(spec=UltravoxClient)
    client.create_session = AsyncMock(return_value=SessionHandle(join_url=JOIN_URL, call_id="uv-call-1"))
    client.get_corpus_status = AsyncMock(return_value="CORPUS_STATUS_READY")
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def make_negotiator(registry, ultravox_client):
    def _make(settings):
        return SessionNegotiator(
            settings, registry, PromptComposer(settings), CorpusGate(ultravox_client), ultravox_client
        )

    return _make


@pytest.fixture
def call_store():
    return CallSessionStore(ttl_seconds=300)

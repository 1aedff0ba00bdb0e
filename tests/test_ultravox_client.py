import json

import httpx
import pytest

from app.models.session import SessionRequest
from app.models.tools import ToolDefinition
from app.services.ultravox_client import CorpusCheckError, RemoteSessionError, UltravoxClient


def make_client(settings, handler):
    return UltravoxClient(settings, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.fixture
def session_request():
    return SessionRequest(
        system_prompt="Hello",
        model="fixie-ai/ultravox-70B",
        voice="voice-1",
        temperature=0.3,
        first_speaker="FIRST_SPEAKER_AGENT",
        medium="twilio",
        selected_tools=({"toolName": "hangUp"},),
    )


@pytest.mark.asyncio
class TestCreateSession:

    async def test_success(self, settings, session_request):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["key"] = request.headers["X-API-Key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"callId": "c1", "joinUrl": "wss://join/c1"})

        client = make_client(settings, handler)
        handle = await client.create_session(session_request)
        await client.aclose()

        assert handle.join_url == "wss://join/c1"
        assert handle.call_id == "c1"
        assert seen["url"] == settings.ultravox_api_url
        assert seen["key"] == "uv-key"
        assert seen["body"]["medium"] == {"twilio": {}}
        assert seen["body"]["firstSpeaker"] == "FIRST_SPEAKER_AGENT"
        assert seen["body"]["selectedTools"] == [{"toolName": "hangUp"}]

    async def test_html_error_page(self, settings, session_request):
        client = make_client(
            settings, lambda request: httpx.Response(502, text="<!DOCTYPE html><html><body>Bad gateway</body></html>")
        )
        with pytest.raises(RemoteSessionError, match="HTML"):
            await client.create_session(session_request)

    async def test_missing_join_url(self, settings, session_request):
        client = make_client(settings, lambda request: httpx.Response(200, json={"callId": "c1"}))
        with pytest.raises(RemoteSessionError, match="joinUrl"):
            await client.create_session(session_request)

    async def test_unparsable_body(self, settings, session_request):
        client = make_client(settings, lambda request: httpx.Response(200, text="not json"))
        with pytest.raises(RemoteSessionError, match="parse"):
            await client.create_session(session_request)

    async def test_transport_error(self, settings, session_request):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = make_client(settings, handler)
        with pytest.raises(RemoteSessionError):
            await client.create_session(session_request)


@pytest.mark.asyncio
class TestCorpusStatus:

    async def test_reads_stats_status(self, settings):
        def handler(request):
            assert request.url.path == "/api/corpora/corpus-1"
            return httpx.Response(200, json={"corpusId": "corpus-1", "stats": {"status": "CORPUS_STATUS_READY"}})

        client = make_client(settings, handler)
        assert await client.get_corpus_status("corpus-1") == "CORPUS_STATUS_READY"

    async def test_missing_status_is_empty(self, settings):
        client = make_client(settings, lambda request: httpx.Response(200, json={"corpusId": "corpus-1"}))
        assert await client.get_corpus_status("corpus-1") == ""

    async def test_http_error_raises_check_error(self, settings):
        client = make_client(settings, lambda request: httpx.Response(404, json={"detail": "Not found"}))
        with pytest.raises(CorpusCheckError):
            await client.get_corpus_status("corpus-1")


@pytest.mark.asyncio
class TestRegisterTool:

    async def test_created(self, settings):
        def handler(request):
            assert request.url.path == "/api/tools"
            body = json.loads(request.content)
            assert body["name"] == "weather"
            return httpx.Response(201, json={"toolId": "t1", "name": "weather"})

        client = make_client(settings, handler)
        result = await client.register_tool(ToolDefinition(name="weather"))
        assert result["toolId"] == "t1"

    async def test_conflict_means_exists(self, settings):
        client = make_client(settings, lambda request: httpx.Response(409, json={"detail": "exists"}))
        assert await client.register_tool(ToolDefinition(name="weather")) == {"exists": True}

    async def test_other_errors_raise(self, settings):
        client = make_client(settings, lambda request: httpx.Response(500, text="oops"))
        with pytest.raises(httpx.HTTPStatusError):
            await client.register_tool(ToolDefinition(name="weather"))

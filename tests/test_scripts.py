from unittest.mock import MagicMock, patch

import httpx
import pytest
import requests

import outbound_call
import run
import setup_tools
from app.services.ultravox_client import UltravoxClient


@pytest.mark.asyncio
class TestSetupTools:

    async def test_registers_all_tools_and_tolerates_conflicts(self, settings, registry):
        seen = []

        def handler(request):
            name = request.content.decode()
            seen.append(request.url.path)
            if '"news"' in name:
                return httpx.Response(409, json={"detail": "exists"})
            return httpx.Response(201, json={"toolId": "t1"})

        client = UltravoxClient(settings, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        results = await setup_tools.setup_tools(settings, registry, client)

        assert results == [{"toolId": "t1"}, {"exists": True}]
        assert seen == ["/api/tools", "/api/tools"]

    async def test_failure_does_not_stop_others(self, make_settings, registry):
        settings = make_settings(tools_to_register=("weather", "missing", "news"))
        responses = iter([httpx.Response(500, text="oops"), httpx.Response(201, json={"toolId": "t2"})])
        client = UltravoxClient(
            settings,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(lambda request: next(responses))),
        )

        results = await setup_tools.setup_tools(settings, registry, client)

        assert results == [None, {"toolId": "t2"}]


def test_setup_tools_requires_api_key():
    assert setup_tools.main({}) == 1


class TestOutboundCall:

    def test_success(self):
        response = MagicMock(status_code=200)
        response.json.return_value = {"success": True, "callSid": "CA123"}

        with patch("outbound_call.requests.post", return_value=response) as mock_post:
            data = outbound_call.make_outbound_call("http://localhost:8000/", "+15557654321", "Hi", defer_connect=True)

        assert data["callSid"] == "CA123"
        mock_post.assert_called_once_with(
            "http://localhost:8000/outgoing",
            json={"destinationNumber": "+15557654321", "deferConnect": True, "systemPrompt": "Hi"},
            timeout=30,
        )

    def test_server_error(self):
        response = MagicMock(status_code=500)
        response.json.return_value = {"error": "Failed to initiate call", "message": "boom"}

        with patch("outbound_call.requests.post", return_value=response):
            assert outbound_call.make_outbound_call("http://localhost:8000", "+1555") is None

    def test_connection_error(self):
        with patch("outbound_call.requests.post", side_effect=requests.ConnectionError("refused")):
            assert outbound_call.make_outbound_call("http://localhost:8000", "+1555") is None


class TestRun:

    def test_missing_ultravox_key_only_warns(self):
        with patch.dict("os.environ", {"ULTRAVOX_API_KEY": "", "PORT": "not-a-port"}), \
                patch("sys.argv", ["run.py"]), \
                patch("run.logger") as mock_logger, \
                patch("run.uvicorn.run") as mock_run:
            run.main()

        mock_run.assert_called_once()
        assert mock_run.call_args.args == ("app.main:app",)
        assert mock_run.call_args.kwargs["port"] == 8000
        warnings = " ".join(c.args[0] for c in mock_logger.warning.call_args_list)
        assert "ULTRAVOX_API_KEY" in warnings

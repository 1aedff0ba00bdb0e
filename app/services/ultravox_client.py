"""
HTTP client for the Ultravox voice-AI API.

Three operations are used by the bridge:
- create_session: create a call and obtain the join URL the telephony leg streams to
- get_corpus_status: read the status of a knowledge corpus
- register_tool: register a tool permanently so calls can reference it by name

Every request is a single attempt; failures are raised to the caller.
"""

import json
import logging
from typing import Any, Dict, Optional

import httpx

from app.config.constants import LOGGER_NAME
from app.config.settings import Settings
from app.models.session import SessionHandle, SessionRequest
from app.models.tools import ToolDefinition

logger = logging.getLogger(LOGGER_NAME)


class RemoteSessionError(Exception):
    """The backend did not produce a usable session (error page, bad body, no join URL)."""


class CorpusCheckError(Exception):
    """The corpus status could not be read."""


def _looks_like_html(body: str) -> bool:
    head = body.lstrip()[:200].lower()
    return head.startswith("<!doctype html") or "<html" in head


class UltravoxClient:
    """
    Thin async wrapper over the Ultravox REST API.

    The underlying httpx.AsyncClient is created lazily unless one is injected, and is
    released by aclose().
    """

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._http = http_client

    @property
    def http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.settings.ultravox_timeout)
        return self._http

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-API-Key": self.settings.ultravox_api_key or "",
        }

    async def create_session(self, request: SessionRequest) -> SessionHandle:
        """
        Create an Ultravox call.

        Args:
            request: Fully assembled session request

        Returns:
            SessionHandle with the join URL

        Raises:
            RemoteSessionError: Transport failure, HTML error page, unparsable body,
                or a body without a joinUrl
        """
        payload = request.to_payload()
        logger.debug(f"Sending request to Ultravox API: {json.dumps(payload)}")

        try:
            response = await self.http.post(
                self.settings.ultravox_api_url, json=payload, headers=self._headers()
            )
        except httpx.HTTPError as e:
            logger.error(f"Ultravox API request error: {e}")
            raise RemoteSessionError(f"Ultravox API request failed: {e}") from e

        body = response.text
        logger.info(f"Ultravox API Status Code: {response.status_code}")
        logger.debug(f"Ultravox API raw response: {body}")

        if _looks_like_html(body):
            logger.error("Received HTML error page instead of JSON")
            raise RemoteSessionError("Received HTML error page from Ultravox API")

        try:
            data = json.loads(body)
        except ValueError as e:
            logger.error(f"Failed to parse Ultravox API response: {e}")
            raise RemoteSessionError(f"Failed to parse response: {e}") from e

        join_url = data.get("joinUrl") if isinstance(data, dict) else None
        if not join_url:
            logger.error(f"Ultravox API did not return a joinUrl: {data}")
            raise RemoteSessionError("Ultravox API did not return a joinUrl")

        logger.info(f"Successfully got join URL: {join_url}")
        return SessionHandle(join_url=join_url, call_id=data.get("callId"))

    async def get_corpus_status(self, corpus_id: str) -> str:
        """
        Read the status string of a corpus.

        Raises:
            CorpusCheckError: On transport errors, non-2xx responses or unexpected bodies
        """
        url = f"{self.settings.ultravox_api_base}/corpora/{corpus_id}"
        try:
            response = await self.http.get(url, headers=self._headers())
            response.raise_for_status()
            corpus = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise CorpusCheckError(f"Error checking corpus status: {e}") from e

        if not isinstance(corpus, dict):
            raise CorpusCheckError(f"Unexpected corpus response: {corpus!r}")

        stats = corpus.get("stats")
        status = stats.get("status") if isinstance(stats, dict) else None
        return status or corpus.get("status") or ""

    async def register_tool(self, tool: ToolDefinition) -> Dict[str, Any]:
        """
        Register a tool with Ultravox.

        Returns:
            The created tool, or {"exists": True} when a tool with that name is already
            registered

        Raises:
            httpx.HTTPError: For any other failure
        """
        url = f"{self.settings.ultravox_api_base}/tools"
        logger.info(f"Registering tool {tool.name} at {url}...")
        response = await self.http.post(url, json=tool.to_registration(), headers=self._headers())

        if response.status_code == 409:
            logger.info(f"Tool {tool.name} already exists")
            return {"exists": True}

        response.raise_for_status()
        logger.info(f"Successfully registered tool: {tool.name}")
        return response.json()

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

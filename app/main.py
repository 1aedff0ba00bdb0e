"""
FastAPI server bridging telephony providers to the Ultravox voice-AI API.

This module wires the application together and exposes its HTTP surface:
- /incoming receives the inbound trigger of the active provider (Twilio voice
  webhook or Telnyx Call Control events)
- /outgoing places an outbound call, either with the session created up front or
  with the session deferred until the callee answers (/direct-connect/{call_key})
- /call-status, /stream-status and /callback acknowledge provider and backend
  notifications
- /media-stream is the companion media WebSocket

All components are built once in create_app() from a frozen Settings object and
kept on app.state.
"""

import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import dotenv
from fastapi import APIRouter, FastAPI, Request, WebSocket
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import ValidationError

from app import __version__
from app.config.logging_config import configure_logging
from app.config.settings import Settings
from app.models.call_state import CallSessionStore
from app.models.session import CallDirection, OutboundCallRequest
from app.services.corpus_gate import CorpusGate
from app.services.prompt_composer import PromptComposer
from app.services.session_negotiator import SessionNegotiator
from app.services.tool_registry import ToolRegistry
from app.services.ultravox_client import UltravoxClient
from app.telephony import create_adapter
from app.telephony.base import InboundResult, TelephonyAdapter
from app.websocket_manager import MediaStreamManager

# Load environment variables from .env file if it exists
env_path = Path(".") / ".env"
if env_path.exists():
    dotenv.load_dotenv(env_path)

settings = Settings.from_env()

# Configure logging
logger = configure_logging(settings.log_level)

# Routes live on a router so that every create_app() call gets them.
router = APIRouter()


async def log_startup_status(app: FastAPI) -> None:
    """Log which credentials are missing and how tools and the corpus are set up."""
    state = app.state
    cfg: Settings = state.settings

    logger.info(f"Telephony provider: {cfg.telephony_provider}")
    for name in cfg.missing_credentials():
        logger.warning(f"{name} is not set; calls that need it will fail")

    registry: ToolRegistry = state.registry
    if cfg.use_tools:
        logger.info(f"Tools enabled; {len(registry)} configured: {', '.join(registry.names()) or 'none'}")
        if cfg.default_tool_names:
            logger.info(f"Tools offered to calls by default: {', '.join(cfg.default_tool_names)}")
    else:
        logger.info("Tools disabled by default (ULTRAVOX_USE_TOOLS is not true)")

    if cfg.corpus_id:
        if not cfg.ultravox_api_key:
            logger.warning(f"Corpus {cfg.corpus_id} configured but ULTRAVOX_API_KEY is missing")
        elif await state.corpus_gate.is_ready(cfg.corpus_id):
            logger.info(f"Corpus {cfg.corpus_id} is ready")
        else:
            logger.warning(f"Corpus {cfg.corpus_id} is not ready; calls will run without it")
    else:
        logger.info("No knowledge corpus configured")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await log_startup_status(app)
    yield
    await app.state.adapter.aclose()
    await app.state.ultravox_client.aclose()
    logger.info("Clients closed")


def create_app(
    app_settings: Optional[Settings] = None,
    tool_source: Optional[Mapping[str, str]] = None,
    ultravox_client: Optional[UltravoxClient] = None,
    adapter: Optional[TelephonyAdapter] = None,
) -> FastAPI:
    """
    Build the FastAPI application and its components.

    Args:
        app_settings: Settings to use, defaults to the module settings read from the environment
        tool_source: Mapping holding the ULTRAVOX_TOOL_<n>_* slots, defaults to os.environ
        ultravox_client: Backend client, injectable for tests
        adapter: Telephony adapter, defaults to the one for the configured provider

    Returns:
        The configured FastAPI application
    """
    cfg = app_settings or settings

    application = FastAPI(
        title="Voice Bridge",
        description="Bridges Twilio and Telnyx phone calls to Ultravox voice-AI sessions",
        version=__version__,
        lifespan=lifespan,
    )

    client = ultravox_client or UltravoxClient(cfg)
    registry = ToolRegistry.load(os.environ if tool_source is None else tool_source)
    corpus_gate = CorpusGate(client)
    negotiator = SessionNegotiator(cfg, registry, PromptComposer(cfg), corpus_gate, client)
    call_store = CallSessionStore(ttl_seconds=cfg.pending_call_ttl)

    application.state.settings = cfg
    application.state.ultravox_client = client
    application.state.registry = registry
    application.state.corpus_gate = corpus_gate
    application.state.negotiator = negotiator
    application.state.call_store = call_store
    application.state.adapter = adapter or create_adapter(cfg, negotiator, call_store)
    application.state.media_manager = MediaStreamManager()

    application.include_router(router)
    return application


def _base_url(request: Request) -> str:
    cfg: Settings = request.app.state.settings
    return cfg.public_base_url or str(request.base_url).rstrip("/")


async def _read_payload(request: Request) -> Dict[str, Any]:
    """Decode a provider webhook body, JSON or form encoded."""
    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            body = await request.json()
        except ValueError:
            logger.warning("Received webhook with an invalid JSON body")
            return {}
        return body if isinstance(body, dict) else {}
    form = await request.form()
    return dict(form)


def _to_response(result: InboundResult) -> Response:
    if isinstance(result.body, str):
        return Response(content=result.body, media_type=result.media_type)
    return JSONResponse(content=result.body)


@router.get("/")
async def root():
    """Basic information about the service."""
    return {
        "name": "Voice Bridge",
        "description": "Bridges phone calls to Ultravox voice-AI sessions",
        "version": __version__,
        "endpoints": {
            "/incoming": "Inbound call webhook",
            "/outgoing": "Place an outbound call",
            "/health": "Health check endpoint",
            "/media-stream": "Media stream WebSocket",
        },
    }


@router.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint for monitoring.

    Returns:
        dict: Status, timestamp, version and which external services are configured
    """
    state = request.app.state
    cfg: Settings = state.settings
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "provider": cfg.telephony_provider,
        "services": {
            cfg.telephony_provider: state.adapter.is_configured(),
            "ultravox": bool(cfg.ultravox_api_key),
        },
        "pending_calls": len(state.call_store),
        "active_streams": len(state.media_manager.stream_manager.get_all_streams()),
    }


@router.post("/incoming")
async def incoming_call(request: Request):
    """Inbound trigger of the active provider; always answered with a valid protocol response."""
    payload = await _read_payload(request)
    result = await request.app.state.adapter.accept_inbound(payload)
    logger.info(f"Inbound trigger for call {result.call_id} handled: {result.handled}")
    return _to_response(result)


@router.post("/outgoing")
async def outgoing_call(request: Request):
    """
    Place an outbound call.

    The JSON body carries destinationNumber plus optional systemPrompt, voiceId,
    corpusId, tools, agentName and deferConnect. With deferConnect the session is
    only created once the callee answers.
    """
    state = request.app.state
    cfg: Settings = state.settings
    adapter: TelephonyAdapter = state.adapter

    try:
        call_request = OutboundCallRequest.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        return JSONResponse(status_code=400, content={"error": "Invalid request body", "message": str(e)})

    destination = call_request.destinationNumber
    if not destination:
        return JSONResponse(status_code=400, content={"error": "Destination phone number is required"})

    if not adapter.is_configured():
        missing = ", ".join(cfg.missing_credentials())
        return JSONResponse(
            status_code=500,
            content={
                "error": f"{cfg.telephony_provider.capitalize()} credentials not properly configured",
                "message": f"Missing configuration: {missing}. Check your .env file.",
            },
        )

    base_url = _base_url(request)
    status_callback = f"{base_url}/call-status"
    logger.info(f"Creating {'deferred ' if call_request.deferConnect else ''}outbound call to {destination}...")

    context = None
    try:
        if call_request.deferConnect:
            context = adapter.store_pending(
                call_request.systemPrompt or cfg.outbound_prompt,
                persona_name=call_request.agentName,
                voice=call_request.voiceId,
                corpus_id=call_request.corpusId,
                tool_names=call_request.tools,
            )
            call_sid = await adapter.originate_deferred(
                destination, context.call_key, base_url, status_callback
            )
        else:
            handle = await state.negotiator.negotiate(
                CallDirection.OUTBOUND,
                explicit_prompt=call_request.systemPrompt,
                persona_name=call_request.agentName,
                voice_override=call_request.voiceId,
                corpus_override=call_request.corpusId,
                tool_names=call_request.tools,
            )
            logger.info(f"Got Ultravox join URL: {handle.join_url}")
            call_sid = await adapter.originate_outbound(destination, handle, status_callback)
    except Exception as e:
        logger.error(f"Error initiating outgoing call: {e}", exc_info=True)
        if context is not None:
            state.call_store.discard(context.call_key)
        return JSONResponse(
            status_code=500, content={"error": "Failed to initiate call", "message": str(e)}
        )

    tools = call_request.tools if call_request.tools is not None else list(cfg.default_tool_names)
    return {
        "success": True,
        "message": "Call initiated successfully",
        "callSid": call_sid,
        "configuration": {
            "voiceId": call_request.voiceId or cfg.voice_id,
            "corpusId": call_request.corpusId or cfg.corpus_id,
            "tools": tools,
            "agentName": call_request.agentName or cfg.persona_name,
            "deferConnect": call_request.deferConnect,
        },
    }


@router.post("/direct-connect/{call_key}")
async def direct_connect(call_key: str, request: Request):
    """Connect a deferred outbound call once the callee has answered."""
    payload = await _read_payload(request)
    result = await request.app.state.adapter.connect_deferred(call_key, payload)
    return _to_response(result)


@router.post("/call-status")
async def call_status(request: Request):
    logger.info(f"Call status update: {await _read_payload(request)}")
    return PlainTextResponse("OK")


@router.post("/stream-status")
async def stream_status(request: Request):
    logger.info(f"Stream status update: {await _read_payload(request)}")
    return PlainTextResponse("OK")


@router.post("/callback")
async def backend_callback(request: Request):
    """Webhook for call events from Ultravox."""
    logger.info(f"Received callback from Ultravox: {await _read_payload(request)}")
    return PlainTextResponse("Event received")


@router.websocket("/media-stream")
async def media_stream(websocket: WebSocket):
    """Media stream WebSocket opened by the telephony provider."""
    await websocket.app.state.media_manager.handle_websocket(websocket)


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting server on http://{settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, http="h11")

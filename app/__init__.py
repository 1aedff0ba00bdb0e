"""
Voice Bridge - Telephony to Ultravox voice-AI bridge

This application connects phone calls placed through Twilio or Telnyx to
conversational voice-AI sessions hosted by Ultravox. For every call it assembles
the session configuration (prompt, persona, voice, tools, knowledge corpus),
creates the session and tells the telephony provider to stream the call's media
to it.

Architecture Overview:
- FastAPI server exposing the provider webhooks and a small control API
- Provider adapters hiding the synchronous (TwiML) and asynchronous (Call Control)
  call setup models behind one interface
- Short-lived per-call state for deferred outbound calls and webhook ordering

Key Components:
- config: Settings, constants and logging setup
- models: Pydantic models for tools, sessions, webhooks and per-call state
- services: Tool registry, prompt composer, corpus gate, session negotiator and
  the Ultravox client
- telephony: Twilio and Telnyx adapters
- handlers / websocket_manager: The companion media stream WebSocket

Getting Started:
1. Set up environment variables (or a .env file):
   - ULTRAVOX_API_KEY: Your Ultravox API key
   - TELEPHONY_PROVIDER: twilio (default) or telnyx
   - TWILIO_* or TELNYX_* credentials for the chosen provider
   - PUBLIC_BASE_URL: Externally reachable URL of this server
2. Run the server: python run.py
3. Point the provider's voice webhook at <PUBLIC_BASE_URL>/incoming
"""

__version__ = "1.0.0"

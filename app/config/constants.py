"""
Constants and configuration values used throughout the application.

This module defines constants that are used across different parts of the application,
providing a centralized location for configuration values and making it easier to
maintain consistent naming throughout the codebase.
"""

# Logger name used throughout the application
LOGGER_NAME = "voice_bridge"

# Ultravox defaults
DEFAULT_ULTRAVOX_API_URL = "https://api.ultravox.ai/api/calls"
DEFAULT_ULTRAVOX_MODEL = "fixie-ai/ultravox-70B"
DEFAULT_VOICE_ID = "3abe60f5-13ed-4e82-ac15-4391d9e5cd9d"
DEFAULT_TEMPERATURE = 0.3
DEFAULT_PERSONA_NAME = "Jimothy"

# First speaker roles
FIRST_SPEAKER_AGENT = "FIRST_SPEAKER_AGENT"
FIRST_SPEAKER_USER = "FIRST_SPEAKER_USER"

# Tool configuration
MAX_TOOL_SLOTS = 10
TOOL_ENV_PREFIX = "ULTRAVOX_TOOL_"
END_CALL_TOOL_NAME = "hangUp"
QUERY_CORPUS_TOOL_NAME = "queryCorpus"
CORPUS_MAX_RESULTS = 5

# Corpus status values
CORPUS_STATUS_READY = "CORPUS_STATUS_READY"

# Persona placeholder substituted into prompts
PERSONA_PLACEHOLDER = "{AI_NAME}"

# Telephony providers
PROVIDER_TWILIO = "twilio"
PROVIDER_TELNYX = "telnyx"
SUPPORTED_PROVIDERS = (PROVIDER_TWILIO, PROVIDER_TELNYX)

DEFAULT_TELNYX_API_URL = "https://api.telnyx.com/v2"

# Telnyx call control event types
TELNYX_EVENT_CALL_INITIATED = "call.initiated"
TELNYX_EVENT_CALL_ANSWERED = "call.answered"
TELNYX_EVENT_CALL_HANGUP = "call.hangup"
TELNYX_EVENT_STREAMING_STARTED = "streaming.started"
TELNYX_EVENT_STREAMING_STOPPED = "streaming.stopped"

# Media stream event types
MEDIA_EVENT_CONNECTED = "connected"
MEDIA_EVENT_START = "start"
MEDIA_EVENT_MEDIA = "media"
MEDIA_EVENT_MARK = "mark"
MEDIA_EVENT_CLEAR = "clear"
MEDIA_EVENT_DTMF = "dtmf"
MEDIA_EVENT_STOP = "stop"

# Spoken apologies used when a call cannot be bridged
INBOUND_APOLOGY = "Sorry, there was an error processing your call."
DEFERRED_CONNECT_APOLOGY = (
    "Sorry, we were unable to connect to our AI assistant at this time. "
    "Please try again later."
)

# Seconds a pending outbound prompt is kept before it is discarded
DEFAULT_PENDING_CALL_TTL = 300

"""
Immutable application settings.

Settings are read from the process environment exactly once, at startup, and the
resulting frozen object is handed to every component that needs configuration.
Business logic never reads environment variables on its own.
"""

import logging
import os
from typing import Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.config.constants import (
    DEFAULT_PENDING_CALL_TTL,
    DEFAULT_PERSONA_NAME,
    DEFAULT_TELNYX_API_URL,
    DEFAULT_TEMPERATURE,
    DEFAULT_ULTRAVOX_API_URL,
    DEFAULT_ULTRAVOX_MODEL,
    DEFAULT_VOICE_ID,
    FIRST_SPEAKER_AGENT,
    FIRST_SPEAKER_USER,
    LOGGER_NAME,
    PROVIDER_TELNYX,
    PROVIDER_TWILIO,
    SUPPORTED_PROVIDERS,
)

logger = logging.getLogger(LOGGER_NAME)

DEFAULT_INBOUND_PROMPT = (
    "You are {AI_NAME}, a friendly phone assistant answering an incoming call. "
    "Greet the caller, find out how you can help and keep your answers short."
)
DEFAULT_OUTBOUND_PROMPT = (
    "You are {AI_NAME}, a friendly phone assistant placing a call. "
    "Wait for the other person to speak, introduce yourself and explain why you are calling."
)
DEFAULT_OPERATIONAL_GUIDANCE = """Important: You have access to several tools that enhance your capabilities. Always use these tools when relevant to provide accurate and up-to-date information. When using tools:
1. Use them proactively when relevant to the conversation
2. Format the information naturally in your responses
3. Don't mention that you're using a tool - just provide the information
4. If a tool call fails, gracefully inform the user you're unable to get that information right now
5. When the conversation is finished, say goodbye politely before using the hangUp tool to end the call"""


class ConfigurationError(Exception):
    """Raised when an operation needs a credential or setting that is not configured."""


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_list(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _parse_float(value: Optional[str], default: float) -> float:
    try:
        return float(value) if value else default
    except ValueError:
        logger.warning(f"Invalid numeric setting {value!r}, using {default}")
        return default


def _parse_int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value else default
    except ValueError:
        logger.warning(f"Invalid integer setting {value!r}, using {default}")
        return default


def _parse_temperature(value: Optional[str]) -> float:
    temperature = _parse_float(value, DEFAULT_TEMPERATURE)
    if not 0.0 <= temperature <= 1.0:
        logger.warning(f"AI_TEMPERATURE {temperature} is outside 0.0-1.0, using {DEFAULT_TEMPERATURE}")
        return DEFAULT_TEMPERATURE
    return temperature


def _parse_provider(value: Optional[str]) -> str:
    provider = (value or PROVIDER_TWILIO).strip().lower()
    if provider not in SUPPORTED_PROVIDERS:
        logger.warning(
            f"Unsupported TELEPHONY_PROVIDER {value!r}, expected one of {SUPPORTED_PROVIDERS}; "
            f"using {PROVIDER_TWILIO}"
        )
        return PROVIDER_TWILIO
    return provider


def _parse_first_speaker(value: Optional[str], default: str) -> str:
    if value and value not in (FIRST_SPEAKER_AGENT, FIRST_SPEAKER_USER):
        logger.warning(f"Unknown first speaker {value!r}, using {default}")
        return default
    return value or default


class Settings(BaseModel):
    """Application configuration, constructed once and shared read-only."""

    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    public_base_url: Optional[str] = None

    telephony_provider: str = PROVIDER_TWILIO

    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_phone_number: Optional[str] = None

    telnyx_api_key: Optional[str] = None
    telnyx_connection_id: Optional[str] = None
    telnyx_phone_number: Optional[str] = None
    telnyx_api_url: str = DEFAULT_TELNYX_API_URL
    telnyx_timeout: float = 10.0

    ultravox_api_key: Optional[str] = None
    ultravox_api_url: str = DEFAULT_ULTRAVOX_API_URL
    ultravox_model: str = DEFAULT_ULTRAVOX_MODEL
    ultravox_timeout: float = 15.0
    corpus_id: Optional[str] = None
    recording_enabled: bool = True

    use_tools: bool = False
    default_tool_names: Tuple[str, ...] = ()
    use_permanent_tools: bool = False
    tool_guidelines: str = ""
    tool_operational_guidance: str = DEFAULT_OPERATIONAL_GUIDANCE
    tools_to_register: Tuple[str, ...] = ()

    persona_name: str = DEFAULT_PERSONA_NAME
    voice_id: str = DEFAULT_VOICE_ID
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=1.0)
    inbound_prompt: str = DEFAULT_INBOUND_PROMPT
    outbound_prompt: str = DEFAULT_OUTBOUND_PROMPT
    inbound_first_speaker: str = FIRST_SPEAKER_AGENT
    outbound_first_speaker: str = FIRST_SPEAKER_USER

    pending_call_ttl: float = DEFAULT_PENDING_CALL_TTL

    @field_validator("telephony_provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        provider = v.strip().lower()
        if provider not in SUPPORTED_PROVIDERS:
            raise ValueError(f"Unsupported telephony provider {v!r}, expected one of {SUPPORTED_PROVIDERS}")
        return provider

    @field_validator("inbound_first_speaker", "outbound_first_speaker")
    @classmethod
    def validate_first_speaker(cls, v: str) -> str:
        if v not in (FIRST_SPEAKER_AGENT, FIRST_SPEAKER_USER):
            raise ValueError(f"Unknown first speaker {v!r}")
        return v

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from an environment mapping.

        Malformed values are logged and replaced by their defaults, so a bad .env never
        stops the service from starting.

        Args:
            environ: Mapping to read from, defaults to os.environ

        Returns:
            A frozen Settings instance
        """
        env = os.environ if environ is None else environ
        get = env.get

        return cls(
            host=get("HOST", "0.0.0.0"),
            port=_parse_int(get("PORT"), 8000),
            log_level=get("LOG_LEVEL", "INFO").upper(),
            public_base_url=(get("PUBLIC_BASE_URL") or "").rstrip("/") or None,
            telephony_provider=_parse_provider(get("TELEPHONY_PROVIDER")),
            twilio_account_sid=get("TWILIO_ACCOUNT_SID") or None,
            twilio_auth_token=get("TWILIO_AUTH_TOKEN") or None,
            twilio_phone_number=get("TWILIO_PHONE_NUMBER") or None,
            telnyx_api_key=get("TELNYX_API_KEY") or None,
            telnyx_connection_id=get("TELNYX_CONNECTION_ID") or None,
            telnyx_phone_number=get("TELNYX_PHONE_NUMBER") or None,
            telnyx_api_url=(get("TELNYX_API_URL") or DEFAULT_TELNYX_API_URL).rstrip("/"),
            telnyx_timeout=_parse_float(get("TELNYX_TIMEOUT_SECONDS"), 10.0),
            ultravox_api_key=get("ULTRAVOX_API_KEY") or None,
            ultravox_api_url=(get("ULTRAVOX_API_URL") or DEFAULT_ULTRAVOX_API_URL).rstrip("/"),
            ultravox_model=get("ULTRAVOX_MODEL") or DEFAULT_ULTRAVOX_MODEL,
            ultravox_timeout=_parse_float(get("ULTRAVOX_TIMEOUT_SECONDS"), 15.0),
            corpus_id=get("ULTRAVOX_CORPUS_ID") or None,
            recording_enabled=_parse_bool(get("ULTRAVOX_RECORDING_ENABLED"), default=True),
            use_tools=_parse_bool(get("ULTRAVOX_USE_TOOLS")),
            default_tool_names=_parse_list(get("ULTRAVOX_CALL_TOOLS")),
            use_permanent_tools=_parse_bool(get("ULTRAVOX_USE_PERMANENT_TOOLS")),
            tool_guidelines=get("ULTRAVOX_TOOL_GUIDELINES", ""),
            tool_operational_guidance=get("ULTRAVOX_TOOL_OPERATIONAL_GUIDANCE") or DEFAULT_OPERATIONAL_GUIDANCE,
            tools_to_register=_parse_list(get("ULTRAVOX_TOOLS_TO_REGISTER")),
            persona_name=get("AI_ASSISTANT_NAME") or DEFAULT_PERSONA_NAME,
            voice_id=get("AI_ASSISTANT_VOICE_ID") or DEFAULT_VOICE_ID,
            temperature=_parse_temperature(get("AI_TEMPERATURE")),
            inbound_prompt=get("INBOUND_SYSTEM_PROMPT") or DEFAULT_INBOUND_PROMPT,
            outbound_prompt=get("OUTBOUND_SYSTEM_PROMPT") or DEFAULT_OUTBOUND_PROMPT,
            inbound_first_speaker=_parse_first_speaker(get("INBOUND_FIRST_SPEAKER"), FIRST_SPEAKER_AGENT),
            outbound_first_speaker=_parse_first_speaker(get("OUTBOUND_FIRST_SPEAKER"), FIRST_SPEAKER_USER),
            pending_call_ttl=_parse_float(get("PENDING_CALL_TTL_SECONDS"), DEFAULT_PENDING_CALL_TTL),
        )

    @property
    def ultravox_api_base(self) -> str:
        """Base Ultravox API URL, i.e. the calls endpoint without its trailing /calls."""
        url = self.ultravox_api_url.rstrip("/")
        if url.endswith("/calls"):
            url = url[: -len("/calls")]
        return url

    def _credentials(self) -> Dict[str, Optional[str]]:
        return {
            "ULTRAVOX_API_KEY": self.ultravox_api_key,
            "TWILIO_ACCOUNT_SID": self.twilio_account_sid,
            "TWILIO_AUTH_TOKEN": self.twilio_auth_token,
            "TWILIO_PHONE_NUMBER": self.twilio_phone_number,
            "TELNYX_API_KEY": self.telnyx_api_key,
            "TELNYX_CONNECTION_ID": self.telnyx_connection_id,
            "TELNYX_PHONE_NUMBER": self.telnyx_phone_number,
        }

    def missing_credentials(self) -> List[str]:
        """Names of the credentials the active provider and the voice backend still need."""
        prefix = "TWILIO_" if self.telephony_provider == PROVIDER_TWILIO else "TELNYX_"
        return [
            name for name, value in self._credentials().items()
            if not value and (name == "ULTRAVOX_API_KEY" or name.startswith(prefix))
        ]

    def require(self, *names: str) -> None:
        """
        Raise ConfigurationError if any of the named settings are unset.

        Args:
            names: Credential environment variable names, e.g. "TELNYX_API_KEY"
        """
        credentials = self._credentials()
        missing = [name for name in names if not credentials.get(name)]
        if missing:
            raise ConfigurationError(
                f"Missing configuration: {', '.join(missing)}. Check your .env file."
            )

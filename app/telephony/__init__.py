"""
Telephony provider adapters.

- base: the TelephonyAdapter interface, InboundResult and provider errors
- twilio_adapter: TwiML-based synchronous call setup
- telnyx_adapter: webhook-driven Call Control call setup

create_adapter() picks the adapter named by TELEPHONY_PROVIDER once at startup.
"""

from app.config.constants import PROVIDER_TELNYX, PROVIDER_TWILIO
from app.config.settings import ConfigurationError, Settings
from app.models.call_state import CallSessionStore
from app.services.session_negotiator import SessionNegotiator
from app.telephony.base import TelephonyAdapter
from app.telephony.telnyx_adapter import TelnyxAdapter
from app.telephony.twilio_adapter import TwilioAdapter


def create_adapter(
    settings: Settings,
    negotiator: SessionNegotiator,
    call_store: CallSessionStore,
) -> TelephonyAdapter:
    """
    Build the adapter for the configured telephony provider.

    Raises:
        ConfigurationError: If the provider is not supported
    """
    if settings.telephony_provider == PROVIDER_TWILIO:
        return TwilioAdapter(settings, negotiator, call_store)
    if settings.telephony_provider == PROVIDER_TELNYX:
        return TelnyxAdapter(settings, negotiator, call_store)
    raise ConfigurationError(f"Unsupported telephony provider: {settings.telephony_provider}")

"""
Short-lived per-call state shared between request handlers.

Two stores live here:
- CallSessionStore keeps the prompt (and overrides) of an outbound call placed through
  the deferred-connect path until the telephony leg asks to be connected. Each entry
  can be taken exactly once.
- InboundCallTracker follows an asynchronous provider's call through its
  UNINITIATED -> INITIATED -> ANSWERED -> STREAMING | FAILED lifecycle so that
  duplicated or reordered webhook deliveries can be recognised.

Both are process-local, guarded by a lock, and drop entries older than a TTL so that
calls abandoned before connecting do not accumulate.
"""

import logging
import threading
import time
from enum import Enum
from typing import Callable, Dict, Generic, Optional, Tuple, TypeVar

from pydantic import BaseModel, ConfigDict

from app.config.constants import DEFAULT_PENDING_CALL_TTL, LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)

V = TypeVar("V")


class PendingContextNotFound(KeyError):
    """No pending context exists for the key: never stored, already taken, or expired."""

    def __init__(self, call_key: str):
        super().__init__(call_key)
        self.call_key = call_key

    def __str__(self) -> str:
        return f"No system prompt found for call ID {self.call_key}"


class PendingCallContext(BaseModel):
    """What is needed to negotiate a session once a deferred outbound leg connects."""

    model_config = ConfigDict(frozen=True)

    call_key: str
    system_prompt: str
    agent_persona_name: Optional[str] = None
    voice: Optional[str] = None
    corpus_id: Optional[str] = None
    tool_names: Optional[Tuple[str, ...]] = None


class InboundCallState(str, Enum):
    UNINITIATED = "uninitiated"
    INITIATED = "initiated"
    ANSWERED = "answered"
    STREAMING = "streaming"
    FAILED = "failed"


# Allowed transitions; ANSWERED may be reached directly when the provider skips the
# initiated notification.
_TRANSITIONS = {
    InboundCallState.UNINITIATED: {InboundCallState.INITIATED, InboundCallState.ANSWERED},
    InboundCallState.INITIATED: {InboundCallState.ANSWERED, InboundCallState.FAILED},
    InboundCallState.ANSWERED: {InboundCallState.STREAMING, InboundCallState.FAILED},
    InboundCallState.STREAMING: set(),
    InboundCallState.FAILED: set(),
}


class _ExpiringMap(Generic[V]):
    """Dictionary whose entries expire ttl seconds after they were written."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float]):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, V]] = {}
        self.lock = threading.Lock()

    def _expired(self, written_at: float) -> bool:
        return self.ttl_seconds > 0 and self._clock() - written_at > self.ttl_seconds

    def prune(self) -> int:
        """Drop expired entries. Caller must hold the lock."""
        stale = [key for key, (written_at, _) in self._entries.items() if self._expired(written_at)]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def set(self, key: str, value: V) -> None:
        self._entries[key] = (self._clock(), value)

    def get(self, key: str) -> Optional[V]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        written_at, value = entry
        if self._expired(written_at):
            del self._entries[key]
            return None
        return value

    def pop(self, key: str) -> Optional[V]:
        value = self.get(key)
        if value is not None:
            del self._entries[key]
        return value

    def __len__(self) -> int:
        return len(self._entries)


class CallSessionStore:
    """
    Keyed store of pending outbound call contexts with take-once semantics.

    A context is written when a deferred outbound call is placed and consumed when the
    telephony leg requests its connection. A miss is always an error for the caller.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_PENDING_CALL_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            ttl_seconds: Lifetime of an untaken entry; 0 keeps entries until taken
            clock: Monotonic time source, injectable for tests
        """
        self._entries: _ExpiringMap[PendingCallContext] = _ExpiringMap(ttl_seconds, clock)

    def put(self, context: PendingCallContext) -> None:
        with self._entries.lock:
            dropped = self._entries.prune()
            if dropped:
                logger.info(f"Discarded {dropped} abandoned pending call context(s)")
            self._entries.set(context.call_key, context)
        logger.debug(f"Stored pending context for call key {context.call_key}")

    def take_once(self, call_key: str) -> PendingCallContext:
        """
        Remove and return the context stored under call_key.

        Raises:
            PendingContextNotFound: If nothing (unexpired) is stored under the key
        """
        with self._entries.lock:
            context = self._entries.pop(call_key)
        if context is None:
            raise PendingContextNotFound(call_key)
        return context

    def discard(self, call_key: str) -> bool:
        """Drop the context for a call that will never connect; True if one was stored."""
        with self._entries.lock:
            return self._entries.pop(call_key) is not None

    def prune(self) -> int:
        with self._entries.lock:
            return self._entries.prune()

    def __len__(self) -> int:
        with self._entries.lock:
            return len(self._entries)


class InboundCallTracker:
    """Per-call lifecycle state for providers that notify through separate webhook events."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_PENDING_CALL_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._states: _ExpiringMap[InboundCallState] = _ExpiringMap(ttl_seconds, clock)

    def state(self, call_id: str) -> InboundCallState:
        with self._states.lock:
            return self._states.get(call_id) or InboundCallState.UNINITIATED

    def advance(self, call_id: str, new_state: InboundCallState) -> bool:
        """
        Move a call to new_state if the lifecycle allows it.

        Returns:
            True if the transition happened, False if it was rejected
        """
        with self._states.lock:
            self._states.prune()
            current = self._states.get(call_id) or InboundCallState.UNINITIATED
            if new_state not in _TRANSITIONS[current]:
                return False
            self._states.set(call_id, new_state)
            return True

    def forget(self, call_id: str) -> None:
        with self._states.lock:
            self._states.pop(call_id)

    def __len__(self) -> int:
        with self._states.lock:
            return len(self._states)

import threading

import pytest

from app.models.call_state import (
    CallSessionStore,
    InboundCallState,
    InboundCallTracker,
    PendingCallContext,
    PendingContextNotFound,
)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def context(key="key-1", prompt="Call about the invoice."):
    return PendingCallContext(call_key=key, system_prompt=prompt, agent_persona_name="Ada")


class TestCallSessionStore:

    def test_take_once_returns_stored_context(self, call_store):
        call_store.put(context())
        taken = call_store.take_once("key-1")
        assert taken.system_prompt == "Call about the invoice."
        assert taken.agent_persona_name == "Ada"
        assert len(call_store) == 0

    def test_take_without_put_fails(self, call_store):
        with pytest.raises(PendingContextNotFound) as exc_info:
            call_store.take_once("unknown")
        assert exc_info.value.call_key == "unknown"
        assert "unknown" in str(exc_info.value)

    def test_second_take_fails(self, call_store):
        call_store.put(context())
        call_store.take_once("key-1")
        with pytest.raises(PendingContextNotFound):
            call_store.take_once("key-1")

    def test_entries_expire(self):
        clock = FakeClock()
        store = CallSessionStore(ttl_seconds=60, clock=clock)
        store.put(context())
        clock.now += 61
        with pytest.raises(PendingContextNotFound):
            store.take_once("key-1")

    def test_put_prunes_expired_entries(self):
        clock = FakeClock()
        store = CallSessionStore(ttl_seconds=60, clock=clock)
        store.put(context("old"))
        clock.now += 61
        store.put(context("new"))
        assert len(store) == 1

    def test_zero_ttl_never_expires(self):
        clock = FakeClock()
        store = CallSessionStore(ttl_seconds=0, clock=clock)
        store.put(context())
        clock.now += 10 ** 6
        assert store.take_once("key-1").call_key == "key-1"

    def test_discard(self, call_store):
        call_store.put(context())
        assert call_store.discard("key-1") is True
        assert call_store.discard("key-1") is False

    def test_concurrent_takes_succeed_exactly_once(self, call_store):
        call_store.put(context())
        results = []

        def take():
            try:
                call_store.take_once("key-1")
                results.append("taken")
            except PendingContextNotFound:
                results.append("missing")

        threads = [threading.Thread(target=take) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count("taken") == 1
        assert results.count("missing") == 7


class TestInboundCallTracker:

    def test_unknown_call_is_uninitiated(self):
        assert InboundCallTracker().state("c1") == InboundCallState.UNINITIATED

    def test_full_lifecycle(self):
        tracker = InboundCallTracker()
        assert tracker.advance("c1", InboundCallState.INITIATED)
        assert tracker.advance("c1", InboundCallState.ANSWERED)
        assert tracker.advance("c1", InboundCallState.STREAMING)
        assert tracker.state("c1") == InboundCallState.STREAMING

    def test_answered_without_initiated(self):
        tracker = InboundCallTracker()
        assert tracker.advance("c1", InboundCallState.ANSWERED)

    def test_duplicate_events_rejected(self):
        tracker = InboundCallTracker()
        tracker.advance("c1", InboundCallState.INITIATED)
        assert not tracker.advance("c1", InboundCallState.INITIATED)
        tracker.advance("c1", InboundCallState.ANSWERED)
        assert not tracker.advance("c1", InboundCallState.ANSWERED)

    def test_terminal_states(self):
        tracker = InboundCallTracker()
        tracker.advance("c1", InboundCallState.ANSWERED)
        tracker.advance("c1", InboundCallState.FAILED)
        assert not tracker.advance("c1", InboundCallState.STREAMING)
        assert not tracker.advance("c1", InboundCallState.ANSWERED)

    def test_forget(self):
        tracker = InboundCallTracker()
        tracker.advance("c1", InboundCallState.INITIATED)
        tracker.forget("c1")
        assert tracker.state("c1") == InboundCallState.UNINITIATED
        assert len(tracker) == 0

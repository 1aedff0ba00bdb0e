from unittest.mock import AsyncMock, MagicMock

import pytest

from app.services.corpus_gate import CorpusGate
from app.services.ultravox_client import CorpusCheckError, UltravoxClient


def gate_with(status=None, error=None):
    client = MagicMock(spec=UltravoxClient)
    client.get_corpus_status = AsyncMock(return_value=status, side_effect=error)
    return CorpusGate(client), client


@pytest.mark.asyncio
class TestCorpusGate:

    async def test_ready_status(self):
        gate, client = gate_with("CORPUS_STATUS_READY")
        assert await gate.is_ready("corpus-1") is True
        client.get_corpus_status.assert_awaited_once_with("corpus-1")

    async def test_other_status_not_ready(self):
        gate, _ = gate_with("CORPUS_STATUS_UPDATING")
        assert await gate.is_ready("corpus-1") is False

    async def test_empty_status_not_ready(self):
        gate, _ = gate_with("")
        assert await gate.is_ready("corpus-1") is False

    async def test_check_error_degrades(self):
        gate, _ = gate_with(error=CorpusCheckError("boom"))
        assert await gate.is_ready("corpus-1") is False

    async def test_unexpected_error_degrades(self):
        gate, _ = gate_with(error=RuntimeError("boom"))
        assert await gate.is_ready("corpus-1") is False

    async def test_never_cached(self):
        gate, client = gate_with("CORPUS_STATUS_READY")
        await gate.is_ready("corpus-1")
        client.get_corpus_status.return_value = "CORPUS_STATUS_EMPTY"
        assert await gate.is_ready("corpus-1") is False
        assert client.get_corpus_status.await_count == 2

"""
Decides whether a knowledge corpus may be attached to a call.

A corpus that is not ready, or whose status cannot be read, is simply left out of
the session; the call goes ahead without it.
"""

import logging

from app.config.constants import CORPUS_STATUS_READY, LOGGER_NAME
from app.services.ultravox_client import CorpusCheckError, UltravoxClient

logger = logging.getLogger(LOGGER_NAME)


class CorpusGate:
    """Checks corpus readiness once per negotiation. Results are never cached."""

    def __init__(self, client: UltravoxClient):
        self.client = client

    async def is_ready(self, corpus_id: str) -> bool:
        """
        Args:
            corpus_id: Corpus to check

        Returns:
            True only if the backend reports CORPUS_STATUS_READY
        """
        try:
            status = await self.client.get_corpus_status(corpus_id)
        except CorpusCheckError as e:
            logger.error(f"Error verifying corpus {corpus_id}: {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error verifying corpus {corpus_id}: {e}", exc_info=True)
            return False

        if status == CORPUS_STATUS_READY:
            return True

        logger.warning(f"Corpus {corpus_id} not in READY state ({status or 'unknown'})")
        return False

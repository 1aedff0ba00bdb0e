"""
WebSocket connection manager for the media stream channel.

Telephony providers open a WebSocket to /media-stream and send JSON frames tagged
by an "event" field. This module accepts the connection, routes each frame to its
handler and writes back whatever the handler returns. Media frames take a fast path
because they make up nearly all traffic.
"""

import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Union

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from app.config.constants import (
    LOGGER_NAME,
    MEDIA_EVENT_CLEAR,
    MEDIA_EVENT_CONNECTED,
    MEDIA_EVENT_DTMF,
    MEDIA_EVENT_MARK,
    MEDIA_EVENT_MEDIA,
    MEDIA_EVENT_START,
    MEDIA_EVENT_STOP,
)
from app.handlers.media_handlers import (
    handle_clear,
    handle_connected,
    handle_dtmf,
    handle_mark,
    handle_media,
    handle_start,
    handle_stop,
)
from app.models.stream import StreamManager

logger = logging.getLogger(LOGGER_NAME)

# Type hint for handler functions
HandlerFunc = Callable[
    [Dict[str, Any], WebSocket, StreamManager],
    Awaitable[Optional[Union[Dict[str, Any], BaseModel]]],
]


class MediaStreamManager:
    """Routes media stream frames to handlers based on the frame's "event" field."""

    def __init__(self, stream_manager: Optional[StreamManager] = None):
        self.stream_manager = stream_manager or StreamManager()

        self.handlers: Dict[str, HandlerFunc] = {
            MEDIA_EVENT_CONNECTED: handle_connected,
            MEDIA_EVENT_START: handle_start,
            MEDIA_EVENT_MEDIA: handle_media,
            MEDIA_EVENT_MARK: handle_mark,
            MEDIA_EVENT_CLEAR: handle_clear,
            MEDIA_EVENT_DTMF: handle_dtmf,
            MEDIA_EVENT_STOP: handle_stop,
        }

    async def _send(self, websocket: WebSocket, response: Union[Dict[str, Any], BaseModel]) -> None:
        if isinstance(response, BaseModel):
            await websocket.send_text(response.model_dump_json(exclude_none=True))
        else:
            await websocket.send_text(json.dumps(response))

    async def handle_websocket(self, websocket: WebSocket) -> None:
        """
        Serve one media stream connection until the far end stops or disconnects.

        Args:
            websocket: The FastAPI WebSocket connection object
        """
        await websocket.accept()
        logger.info("Media WebSocket connection established")
        seen_streams: Set[str] = set()

        try:
            while True:
                data = await websocket.receive_text()
                try:
                    message = json.loads(data)
                except json.JSONDecodeError:
                    logger.warning("Ignoring non-JSON frame on media stream")
                    continue

                event = message.get("event")

                if event == MEDIA_EVENT_MEDIA:
                    await handle_media(message, websocket, self.stream_manager)
                    continue

                stream_id = message.get("stream_id") or message.get("streamSid")
                if stream_id:
                    seen_streams.add(stream_id)
                logger.info(
                    f"Received media event: {event}"
                    + (f" for stream: {stream_id}" if stream_id else "")
                )

                handler = self.handlers.get(event)
                if handler is None:
                    logger.warning(f"Unhandled media event received: {event}")
                    continue

                response = await handler(message, websocket, self.stream_manager)
                if response is not None:
                    await self._send(websocket, response)

                if event == MEDIA_EVENT_STOP:
                    break

        except WebSocketDisconnect:
            logger.info("Media WebSocket disconnected by client")
        except Exception as e:
            logger.error(f"Error in media WebSocket connection: {e}", exc_info=True)
        finally:
            for stream_id in seen_streams:
                if self.stream_manager.remove_stream(stream_id) is not None:
                    logger.info(f"Stream removed during cleanup: {stream_id}")
            try:
                await websocket.close()
            except RuntimeError:
                # Already closed by the client.
                pass
            logger.info("Media WebSocket connection closed")

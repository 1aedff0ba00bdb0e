"""
Handles frames received on the media stream WebSocket.

The bridge does not process audio: the provider streams media straight to the
voice-AI backend. This channel only keeps per-stream bookkeeping and answers the
control frames the far end expects a reply to (marks are echoed, clears are
acknowledged).
"""

import logging
from typing import Any, Dict, Optional, Union

from fastapi import WebSocket
from pydantic import BaseModel, ValidationError

from app.config.constants import LOGGER_NAME
from app.models.media_schemas import (
    ClearAck,
    ClearMessage,
    DtmfMessage,
    MarkEcho,
    MarkMessage,
    MediaMessage,
    StartMessage,
    StopMessage,
)
from app.models.stream import StreamManager

logger = logging.getLogger(LOGGER_NAME)

HandlerResponse = Optional[Union[Dict[str, Any], BaseModel]]


async def handle_connected(
    message: Dict[str, Any], websocket: WebSocket, stream_manager: StreamManager
) -> HandlerResponse:
    """Log the protocol handshake; nothing is sent back."""
    logger.info(f"Media stream connected (protocol {message.get('protocol', 'unknown')})")
    return None


async def handle_start(
    message: Dict[str, Any], websocket: WebSocket, stream_manager: StreamManager
) -> HandlerResponse:
    """
    Register a newly started stream.

    Args:
        message: The start frame
        websocket: The WebSocket connection the frame arrived on
        stream_manager: Registry of open streams

    Returns:
        None; the start frame needs no reply
    """
    try:
        start = StartMessage(**message)
    except ValidationError as e:
        logger.error(f"Invalid start message: {e}")
        return None

    if not start.stream_id:
        logger.warning("Start message without a stream id ignored")
        return None

    stream_manager.add_stream(start.stream_id, start.start.call_id, start.start.media_format)
    logger.info(f"Media stream {start.stream_id} started for call {start.start.call_id}")
    return None


async def handle_media(
    message: Dict[str, Any], websocket: WebSocket, stream_manager: StreamManager
) -> HandlerResponse:
    """Count a media frame against its stream. The payload is not decoded."""
    try:
        media = MediaMessage(**message)
    except ValidationError as e:
        logger.debug(f"Invalid media message: {e}")
        return None

    stream = stream_manager.get_stream(media.stream_id) if media.stream_id else None
    if stream is None:
        logger.debug(f"Media frame for unknown stream {media.stream_id}")
        return None

    stream.media_frames += 1
    return None


async def handle_mark(
    message: Dict[str, Any], websocket: WebSocket, stream_manager: StreamManager
) -> HandlerResponse:
    """Record a mark and echo it back to the sender."""
    try:
        mark = MarkMessage(**message)
    except ValidationError as e:
        logger.error(f"Invalid mark message: {e}")
        return None

    stream = stream_manager.get_stream(mark.stream_id) if mark.stream_id else None
    if stream is not None:
        stream.marks.append(mark.mark.name)
    logger.info(f"Mark {mark.mark.name} received on stream {mark.stream_id}")
    return MarkEcho(stream_id=mark.stream_id, mark=mark.mark)


async def handle_clear(
    message: Dict[str, Any], websocket: WebSocket, stream_manager: StreamManager
) -> HandlerResponse:
    try:
        clear = ClearMessage(**message)
    except ValidationError as e:
        logger.error(f"Invalid clear message: {e}")
        return None

    logger.info(f"Clear requested on stream {clear.stream_id}")
    return ClearAck(stream_id=clear.stream_id)


async def handle_dtmf(
    message: Dict[str, Any], websocket: WebSocket, stream_manager: StreamManager
) -> HandlerResponse:
    try:
        dtmf = DtmfMessage(**message)
    except ValidationError as e:
        logger.error(f"Invalid dtmf message: {e}")
        return None

    stream = stream_manager.get_stream(dtmf.stream_id) if dtmf.stream_id else None
    if stream is not None:
        stream.dtmf_digits.append(dtmf.dtmf.digit)
    logger.info(f"Received DTMF: {dtmf.dtmf.digit} on stream {dtmf.stream_id}")
    return None


async def handle_stop(
    message: Dict[str, Any], websocket: WebSocket, stream_manager: StreamManager
) -> HandlerResponse:
    """Drop the stream's bookkeeping and log a summary."""
    try:
        stop = StopMessage(**message)
    except ValidationError as e:
        logger.error(f"Invalid stop message: {e}")
        return None

    stream = stream_manager.remove_stream(stop.stream_id) if stop.stream_id else None
    if stream is None:
        logger.info(f"Stop received for unknown stream {stop.stream_id}")
        return None

    logger.info(
        f"Media stream {stream.stream_id} stopped after {stream.media_frames} frames "
        f"and {len(stream.marks)} marks"
    )
    return None

"""
Media stream bookkeeping for the companion WebSocket channel.

The StreamManager tracks which media streams are currently open, which call each one
belongs to and how many frames and marks have passed through it. Audio payloads
themselves are never inspected or stored.
"""

import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class MediaStream:
    """State kept for one open media stream."""

    stream_id: str
    call_id: Optional[str] = None
    media_format: Optional[Dict[str, object]] = None
    media_frames: int = 0
    marks: List[str] = field(default_factory=list)
    dtmf_digits: List[str] = field(default_factory=list)
    started_at: float = field(default_factory=time.time)


class StreamManager:
    """
    Manages active media streams.

    This class maintains a registry of open media streams, associating each
    stream ID with the call it carries. It provides methods to add, retrieve and
    remove streams during the call lifecycle.
    """

    def __init__(self):
        """Initialize an empty dictionary of active streams."""
        self.active_streams: Dict[str, MediaStream] = {}

    def add_stream(
        self,
        stream_id: str,
        call_id: Optional[str] = None,
        media_format: Optional[Dict[str, object]] = None,
    ) -> MediaStream:
        """
        Add a new stream to the registry.

        Args:
            stream_id: Provider-assigned stream identifier
            call_id: Provider call identifier the stream belongs to
            media_format: Encoding details announced by the far end

        Returns:
            The newly registered MediaStream
        """
        stream = MediaStream(stream_id=stream_id, call_id=call_id, media_format=media_format)
        self.active_streams[stream_id] = stream
        return stream

    def get_stream(self, stream_id: str) -> Optional[MediaStream]:
        return self.active_streams.get(stream_id)

    def remove_stream(self, stream_id: str) -> Optional[MediaStream]:
        """Remove a stream and return its final bookkeeping, if it was known."""
        return self.active_streams.pop(stream_id, None)

    def get_all_streams(self) -> Dict[str, MediaStream]:
        return self.active_streams

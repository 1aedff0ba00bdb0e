"""
Handlers for the media stream WebSocket.

- media_handlers: One coroutine per frame event (connected, start, media, mark,
  clear, dtmf, stop); each returns the frame to send back, if any.
"""

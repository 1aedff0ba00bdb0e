"""
Data models for the voice bridge.

Key components:
- tools: Tool definitions and the two selection shapes sent to the backend
- session: Session request and join handle, plus the outbound call API body
- call_state: Pending outbound call contexts and the inbound call state machine
- telnyx_schemas: Telnyx Call Control webhook payloads
- media_schemas: Frames exchanged on the media stream WebSocket
- stream: Bookkeeping for open media streams
"""

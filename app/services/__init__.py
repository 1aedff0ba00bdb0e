"""
Services that turn a call into a voice-AI session.

- tool_registry: Loads tool definitions from numbered environment slots
- prompt_composer: Builds the per-call system prompt
- corpus_gate: Decides whether the knowledge corpus can be attached
- session_negotiator: Assembles and submits the session request
- ultravox_client: HTTP client for the Ultravox API
"""

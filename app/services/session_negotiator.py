"""
Session negotiation: turns a call direction plus optional per-call overrides into a
backend session and returns its join handle.

The negotiator is provider-agnostic. The telephony adapters call it once they are
ready to attach a phone leg, and decide themselves what to do when it fails.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from app.config.constants import (
    CORPUS_MAX_RESULTS,
    END_CALL_TOOL_NAME,
    LOGGER_NAME,
    QUERY_CORPUS_TOOL_NAME,
)
from app.config.settings import Settings
from app.models.session import CallDirection, SessionHandle, SessionRequest
from app.models.tools import ToolDefinition, selection_name, tool_reference
from app.services.corpus_gate import CorpusGate
from app.services.prompt_composer import PromptComposer
from app.services.tool_registry import ToolRegistry
from app.services.ultravox_client import UltravoxClient

logger = logging.getLogger(LOGGER_NAME)

BUILT_IN_TOOL_NAMES = (END_CALL_TOOL_NAME, QUERY_CORPUS_TOOL_NAME)


class SessionNegotiator:
    """
    Assembles a SessionRequest from configuration, tools, prompt and corpus, and
    submits it to the voice-AI backend.
    """

    def __init__(
        self,
        settings: Settings,
        registry: ToolRegistry,
        composer: PromptComposer,
        corpus_gate: CorpusGate,
        client: UltravoxClient,
    ):
        self.settings = settings
        self.registry = registry
        self.composer = composer
        self.corpus_gate = corpus_gate
        self.client = client

    def resolve_active_tools(self, tool_names: Optional[Sequence[str]]) -> List[ToolDefinition]:
        """
        Work out which registered tools a call may use.

        Args:
            tool_names: [] disables tools, None falls back to the global flag and
                default list, anything else selects exactly those names

        Returns:
            The active tool definitions, in the order requested. Registered tools named
            like a built-in tool are left out; the built-in reference is used instead.
        """
        if tool_names is not None:
            if len(tool_names) == 0:
                return []
            tools = self.registry.get_by_names(tool_names)
        elif not self.settings.use_tools:
            return []
        else:
            tools = self.registry.get_by_names(self.settings.default_tool_names or None)

        active = []
        for tool in tools:
            if tool.name in BUILT_IN_TOOL_NAMES:
                logger.warning(f"Ignoring registered tool {tool.name}, the name is reserved for a built-in tool")
                continue
            active.append(tool)
        return active

    def first_speaker_for(self, direction: CallDirection) -> str:
        if direction == CallDirection.OUTBOUND:
            return self.settings.outbound_first_speaker
        return self.settings.inbound_first_speaker

    async def build_request(
        self,
        direction: CallDirection,
        explicit_prompt: Optional[str] = None,
        persona_name: Optional[str] = None,
        voice_override: Optional[str] = None,
        corpus_override: Optional[str] = None,
        tool_names: Optional[Sequence[str]] = None,
        first_speaker: Optional[str] = None,
    ) -> SessionRequest:
        """Assemble the session request for one call without submitting it."""
        active_tools = self.resolve_active_tools(tool_names)

        system_prompt = self.composer.compose(
            explicit_prompt, direction, persona_name=persona_name, active_tools=active_tools
        )

        selections: List[Dict[str, Any]] = []
        if active_tools:
            selections.extend(
                self.registry.selections_for(active_tools, self.settings.use_permanent_tools)
            )
            selections.append(tool_reference(END_CALL_TOOL_NAME))
            logger.info(
                f"Adding {len(selections)} tools to {direction.value} call: "
                f"{', '.join(selection_name(s) or '?' for s in selections)}"
            )
        else:
            logger.info(f"Tools disabled for this {direction.value} call")

        corpus_id = corpus_override or self.settings.corpus_id
        if corpus_id:
            if await self.corpus_gate.is_ready(corpus_id):
                logger.info(f"Adding corpus configuration for {direction.value} call. Corpus ID: {corpus_id}")
                selections.append(
                    tool_reference(
                        QUERY_CORPUS_TOOL_NAME,
                        {"corpus_id": corpus_id, "max_results": CORPUS_MAX_RESULTS},
                    )
                )
            else:
                logger.warning(f"Corpus {corpus_id} not ready - continuing without it")

        if selections:
            system_prompt = f"{system_prompt}\n\n{self.settings.tool_operational_guidance}\n"

        return SessionRequest(
            system_prompt=system_prompt,
            model=self.settings.ultravox_model,
            voice=voice_override or self.settings.voice_id,
            temperature=self.settings.temperature,
            first_speaker=first_speaker or self.first_speaker_for(direction),
            medium=self.settings.telephony_provider,
            recording_enabled=self.settings.recording_enabled,
            selected_tools=tuple(selections),
        )

    async def negotiate(
        self,
        direction: CallDirection,
        explicit_prompt: Optional[str] = None,
        persona_name: Optional[str] = None,
        voice_override: Optional[str] = None,
        corpus_override: Optional[str] = None,
        tool_names: Optional[Sequence[str]] = None,
        first_speaker: Optional[str] = None,
    ) -> SessionHandle:
        """
        Create a backend session for a call.

        Args:
            direction: Inbound or outbound call
            explicit_prompt: Prompt replacing the direction default
            persona_name: Agent persona for this call
            voice_override: Voice id replacing the default voice
            corpus_override: Corpus id replacing the default corpus
            tool_names: Tool filter, see resolve_active_tools()
            first_speaker: First speaker replacing the direction default

        Returns:
            The join handle for the telephony leg

        Raises:
            RemoteSessionError: If the backend does not return a usable session
        """
        request = await self.build_request(
            direction,
            explicit_prompt=explicit_prompt,
            persona_name=persona_name,
            voice_override=voice_override,
            corpus_override=corpus_override,
            tool_names=tool_names,
            first_speaker=first_speaker,
        )
        return await self.client.create_session(request)

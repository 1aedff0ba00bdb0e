"""
Builds the system prompt handed to the voice model for one call.

The prompt is assembled in a fixed order: base prompt, tool guidance, operator
guidelines, and finally the persona preamble, so that the preamble is always the
first thing the model reads.
"""

from typing import Optional, Sequence

from app.config.constants import PERSONA_PLACEHOLDER
from app.config.settings import Settings
from app.models.session import CallDirection
from app.models.tools import ToolDefinition

PERSONA_PREAMBLE = (
    "Your name is {AI_NAME}. Always introduce yourself as {AI_NAME} and stay in "
    "character as {AI_NAME} for the whole call.\n\n"
)


def build_tool_guidance(tools: Sequence[ToolDefinition]) -> str:
    """
    Describe the given tools, with their examples, for inclusion in a prompt.

    Args:
        tools: Tools active for the call

    Returns:
        Guidance text, or an empty string when there are no tools
    """
    sections = []
    for tool in tools:
        info = f"\n{tool.description}\n"
        for example in tool.examples:
            info += f'\nExample: "{example.query}"\nResponse: "{example.response}"\n'
        sections.append(info)
    return "\n".join(sections)


def apply_persona(prompt: str, persona_name: str) -> str:
    """
    Prepend the persona preamble and substitute every persona placeholder.

    Applying it twice stacks two preambles; callers apply it exactly once.
    """
    return (PERSONA_PREAMBLE + prompt).replace(PERSONA_PLACEHOLDER, persona_name)


class PromptComposer:
    """Composes per-call prompts from static configuration and call-specific inputs."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def default_prompt(self, direction: CallDirection) -> str:
        if direction == CallDirection.OUTBOUND:
            return self.settings.outbound_prompt
        return self.settings.inbound_prompt

    def compose(
        self,
        base_prompt: Optional[str],
        direction: CallDirection,
        persona_name: Optional[str] = None,
        active_tools: Sequence[ToolDefinition] = (),
        tool_guidelines: Optional[str] = None,
    ) -> str:
        """
        Build the final instruction text for a call.

        Args:
            base_prompt: Caller-supplied prompt; takes precedence over the direction default
            direction: Whether the call is inbound or outbound
            persona_name: Agent name for this call; defaults to the configured persona
            active_tools: Tools enabled for this call
            tool_guidelines: Operator guideline text; defaults to the configured guidelines

        Returns:
            The composed prompt
        """
        prompt = base_prompt or self.default_prompt(direction)

        if active_tools:
            guidelines = self.settings.tool_guidelines if tool_guidelines is None else tool_guidelines
            prompt = f"{prompt}\n{build_tool_guidance(active_tools)}"
            if guidelines:
                prompt = f"{prompt}\n{guidelines}"

        return apply_persona(prompt, persona_name or self.settings.persona_name)

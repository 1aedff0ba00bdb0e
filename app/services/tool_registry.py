"""
Registry of tools loaded from configuration.

Tools are declared in numbered environment slots (ULTRAVOX_TOOL_1_NAME,
ULTRAVOX_TOOL_1_DESCRIPTION, ...). A slot without a name is empty; a slot with
malformed JSON fields is skipped with a warning so one bad definition never keeps
the service from starting.
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import ValidationError

from app.config.constants import LOGGER_NAME, MAX_TOOL_SLOTS, TOOL_ENV_PREFIX
from app.models.tools import ToolDefinition

logger = logging.getLogger(LOGGER_NAME)


class ToolRegistry:
    """Immutable, ordered collection of ToolDefinitions keyed by name."""

    def __init__(self, tools: Optional[Iterable[ToolDefinition]] = None):
        self._tools: Dict[str, ToolDefinition] = {}
        for tool in tools or ():
            self._tools[tool.name] = tool

    @classmethod
    def load(cls, source: Mapping[str, str], max_slots: int = MAX_TOOL_SLOTS) -> "ToolRegistry":
        """
        Build a registry from numbered configuration slots.

        Args:
            source: Mapping holding the slot variables, usually os.environ
            max_slots: Highest slot index scanned

        Returns:
            A registry with one entry per valid, named slot in slot order
        """
        tools = []
        for index in range(1, max_slots + 1):
            prefix = f"{TOOL_ENV_PREFIX}{index}"
            try:
                tool = _parse_slot(source, prefix)
            except (ValueError, ValidationError) as e:
                logger.warning(f"Skipping tool slot {prefix}: {e}")
                continue
            if tool is not None:
                tools.append(tool)

        registry = cls(tools)
        if len(registry):
            logger.info(f"Loaded {len(registry)} tool definition(s): {', '.join(registry.names())}")
        return registry

    def get(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools)

    def get_by_names(self, names: Optional[Iterable[str]] = None) -> List[ToolDefinition]:
        """
        Look up tools by name.

        Args:
            names: Requested names; None returns every registered tool

        Returns:
            Registry order when names is None, otherwise the caller's order with unknown
            and repeated names dropped
        """
        if names is None:
            return list(self._tools.values())
        seen = set()
        tools = []
        for name in names:
            if name in self._tools and name not in seen:
                seen.add(name)
                tools.append(self._tools[name])
        return tools

    @staticmethod
    def selections_for(tools: Iterable[ToolDefinition], use_permanent: bool) -> List[Dict[str, Any]]:
        """Render tools as references (registered with the backend) or inline definitions."""
        if use_permanent:
            return [tool.to_reference() for tool in tools]
        return [tool.to_inline_selection() for tool in tools]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


def _load_json(source: Mapping[str, str], key: str) -> Any:
    raw = source.get(key)
    if raw is None or raw.strip() == "":
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"{key} is not valid JSON ({e})") from e


def _parse_slot(source: Mapping[str, str], prefix: str) -> Optional[ToolDefinition]:
    name = (source.get(f"{prefix}_NAME") or "").strip()
    if not name:
        return None

    parameters = _load_json(source, f"{prefix}_PARAMS") or []
    examples = _load_json(source, f"{prefix}_EXAMPLES") or []
    response_schema = _load_json(source, f"{prefix}_RESPONSE_SCHEMA")

    if not isinstance(parameters, list):
        raise ValueError(f"{prefix}_PARAMS must be a JSON list")
    if not isinstance(examples, list):
        raise ValueError(f"{prefix}_EXAMPLES must be a JSON list")

    return ToolDefinition(
        name=name,
        description=source.get(f"{prefix}_DESCRIPTION") or "",
        endpoint_template=source.get(f"{prefix}_URL") or "",
        http_method=source.get(f"{prefix}_METHOD") or "GET",
        parameters=tuple(parameters),
        response_schema=response_schema,
        examples=tuple(examples),
    )

"""
Pydantic models for externally hosted tools the voice agent may call mid-conversation.

A ToolDefinition is the single canonical description of a tool. The shapes sent to
Ultravox are derived from it on demand: a reference when the tool is already
registered with the backend, or an inline temporary definition otherwise.
"""

from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ParameterLocation(str, Enum):
    """Where a dynamic parameter is placed in the outgoing HTTP request."""
    QUERY = "query"
    PATH = "path"
    BODY = "body"
    HEADER = "header"

    @property
    def wire_name(self) -> str:
        return f"PARAMETER_LOCATION_{self.value.upper()}"


class ToolParameter(BaseModel):
    """A parameter the model fills in when it invokes the tool."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    location: ParameterLocation = ParameterLocation.QUERY
    json_schema: Dict[str, Any] = Field(default_factory=dict, alias="schema")
    required: bool = False

    @field_validator("location", mode="before")
    @classmethod
    def normalize_location(cls, v: Any) -> Any:
        """Accept both 'query' and the wire form 'PARAMETER_LOCATION_QUERY'."""
        if isinstance(v, str):
            value = v.strip().lower()
            if value.startswith("parameter_location_"):
                value = value[len("parameter_location_"):]
            return value
        return v

    def to_wire(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "location": self.location.wire_name,
            "schema": self.json_schema,
            "required": self.required,
        }


class ToolExample(BaseModel):
    """Example query/response pair used to teach the model when to reach for a tool."""

    model_config = ConfigDict(frozen=True)

    query: str
    response: str


class ToolDefinition(BaseModel):
    """Canonical, immutable definition of a tool. Identity is the name."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    endpoint_template: str = ""
    http_method: str = "GET"
    parameters: Tuple[ToolParameter, ...] = ()
    response_schema: Optional[Dict[str, Any]] = None
    examples: Tuple[ToolExample, ...] = ()

    @field_validator("http_method", mode="before")
    @classmethod
    def upper_method(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    def _http(self) -> Dict[str, str]:
        return {"baseUrlPattern": self.endpoint_template, "httpMethod": self.http_method}

    def to_reference(self, parameter_overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Selection referring to a tool the backend already knows by name."""
        return tool_reference(self.name, parameter_overrides)

    def to_inline_selection(self) -> Dict[str, Any]:
        """Selection carrying the full definition as a temporary, call-scoped tool."""
        return {
            "temporaryTool": {
                "modelToolName": self.name,
                "description": self.description,
                "dynamicParameters": [p.to_wire() for p in self.parameters],
                "http": self._http(),
            }
        }

    def to_registration(self) -> Dict[str, Any]:
        """Payload used to register the tool permanently with the backend."""
        definition: Dict[str, Any] = {
            "modelToolName": self.name,
            "description": self.description,
            "dynamicParameters": [p.to_wire() for p in self.parameters],
            "http": self._http(),
        }
        if self.response_schema is not None:
            definition["responseSchema"] = self.response_schema
        return {"name": self.name, "definition": definition}


def tool_reference(name: str, parameter_overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Build a by-name tool selection.

    Args:
        name: Tool name known to the backend
        parameter_overrides: Fixed parameter values the model cannot change

    Returns:
        Selection mapping in the Ultravox selectedTools format
    """
    selection: Dict[str, Any] = {"toolName": name}
    if parameter_overrides:
        selection["parameterOverrides"] = dict(parameter_overrides)
    return selection


def selection_name(selection: Dict[str, Any]) -> Optional[str]:
    """Name of the tool a selection refers to, whichever shape it has."""
    if "toolName" in selection:
        return selection["toolName"]
    return selection.get("temporaryTool", {}).get("modelToolName")

from typing import Any, Literal

from mcp.types import *  # noqa: F403
from mcp.types import ContentBlock
from pydantic import BaseModel, ConfigDict, Field

__all__ = ["StructuredCall", "ToolCallMessage", "ToolResultMessage"]


class StructuredCall(BaseModel):
    """Any inbound payload exposing non-empty ``type`` and ``name`` fields."""

    model_config = ConfigDict(extra="allow")

    type: str = Field(min_length=1)
    name: str = Field(min_length=1)


class ToolCallMessage(BaseModel):
    """Plain (non JSON-RPC) tool invocation sent by lightweight clients."""

    type: Literal["tool_call"]
    name: str
    parameters: dict[str, Any] = Field(default_factory=dict)


class ToolResultMessage(BaseModel):
    """Outbound answer to a :class:`ToolCallMessage`."""

    type: Literal["tool_result"] = "tool_result"
    name: str
    content: list[ContentBlock]

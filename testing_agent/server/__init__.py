"""Transports exposing the Testing Agent to external agents."""

from .stdio import ToolServer, tool_definitions

__all__ = ["ToolServer", "tool_definitions"]

"""Tool system for streamchat."""

from streamchat.tools.base import Tool
from streamchat.tools.registry import ToolRegistration, ToolRegistry

__all__ = ["Tool", "ToolRegistration", "ToolRegistry"]

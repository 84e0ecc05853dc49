"""
Tool system: BaseTool + ToolRegistry + the recommendation loop's tool palette
"""

from ppc_advisor.tools.base import BaseTool, ToolCallRecord, ToolName, ToolResult
from ppc_advisor.tools.registry import ToolRegistry

__all__ = ["BaseTool", "ToolCallRecord", "ToolName", "ToolRegistry", "ToolResult"]

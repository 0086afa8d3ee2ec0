"""
Tile Auto-Mapper - Tools

Editor tools for painting layers and running auto-mapper rules.
"""

from .auto_mapper_tool import AutoMapperTool
from .base_tool import Tool, ToolContext, ToolResult

__all__ = [
    "Tool",
    "ToolContext",
    "ToolResult",
    "AutoMapperTool",
]

"""
Agent tools for clinical query understanding.

Each tool follows a standardized interface:
- Defined by abstract Tool base class
- Returns ToolResult with success/failure status
- Exposes its synchronous, side-effect-free core for direct use
"""
from .base import Tool, ToolResult
from .router import QueryRouterTool, route_query
from .extractor import EntityExtractionTool, extract_entities
from .validator import ValidationTool, validate_extracted_entities

__all__ = [
    "Tool",
    "ToolResult",
    "QueryRouterTool",
    "EntityExtractionTool",
    "ValidationTool",
    "route_query",
    "extract_entities",
    "validate_extracted_entities",
]

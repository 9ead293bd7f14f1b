"""
Abstract base class for agent tools.

All tools follow a standardized contract:
1. name: Unique identifier for the tool
2. description: Human-readable description of tool purpose
3. execute(): Async method that performs the tool's action
4. Returns ToolResult with success status and data/error

The router, extractor and validator also expose their synchronous core
(``route``, ``extract``, ``validate``); ``execute`` wraps it so the
orchestrator can drive every tool the same way.
"""
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Dict
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


@dataclass
class ToolResult:
    """
    Standardized result from tool execution.

    Attributes:
        success: Whether the tool executed successfully
        data: Output data if successful (type depends on tool)
        error: Error message if failed
        metadata: Additional execution metadata (timing, counts, etc.)
    """
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Add timestamp to metadata."""
        if "timestamp" not in self.metadata:
            self.metadata["timestamp"] = datetime.now(timezone.utc).isoformat()

    @classmethod
    def ok(cls, data: Any, **metadata) -> "ToolResult":
        """Create successful result."""
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def fail(cls, error: str, **metadata) -> "ToolResult":
        """Create failed result."""
        return cls(success=False, error=error, metadata=metadata)


class Tool(ABC):
    """
    Abstract base class for all agent tools.

    Each tool must:
    1. Define a unique name and description
    2. Implement async execute() method
    3. Return standardized ToolResult

    Callers go through ``run()``, which adds timing to the result.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for the tool."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of what this tool does."""
        pass

    @abstractmethod
    async def execute(self, input_data: Any) -> ToolResult:
        """
        Execute the tool with given input.

        Args:
            input_data: Input for the tool (type depends on specific tool)

        Returns:
            ToolResult with success status and output data or error
        """
        pass

    async def run(self, input_data: Any) -> ToolResult:
        """Execute and record wall time in ``metadata["duration_ms"]``."""
        started = time.perf_counter()
        result = await self.execute(input_data)
        result.metadata["duration_ms"] = round((time.perf_counter() - started) * 1000, 3)
        logger.debug("%s finished in %.3f ms (success=%s)", self.name, result.metadata["duration_ms"], result.success)
        return result

    def __repr__(self) -> str:
        return f"<Tool: {self.name}>"

"""
Trajectory Logger - Execution audit trail for assistant requests.

Records each step of an orchestrated request (routing, data lookup,
knowledge query, extraction, validation, EMR write) with timing and
success/failure status, and mirrors every transition to the module logger.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from enum import Enum
import json
import logging

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class StepStatus(str, Enum):
    """Status of an execution step."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class TrajectoryStep:
    """A single step in the execution trajectory."""
    step_number: int
    step_name: str
    tool_name: str
    status: StepStatus = StepStatus.PENDING

    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[float] = None

    input_summary: Optional[str] = None
    output_summary: Optional[str] = None

    error: Optional[str] = None
    error_type: Optional[str] = None

    metadata: Dict[str, Any] = field(default_factory=dict)

    def start(self):
        self.status = StepStatus.RUNNING
        self.started_at = _now()

    def complete(self, output_summary: str = None):
        self.status = StepStatus.SUCCESS
        self.completed_at = _now()
        self.output_summary = output_summary
        self._calculate_duration()

    def fail(self, error: str, error_type: str = None):
        self.status = StepStatus.FAILED
        self.completed_at = _now()
        self.error = error
        self.error_type = error_type
        self._calculate_duration()

    def skip(self, reason: str = None):
        self.status = StepStatus.SKIPPED
        self.completed_at = _now()
        if reason:
            self.metadata["skip_reason"] = reason

    def _calculate_duration(self):
        if self.started_at and self.completed_at:
            delta = self.completed_at - self.started_at
            self.duration_ms = delta.total_seconds() * 1000

    def to_dict(self) -> dict:
        """Convert step to dictionary for serialization."""
        result = {
            "step_number": self.step_number,
            "step_name": self.step_name,
            "tool_name": self.tool_name,
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
            "input_summary": self.input_summary,
            "output_summary": self.output_summary,
        }

        if self.error:
            result["error"] = self.error
            result["error_type"] = self.error_type

        if self.metadata:
            result["metadata"] = self.metadata

        return result


@dataclass
class Trajectory:
    """
    Complete execution trajectory for one assistant request.

    Tracks:
    - All execution steps with timing and status
    - Overall request success/failure
    """
    agent_name: str
    started_at: datetime = field(default_factory=_now)
    completed_at: Optional[datetime] = None

    steps: List[TrajectoryStep] = field(default_factory=list)

    success: bool = False
    final_error: Optional[str] = None

    input_summary: Optional[str] = None
    output_summary: Optional[str] = None

    def add_step(self, step_name: str, tool_name: str, input_summary: str = None) -> TrajectoryStep:
        step = TrajectoryStep(
            step_number=len(self.steps) + 1,
            step_name=step_name,
            tool_name=tool_name,
            input_summary=input_summary,
        )
        self.steps.append(step)
        return step

    def complete(self, success: bool = True, error: str = None, output_summary: str = None):
        self.completed_at = _now()
        self.success = success
        self.final_error = error
        self.output_summary = output_summary

    @property
    def total_duration_ms(self) -> Optional[float]:
        if self.started_at and self.completed_at:
            delta = self.completed_at - self.started_at
            return delta.total_seconds() * 1000
        return None

    @property
    def step_count(self) -> int:
        return len(self.steps)

    def tool_names(self) -> List[str]:
        """Tools in execution order (handy for checking call ordering)."""
        return [s.tool_name for s in self.steps]

    def get_statistics(self) -> dict:
        """Get aggregate statistics about the trajectory."""
        return {
            "total_steps": self.step_count,
            "successful_steps": sum(1 for s in self.steps if s.status == StepStatus.SUCCESS),
            "failed_steps": sum(1 for s in self.steps if s.status == StepStatus.FAILED),
            "skipped_steps": sum(1 for s in self.steps if s.status == StepStatus.SKIPPED),
            "total_duration_ms": self.total_duration_ms,
        }

    def to_dict(self) -> dict:
        return {
            "agent_name": self.agent_name,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "success": self.success,
            "final_error": self.final_error,
            "input_summary": self.input_summary,
            "output_summary": self.output_summary,
            "statistics": self.get_statistics(),
            "steps": [step.to_dict() for step in self.steps],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)

    def __repr__(self) -> str:
        status = "SUCCESS" if self.success else "FAILED"
        return f"<Trajectory: {self.agent_name} [{status}] {self.step_count} steps>"


class TrajectoryLogger:
    """
    Helper for recording a trajectory during one request.

    Usage:
        trajectory_logger = TrajectoryLogger("QueryOrchestrator")

        step = trajectory_logger.start_step("Route Query", "query_router")
        try:
            route = router.route(text)
            trajectory_logger.complete_step(step, f"type={route.type}")
        except Exception as e:
            trajectory_logger.fail_step(step, str(e))

        trajectory = trajectory_logger.get_trajectory()
    """

    def __init__(self, agent_name: str, input_summary: str = None):
        self.trajectory = Trajectory(agent_name=agent_name, input_summary=input_summary)

    def start_step(self, step_name: str, tool_name: str, input_summary: str = None) -> TrajectoryStep:
        step = self.trajectory.add_step(step_name, tool_name, input_summary)
        step.start()
        logger.debug("[%s] step %d started: %s", self.trajectory.agent_name, step.step_number, step_name)
        return step

    def complete_step(self, step: TrajectoryStep, output_summary: str = None):
        step.complete(output_summary)
        logger.debug("[%s] step %d done: %s", self.trajectory.agent_name, step.step_number, output_summary)

    def fail_step(self, step: TrajectoryStep, error: str, error_type: str = None):
        step.fail(error, error_type)
        logger.warning("[%s] step %d (%s) failed: %s", self.trajectory.agent_name, step.step_number, step.step_name, error)

    def skip_step(self, step_name: str, tool_name: str, reason: str = None):
        step = self.trajectory.add_step(step_name, tool_name)
        step.skip(reason)

    def complete(self, success: bool = True, error: str = None, output_summary: str = None):
        self.trajectory.complete(success, error, output_summary)

    def get_trajectory(self) -> Trajectory:
        return self.trajectory

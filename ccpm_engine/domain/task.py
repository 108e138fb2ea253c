import copy
import math
from enum import Enum
from typing import Any, Dict, List, Optional


class StageCategory(Enum):
    """
    Enum representing the workflow stage category of a task.
    """

    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    DEFERRED = "DEFERRED"
    CANCELLED = "CANCELLED"


class TaskError(Exception):
    """Exception raised for errors in the Task class."""

    pass


def _optional_minutes(value, field_name):
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TaskError(f"{field_name} must be a number or None")
    if not math.isfinite(value):
        raise TaskError(f"{field_name} must be finite")
    return value


class Task:
    """
    Represents a task as seen by the CCPM analysis engine.

    Tasks are owned by the surrounding platform; the engine only reads them.
    All estimates are in minutes and any of them may be missing, in which case
    the task still takes part in the graph with a degraded duration.
    """

    def __init__(
        self,
        id: str,
        project_id: str,
        optimistic_minutes: Optional[float] = None,
        pessimistic_minutes: Optional[float] = None,
        effort_minutes: Optional[float] = None,
        stage_category: Any = StageCategory.ACTIVE,
        position: int = 0,
        parent_task_id: Optional[str] = None,
        title: str = "",
        most_likely_minutes: Optional[float] = None,
        assignee_ids: Optional[List[str]] = None,
        deleted: bool = False,
    ):
        """
        Initialize a new Task.

        Args:
            id: Unique identifier for the task
            project_id: Project the task belongs to
            optimistic_minutes: Aggressive (optimistic) estimate
            pessimistic_minutes: Safe (pessimistic) estimate
            effort_minutes: Single-point effort estimate
            stage_category: StageCategory or its string value
            position: Ordering position inside the project, used for tie-breaks
            parent_task_id: Parent task for subtasks
            title: Human readable title
            most_likely_minutes: Distinct most-likely estimate for forecasting
            assignee_ids: Users assigned to the task (resource leveling only)
            deleted: Soft-delete flag; deleted tasks are ignored by the engine

        Raises:
            TaskError: If any input validation fails
        """
        if id is None or str(id).strip() == "":
            raise TaskError("Task ID cannot be None or empty")
        self.id = id

        if project_id is None or str(project_id).strip() == "":
            raise TaskError("Task project ID cannot be None or empty")
        self.project_id = project_id

        self.optimistic_minutes = _optional_minutes(
            optimistic_minutes, "optimistic_minutes"
        )
        self.pessimistic_minutes = _optional_minutes(
            pessimistic_minutes, "pessimistic_minutes"
        )
        self.effort_minutes = _optional_minutes(effort_minutes, "effort_minutes")
        self.most_likely_minutes = _optional_minutes(
            most_likely_minutes, "most_likely_minutes"
        )

        if (
            self.optimistic_minutes is not None
            and self.pessimistic_minutes is not None
            and self.pessimistic_minutes < self.optimistic_minutes
        ):
            raise TaskError(
                "Pessimistic estimate must be greater than or equal to optimistic estimate"
            )

        if self.most_likely_minutes is not None and self.has_range_estimate():
            if not (
                self.optimistic_minutes
                <= self.most_likely_minutes
                <= self.pessimistic_minutes
            ):
                raise TaskError(
                    "Most-likely estimate must lie between optimistic and pessimistic"
                )

        self.set_stage(stage_category)

        if isinstance(position, bool) or not isinstance(position, (int, float)):
            raise TaskError("Task position must be a number")
        self.position = position

        self.parent_task_id = parent_task_id
        self.title = title or str(id)
        self.assignee_ids = list(assignee_ids) if assignee_ids else []
        self.deleted = bool(deleted)

    def has_range_estimate(self) -> bool:
        """True when both optimistic and pessimistic estimates are present."""
        return (
            self.optimistic_minutes is not None
            and self.pessimistic_minutes is not None
        )

    @property
    def effective_duration(self) -> float:
        """
        Planning duration: pessimistic, then effort, then optimistic, else 0.
        """
        for value in (
            self.pessimistic_minutes,
            self.effort_minutes,
            self.optimistic_minutes,
        ):
            if value is not None:
                return float(value)
        return 0.0

    @property
    def most_likely(self) -> Optional[float]:
        """Mode of the duration distribution, or None without a range estimate."""
        if not self.has_range_estimate():
            return None
        if self.most_likely_minutes is not None:
            return float(self.most_likely_minutes)
        return (self.optimistic_minutes + self.pessimistic_minutes) / 2.0

    def set_stage(self, stage_category):
        try:
            self.stage_category = StageCategory(
                stage_category.value
                if isinstance(stage_category, StageCategory)
                else stage_category
            )
        except ValueError:
            valid = [s.value for s in StageCategory]
            raise TaskError(
                f"Invalid stage category: {stage_category}. Must be one of {valid}"
            )

    def copy(self) -> "Task":
        return copy.deepcopy(self)

    def is_completed(self) -> bool:
        return self.stage_category == StageCategory.COMPLETED

    def sort_key(self):
        """Deterministic tie-break key: lower position, then smaller id."""
        return (self.position, str(self.id))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "parentTaskId": self.parent_task_id,
            "title": self.title,
            "optimisticMinutes": self.optimistic_minutes,
            "pessimisticMinutes": self.pessimistic_minutes,
            "effortMinutes": self.effort_minutes,
            "mostLikelyMinutes": self.most_likely_minutes,
            "stageCategory": self.stage_category.value,
            "position": self.position,
            "assigneeIds": list(self.assignee_ids),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """
        Create a task from the collaborator's record shape.

        Args:
            data: Mapping with camelCase keys as delivered by the platform

        Returns:
            Task: New task instance
        """
        return cls(
            id=data["id"],
            project_id=data["projectId"],
            optimistic_minutes=data.get("optimisticMinutes"),
            pessimistic_minutes=data.get("pessimisticMinutes"),
            effort_minutes=data.get("effortMinutes"),
            stage_category=data.get("stageCategory", StageCategory.ACTIVE.value),
            position=data.get("position", 0),
            parent_task_id=data.get("parentTaskId"),
            title=data.get("title", ""),
            most_likely_minutes=data.get("mostLikelyMinutes"),
            assignee_ids=data.get("assigneeIds"),
            deleted=data.get("deleted", False),
        )

    def __repr__(self) -> str:
        return (
            f"Task(id={self.id}, position={self.position}, "
            f"optimistic={self.optimistic_minutes}, "
            f"pessimistic={self.pessimistic_minutes}, "
            f"stage={self.stage_category.value})"
        )

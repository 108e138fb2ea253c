from typing import Any, Dict, List, Optional


class ChainError(Exception):
    """Exception raised for errors in the Chain class."""

    pass


class Chain:
    """
    Represents a chain of tasks in a Critical Chain Project Management (CCPM) system.

    A chain can be either the critical chain (the sequence of tasks that determines
    project duration) or a feeding chain (a sequence that merges into the critical
    chain at a specific task). Chains are computed per analysis and never stored.
    """

    def __init__(
        self,
        id: str,
        type: str = "feeding",
        tasks: Optional[List[str]] = None,
        merge_task_id: Optional[str] = None,
        duration_minutes: float = 0.0,
    ):
        """
        Initialize a new Chain.

        Args:
            id: Identifier for the chain, unique within one analysis
            type: Chain type ("critical" or "feeding")
            tasks: Ordered task IDs of the chain
            merge_task_id: Critical chain task a feeding chain merges into
            duration_minutes: Span of the chain in the analysed schedule

        Raises:
            ChainError: If any input validation fails
        """
        if id is None or str(id).strip() == "":
            raise ChainError("Chain ID cannot be None or empty")
        self.id = id

        if type not in ["critical", "feeding"]:
            raise ChainError("Chain type must be either 'critical' or 'feeding'")
        self.type = type

        if type == "critical" and merge_task_id is not None:
            raise ChainError("Only feeding chains can merge into another task")
        self.merge_task_id = merge_task_id

        self.tasks = []
        for task_id in tasks or []:
            self.add_task(task_id)

        self.duration_minutes = float(duration_minutes)

    def add_task(self, task_id: str) -> "Chain":
        """
        Append a task to this chain, ignoring duplicates.

        Returns:
            self: For method chaining
        """
        if task_id is None or str(task_id).strip() == "":
            raise ChainError("Task ID cannot be None or empty")

        if task_id not in self.tasks:
            self.tasks.append(task_id)
        return self

    def set_merge_point(self, task_id: str) -> "Chain":
        """
        Set the critical chain task this feeding chain merges into.

        Raises:
            ChainError: If task_id is empty or this is not a feeding chain
        """
        if task_id is None or str(task_id).strip() == "":
            raise ChainError("Task ID cannot be None or empty")

        if self.type != "feeding":
            raise ChainError("Only feeding chains can merge into another task")

        self.merge_task_id = task_id
        return self

    def get_tasks(self) -> List[str]:
        return self.tasks.copy()

    def is_critical(self) -> bool:
        return self.type == "critical"

    def is_feeding(self) -> bool:
        return self.type == "feeding"

    def __len__(self) -> int:
        return len(self.tasks)

    def __contains__(self, task_id) -> bool:
        return task_id in self.tasks

    def to_dict(self) -> Dict[str, Any]:
        if self.is_critical():
            return {
                "chainTaskIds": self.get_tasks(),
                "durationMinutes": self.duration_minutes,
            }
        return {
            "chainTaskIds": self.get_tasks(),
            "mergeTaskId": self.merge_task_id,
            "durationMinutes": self.duration_minutes,
        }

    def __repr__(self) -> str:
        merge = f", merges_into={self.merge_task_id}" if self.is_feeding() else ""
        return (
            f"Chain(id={self.id}, type={self.type}, tasks={self.tasks}"
            f"{merge}, duration={self.duration_minutes})"
        )

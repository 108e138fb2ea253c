from enum import Enum
from typing import Any, Dict, Optional


class DependencyType(Enum):
    """
    Precedence relation between a predecessor and a successor task.

    FS: successor starts after predecessor finishes
    SS: successor starts after predecessor starts
    FF: successor finishes after predecessor finishes
    SF: successor finishes after predecessor starts
    """

    FS = "FS"
    SS = "SS"
    FF = "FF"
    SF = "SF"


class DependencyError(Exception):
    """Exception raised for errors in the Dependency class."""

    pass


class Dependency:
    """A dependency edge between two tasks of the same project."""

    def __init__(
        self,
        predecessor_task_id: str,
        successor_task_id: str,
        type: Any = DependencyType.FS,
        lag_minutes: float = 0,
        id: Optional[str] = None,
    ):
        if predecessor_task_id is None or successor_task_id is None:
            raise DependencyError("Dependency endpoints cannot be None")
        if predecessor_task_id == successor_task_id:
            raise DependencyError(
                f"Task {predecessor_task_id} cannot depend on itself"
            )
        self.predecessor_task_id = predecessor_task_id
        self.successor_task_id = successor_task_id

        try:
            self.type = DependencyType(
                type.value if isinstance(type, DependencyType) else type
            )
        except ValueError:
            valid = [t.value for t in DependencyType]
            raise DependencyError(
                f"Invalid dependency type: {type}. Must be one of {valid}"
            )

        if isinstance(lag_minutes, bool) or not isinstance(lag_minutes, (int, float)):
            raise DependencyError("Lag must be a number of minutes")
        self.lag_minutes = lag_minutes

        self.id = id or f"{predecessor_task_id}->{successor_task_id}"

    @property
    def key(self):
        return (self.predecessor_task_id, self.successor_task_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "predecessorTaskId": self.predecessor_task_id,
            "successorTaskId": self.successor_task_id,
            "type": self.type.value,
            "lagMinutes": self.lag_minutes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Dependency":
        return cls(
            predecessor_task_id=data["predecessorTaskId"],
            successor_task_id=data["successorTaskId"],
            type=data.get("type", data.get("depType", DependencyType.FS.value)),
            lag_minutes=data.get("lagMinutes", 0),
            id=data.get("id"),
        )

    def __repr__(self) -> str:
        return (
            f"Dependency({self.predecessor_task_id} -{self.type.value}"
            f"({self.lag_minutes})-> {self.successor_task_id})"
        )

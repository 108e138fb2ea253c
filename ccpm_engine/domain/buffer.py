import copy
import math
from enum import Enum
from typing import Any, Dict, List, Optional

from ccpm_engine.errors import BufferArchivedError, InvalidConsumptionError


def _is_minutes(value):
    """A finite int or float; bools, NaN and infinities are not minutes"""
    return (
        not isinstance(value, bool)
        and isinstance(value, (int, float))
        and math.isfinite(value)
    )


class BufferType(Enum):
    PROJECT = "PROJECT"
    FEEDING = "FEEDING"


class BufferStatus(Enum):
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"


class BufferError(Exception):
    """Exception raised for errors in the Buffer class."""

    pass


class Buffer:
    """
    Represents a buffer in a Critical Chain Project Management (CCPM) system.

    Buffers protect against uncertainty by providing time reserves. They can be:
    - Project Buffer: Protects the project completion date, sized over the critical chain
    - Feeding Buffer: Protects the critical chain from delays in a feeding chain,
      placed at the chain's merge point

    Consumption is tracked in minutes and may exceed the planned size; an
    overrun is an alarming state, not an error. Archived buffers are frozen.
    """

    def __init__(
        self,
        id: str,
        project_id: str,
        buffer_type: Any,
        planned_minutes: float,
        chain_task_ids: Optional[List[str]] = None,
        feeding_path_task_id: Optional[str] = None,
        name: Optional[str] = None,
        consumed_minutes: float = 0.0,
        status: Any = BufferStatus.ACTIVE,
        strategy_name: Optional[str] = None,
        created_by: Optional[str] = None,
        created_at: Optional[int] = None,
        updated_at: Optional[int] = None,
    ):
        """
        Initialize a new Buffer.

        Args:
            id: Unique identifier for the buffer
            project_id: Project the buffer belongs to
            buffer_type: BufferType or its string value
            planned_minutes: Size of the buffer in minutes
            chain_task_ids: Ordered task IDs of the chain the buffer protects
            feeding_path_task_id: Merge point into the critical chain (feeding only)
            name: Name/description of the buffer
            consumed_minutes: Minutes consumed so far
            status: BufferStatus or its string value
            strategy_name: Name of the sizing strategy used
            created_by: Actor that created the buffer
            created_at: Creation time in epoch milliseconds
            updated_at: Last update time in epoch milliseconds

        Raises:
            BufferError: If any input validation fails
        """
        if id is None or str(id).strip() == "":
            raise BufferError("Buffer ID cannot be None or empty")
        self.id = id

        if project_id is None or str(project_id).strip() == "":
            raise BufferError("Buffer project ID cannot be None or empty")
        self.project_id = project_id

        try:
            self.buffer_type = BufferType(
                buffer_type.value if isinstance(buffer_type, BufferType) else buffer_type
            )
        except ValueError:
            raise BufferError("Buffer type must be either 'PROJECT' or 'FEEDING'")

        if not _is_minutes(planned_minutes):
            raise BufferError("Buffer size must be a finite number")
        if planned_minutes < 0:
            raise BufferError("Buffer size cannot be negative")
        self.planned_minutes = float(planned_minutes)

        if not _is_minutes(consumed_minutes):
            raise BufferError("Consumed minutes must be a finite number")
        if consumed_minutes < 0:
            raise BufferError("Consumed minutes cannot be negative")
        self.consumed_minutes = float(consumed_minutes)

        if self.buffer_type == BufferType.FEEDING and (
            feeding_path_task_id is None or str(feeding_path_task_id).strip() == ""
        ):
            raise BufferError("Feeding buffers must specify feeding_path_task_id")
        if self.buffer_type == BufferType.PROJECT and feeding_path_task_id is not None:
            raise BufferError("Project buffers cannot have a feeding_path_task_id")
        self.feeding_path_task_id = feeding_path_task_id

        self.chain_task_ids = list(chain_task_ids) if chain_task_ids else []

        try:
            self.status = BufferStatus(
                status.value if isinstance(status, BufferStatus) else status
            )
        except ValueError:
            raise BufferError("Buffer status must be either 'ACTIVE' or 'ARCHIVED'")

        if name is None:
            if self.buffer_type == BufferType.PROJECT:
                name = "Project Buffer"
            else:
                name = f"Feeding Buffer -> {feeding_path_task_id}"
        if not isinstance(name, str) or not name.strip():
            raise BufferError("Buffer name must be a non-empty string")
        self.name = name

        self.strategy_name = strategy_name
        self.created_by = created_by
        self.created_at = created_at
        self.updated_at = updated_at if updated_at is not None else created_at

    def is_active(self) -> bool:
        return self.status == BufferStatus.ACTIVE

    def is_project_buffer(self) -> bool:
        return self.buffer_type == BufferType.PROJECT

    def _ensure_active(self):
        if not self.is_active():
            raise BufferArchivedError(self.id)

    def consume(self, amount: float, timestamp: Optional[int] = None) -> float:
        """
        Record consumption of the buffer.

        Args:
            amount: Minutes to add to the consumed total, must not be negative
            timestamp: Update time in epoch milliseconds

        Returns:
            float: The new consumed total

        Raises:
            InvalidConsumptionError: If amount is negative or not a finite number
            BufferArchivedError: If the buffer is archived
        """
        if not _is_minutes(amount):
            raise InvalidConsumptionError("Consumption delta must be a finite number")
        if amount < 0:
            raise InvalidConsumptionError(
                "Cannot consume a negative amount of buffer; use reset_consumption",
                {"bufferId": self.id, "deltaMinutes": amount},
            )
        self._ensure_active()

        self.consumed_minutes += float(amount)
        self.updated_at = timestamp
        return self.consumed_minutes

    def reset(self, consumed_minutes: float = 0.0, timestamp: Optional[int] = None) -> float:
        """
        Explicitly set consumption to a lower (or any) value.

        Returns:
            float: Minutes of recorded consumption that were discarded
        """
        if not _is_minutes(consumed_minutes):
            raise InvalidConsumptionError("Consumed minutes must be a finite number")
        if consumed_minutes < 0:
            raise InvalidConsumptionError("Consumed minutes cannot be negative")
        self._ensure_active()

        discarded = self.consumed_minutes - float(consumed_minutes)
        self.consumed_minutes = float(consumed_minutes)
        self.updated_at = timestamp
        return discarded

    def apply_update(
        self,
        name: Optional[str] = None,
        consumed_minutes: Optional[float] = None,
        status: Any = None,
        timestamp: Optional[int] = None,
    ) -> "Buffer":
        """
        Apply a partial update coming from the buffer CRUD surface.

        consumed_minutes may only move forward here; lowering it goes through
        reset(). The only status change allowed is ACTIVE -> ARCHIVED.

        Raises:
            BufferArchivedError: If the buffer is archived
            InvalidConsumptionError: If consumed_minutes would decrease
            BufferError: For an invalid name or status
        """
        self._ensure_active()

        new_status = None
        if status is not None:
            try:
                new_status = BufferStatus(
                    status.value if isinstance(status, BufferStatus) else status
                )
            except ValueError:
                raise BufferError("Buffer status must be either 'ACTIVE' or 'ARCHIVED'")

        if consumed_minutes is not None:
            if not _is_minutes(consumed_minutes):
                raise InvalidConsumptionError("Consumed minutes must be a finite number")
            if consumed_minutes < self.consumed_minutes:
                raise InvalidConsumptionError(
                    "Consumed minutes cannot decrease through an update; "
                    "use reset_consumption",
                    {
                        "bufferId": self.id,
                        "currentMinutes": self.consumed_minutes,
                        "requestedMinutes": consumed_minutes,
                    },
                )

        if name is not None and (not isinstance(name, str) or not name.strip()):
            raise BufferError("Buffer name must be a non-empty string")

        # validated; apply all fields together
        if name is not None:
            self.name = name
        if consumed_minutes is not None:
            self.consumed_minutes = float(consumed_minutes)
        if new_status is not None:
            self.status = new_status
        self.updated_at = timestamp
        return self

    def archive(self, timestamp: Optional[int] = None):
        if self.is_active():
            self.status = BufferStatus.ARCHIVED
            self.updated_at = timestamp

    def get_consumption_ratio(self) -> float:
        """
        Consumed over planned minutes, unclamped.

        A zero-size buffer reports 0.0 while untouched and infinity once any
        consumption is recorded against it.
        """
        if self.planned_minutes == 0:
            return 0.0 if self.consumed_minutes == 0 else float("inf")
        return self.consumed_minutes / self.planned_minutes

    def copy(self) -> "Buffer":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert buffer to the record shape exposed to collaborators.

        Returns:
            dict: Dictionary representation of the buffer
        """
        return {
            "id": self.id,
            "projectId": self.project_id,
            "bufferType": self.buffer_type.value,
            "name": self.name,
            "plannedMinutes": self.planned_minutes,
            "consumedMinutes": self.consumed_minutes,
            "feedingPathTaskId": self.feeding_path_task_id,
            "chainTaskIds": list(self.chain_task_ids),
            "status": self.status.value,
            "strategyName": self.strategy_name,
            "createdBy": self.created_by,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Buffer":
        return cls(
            id=data["id"],
            project_id=data["projectId"],
            buffer_type=data["bufferType"],
            planned_minutes=data["plannedMinutes"],
            chain_task_ids=data.get("chainTaskIds"),
            feeding_path_task_id=data.get("feedingPathTaskId"),
            name=data.get("name"),
            consumed_minutes=data.get("consumedMinutes", 0.0),
            status=data.get("status", BufferStatus.ACTIVE.value),
            strategy_name=data.get("strategyName"),
            created_by=data.get("createdBy"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    def __repr__(self) -> str:
        return (
            f"Buffer(id={self.id}, name={self.name}, "
            f"type={self.buffer_type.value}, planned={self.planned_minutes:.1f}, "
            f"consumed={self.consumed_minutes:.1f}, status={self.status.value})"
        )

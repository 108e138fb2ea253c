import logging
from enum import Enum

from ..config import DEFAULT_LIST_LIMIT, YELLOW_BAND_FRACTION
from ..utils.clock import SystemClock

logger = logging.getLogger(__name__)


class BufferZone(Enum):
    GREEN = "GREEN"
    YELLOW = "YELLOW"
    RED = "RED"


def classify_zone(
    consumed_percent, chain_complete_percent, yellow_band_fraction=YELLOW_BAND_FRACTION
):
    """
    Classify buffer consumption against chain progress (fever chart zone).

    With c the completed fraction of the chain and b the consumed fraction of
    the buffer (both 0..1, b may exceed 1):

        GREEN   b <= c
        YELLOW  c < b <= c + k * (1 - c)
        RED     b >  c + k * (1 - c)

    where k is yellow_band_fraction.

    Returns:
        BufferZone
    """
    c = float(chain_complete_percent)
    b = float(consumed_percent)
    if not 0.0 <= c <= 1.0:
        raise ValueError(f"Chain completion must be between 0 and 1, got {c}")

    if b <= c:
        return BufferZone.GREEN
    if b <= c + yellow_band_fraction * (1.0 - c):
        return BufferZone.YELLOW
    return BufferZone.RED


def chain_complete_percent(chain_task_ids, tasks_by_id):
    """
    Fraction of a chain's tasks whose stage is COMPLETED.

    Tasks that can no longer be found count as not completed; an empty chain
    is 0% complete.
    """
    if not chain_task_ids:
        return 0.0
    completed = sum(
        1
        for task_id in chain_task_ids
        if task_id in tasks_by_id and tasks_by_id[task_id].is_completed()
    )
    return completed / len(chain_task_ids)


class BufferTracker:
    """
    Tracks buffer consumption over the life of a project.

    Consumption only moves forward through update(); the single way to lower
    it is reset_consumption(), so recorded overruns are never lost by an
    ordinary time-logging event.
    """

    def __init__(self, store, clock=None, yellow_band_fraction=YELLOW_BAND_FRACTION):
        self.store = store
        self.clock = clock or SystemClock()
        self.yellow_band_fraction = yellow_band_fraction

    # Consumption

    def update(self, buffer_id, delta_minutes):
        """
        Record additional consumption of a buffer as an atomic increment.

        Args:
            buffer_id: Buffer to update
            delta_minutes: Non-negative minutes consumed since the last update

        Returns:
            Buffer: The updated buffer

        Raises:
            BufferNotFoundError: If the buffer does not exist
            InvalidConsumptionError: If delta_minutes is negative
            BufferArchivedError: If the buffer is archived
        """
        buffer = self.store.increment_consumed(
            buffer_id, delta_minutes, self.clock.now_ms()
        )
        logger.debug(
            "Buffer %s consumed %+.1f min (total %.1f of %.1f)",
            buffer_id,
            delta_minutes,
            buffer.consumed_minutes,
            buffer.planned_minutes,
        )
        return buffer

    record_consumption = update

    def reset_consumption(self, buffer_id, consumed_minutes=0.0):
        """
        Explicitly overwrite a buffer's consumption, e.g. after replanning.
        """
        before = self.store.get_buffer(buffer_id).consumed_minutes
        buffer = self.store.reset_consumed(
            buffer_id, consumed_minutes, self.clock.now_ms()
        )
        logger.info(
            "Buffer %s consumption reset from %.1f to %.1f min",
            buffer_id,
            before,
            buffer.consumed_minutes,
        )
        return buffer

    # Status

    def _tasks_by_id(self, project_id):
        return {
            task.id: task
            for task in self.store.get_task_graph(project_id)
            if not task.deleted
        }

    def describe(self, buffer, completion=None, tasks_by_id=None):
        """
        Fever chart status of one buffer.

        Args:
            buffer: Buffer record
            completion: Chain completion fraction; computed from the
                        buffer's chain tasks when omitted
            tasks_by_id: Task lookup used to compute completion

        Returns:
            dict: consumption, completion and zone of the buffer
        """
        if completion is None:
            if tasks_by_id is None:
                tasks_by_id = self._tasks_by_id(buffer.project_id)
            completion = chain_complete_percent(buffer.chain_task_ids, tasks_by_id)

        consumed_percent = buffer.get_consumption_ratio()
        zone = classify_zone(consumed_percent, completion, self.yellow_band_fraction)
        return {
            "bufferId": buffer.id,
            "bufferType": buffer.buffer_type.value,
            "name": buffer.name,
            "feedingPathTaskId": buffer.feeding_path_task_id,
            "plannedMinutes": buffer.planned_minutes,
            "consumedMinutes": buffer.consumed_minutes,
            "consumedPercent": consumed_percent,
            "chainCompletePercent": completion,
            "zone": zone.value,
        }

    def buffer_status(self, buffer_id, completion=None):
        return self.describe(self.store.get_buffer(buffer_id), completion)

    def project_buffer_status(self, project_id):
        """
        Status of every ACTIVE buffer of a project.

        Returns:
            dict: {"projectBuffer": status or None, "feedingBuffers": [status, ...]}
        """
        self.store.get_project(project_id)
        tasks_by_id = self._tasks_by_id(project_id)

        project_buffer = None
        feeding_buffers = []
        for buffer in self.store.load_active_buffers(project_id):
            status = self.describe(buffer, tasks_by_id=tasks_by_id)
            if buffer.is_project_buffer():
                project_buffer = status
            else:
                feeding_buffers.append(status)

        return {
            "projectId": project_id,
            "projectBuffer": project_buffer,
            "feedingBuffers": feeding_buffers,
        }

    # CRUD

    def list_buffers(
        self,
        project_id,
        buffer_type=None,
        status=None,
        limit=DEFAULT_LIST_LIMIT,
        offset=0,
    ):
        if limit < 0 or offset < 0:
            raise ValueError("limit and offset must not be negative")
        buffers = self.store.list_buffers(project_id, buffer_type, status)
        return {
            "items": buffers[offset : offset + limit],
            "total": len(buffers),
            "limit": limit,
            "offset": offset,
        }

    def get_buffer(self, buffer_id):
        return self.store.get_buffer(buffer_id)

    def update_buffer(self, buffer_id, name=None, consumed_minutes=None, status=None):
        """
        Partial update of name, consumed minutes (forward only) or status
        (ACTIVE to ARCHIVED only).
        """
        return self.store.update_buffer(
            buffer_id,
            name=name,
            consumed_minutes=consumed_minutes,
            status=status,
            timestamp=self.clock.now_ms(),
        )

    def delete_buffer(self, buffer_id):
        buffer = self.store.delete_buffer(buffer_id)
        logger.info("Deleted buffer %s (%s)", buffer.id, buffer.name)
        return buffer

"""
Storage capability consumed by the analysis engine.

The engine never talks to a database directly. It is handed an AnalysisStore,
which the platform implements over its own persistence; InMemoryStore is the
reference implementation used by the tests and the bundled example.
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional

from ccpm_engine.domain.buffer import Buffer, BufferError, BufferStatus, BufferType
from ccpm_engine.domain.dependency import Dependency
from ccpm_engine.domain.task import Task
from ccpm_engine.errors import BufferNotFoundError, ProjectNotFoundError

logger = logging.getLogger(__name__)


class AnalysisStore(ABC):
    @abstractmethod
    def get_project(self, project_id: str) -> Dict[str, Any]:
        """Return {"id", "startAt"} or raise ProjectNotFoundError"""
        pass

    @abstractmethod
    def get_task_graph(self, project_id: str) -> List[Task]:
        """Snapshot of the project's tasks"""
        pass

    @abstractmethod
    def get_dependencies(self, project_id: str) -> List[Dependency]:
        """Snapshot of the dependency edges touching the project's tasks"""
        pass

    @abstractmethod
    def save_buffers(
        self, project_id: str, buffers: List[Buffer], timestamp: Optional[int] = None
    ) -> List[Buffer]:
        """
        Archive every ACTIVE buffer of the project and insert the given ones,
        as one all-or-nothing unit.
        """
        pass

    @abstractmethod
    def load_active_buffers(self, project_id: str) -> List[Buffer]:
        pass

    @abstractmethod
    def get_buffer(self, buffer_id: str) -> Buffer:
        """Return the buffer or raise BufferNotFoundError"""
        pass

    @abstractmethod
    def list_buffers(
        self,
        project_id: str,
        buffer_type: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[Buffer]:
        pass

    @abstractmethod
    def increment_consumed(
        self, buffer_id: str, delta_minutes: float, timestamp: Optional[int] = None
    ) -> Buffer:
        """Atomically add delta_minutes to the buffer's consumption"""
        pass

    @abstractmethod
    def reset_consumed(
        self, buffer_id: str, consumed_minutes: float, timestamp: Optional[int] = None
    ) -> Buffer:
        pass

    @abstractmethod
    def update_buffer(
        self,
        buffer_id: str,
        name: Optional[str] = None,
        consumed_minutes: Optional[float] = None,
        status: Optional[str] = None,
        timestamp: Optional[int] = None,
    ) -> Buffer:
        pass

    @abstractmethod
    def delete_buffer(self, buffer_id: str) -> Buffer:
        pass


class InMemoryStore(AnalysisStore):
    """
    Thread-safe in-memory AnalysisStore.

    Every read returns copies, so callers work on a snapshot that later writes
    cannot change underneath them. Every write happens under one lock.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._projects = {}  # project_id -> {"id", "startAt"}
        self._tasks = {}  # project_id -> OrderedDict(task_id -> Task)
        self._dependencies = OrderedDict()  # (pred, succ) -> Dependency
        self._buffers = OrderedDict()  # buffer_id -> Buffer

    # Platform-side setup

    def add_project(self, project_id: str, start_at: Optional[int] = None):
        with self._lock:
            self._projects[project_id] = {"id": project_id, "startAt": start_at}
            self._tasks.setdefault(project_id, OrderedDict())
        return self

    def add_task(self, task: Task):
        with self._lock:
            if task.project_id not in self._projects:
                raise ProjectNotFoundError(task.project_id)
            self._tasks[task.project_id][task.id] = task
        return self

    def add_tasks(self, tasks: Iterable[Task]):
        for task in tasks:
            self.add_task(task)
        return self

    def add_dependency(self, dependency: Dependency):
        with self._lock:
            self._dependencies[dependency.key] = dependency
        return self

    def add_dependencies(self, dependencies: Iterable[Dependency]):
        for dependency in dependencies:
            self.add_dependency(dependency)
        return self

    def set_task_stage(self, project_id: str, task_id: str, stage_category):
        with self._lock:
            task = self._task(project_id, task_id).copy()
            task.set_stage(stage_category)
            self._tasks[project_id][task_id] = task
        return self

    def _task(self, project_id, task_id):
        if project_id not in self._tasks:
            raise ProjectNotFoundError(project_id)
        try:
            return self._tasks[project_id][task_id]
        except KeyError:
            raise KeyError(f"Task {task_id} not found in project {project_id}")

    # Analysis reads

    def get_project(self, project_id: str) -> Dict[str, Any]:
        with self._lock:
            if project_id not in self._projects:
                raise ProjectNotFoundError(project_id)
            return dict(self._projects[project_id])

    def get_task_graph(self, project_id: str) -> List[Task]:
        with self._lock:
            if project_id not in self._projects:
                raise ProjectNotFoundError(project_id)
            return [task.copy() for task in self._tasks[project_id].values()]

    def get_dependencies(self, project_id: str) -> List[Dependency]:
        with self._lock:
            if project_id not in self._projects:
                raise ProjectNotFoundError(project_id)
            task_ids = set(self._tasks[project_id])
            return [
                Dependency.from_dict(dep.to_dict())
                for dep in self._dependencies.values()
                if dep.predecessor_task_id in task_ids
                or dep.successor_task_id in task_ids
            ]

    # Buffers

    def save_buffers(
        self, project_id: str, buffers: List[Buffer], timestamp: Optional[int] = None
    ) -> List[Buffer]:
        with self._lock:
            if project_id not in self._projects:
                raise ProjectNotFoundError(project_id)

            # Validate the whole batch before touching anything
            new_ids = set()
            for buffer in buffers:
                if buffer.project_id != project_id:
                    raise BufferError(
                        f"Buffer {buffer.id} belongs to project {buffer.project_id}, "
                        f"not {project_id}"
                    )
                if buffer.id in self._buffers or buffer.id in new_ids:
                    raise BufferError(f"Duplicate buffer ID: {buffer.id}")
                if not buffer.is_active():
                    raise BufferError(f"Buffer {buffer.id} must be ACTIVE when saved")
                new_ids.add(buffer.id)

            staged = OrderedDict(
                (buffer_id, buffer.copy()) for buffer_id, buffer in self._buffers.items()
            )
            archived = 0
            for buffer in staged.values():
                if buffer.project_id == project_id and buffer.is_active():
                    buffer.archive(timestamp)
                    archived += 1
            for buffer in buffers:
                staged[buffer.id] = buffer.copy()

            self._buffers = staged
            logger.debug(
                "Project %s: archived %d buffers, inserted %d",
                project_id,
                archived,
                len(buffers),
            )
            return [self._buffers[buffer.id].copy() for buffer in buffers]

    def load_active_buffers(self, project_id: str) -> List[Buffer]:
        return self.list_buffers(project_id, status=BufferStatus.ACTIVE.value)

    def get_buffer(self, buffer_id: str) -> Buffer:
        with self._lock:
            return self._get(buffer_id).copy()

    def _get(self, buffer_id):
        try:
            return self._buffers[buffer_id]
        except KeyError:
            raise BufferNotFoundError(buffer_id)

    def list_buffers(
        self,
        project_id: str,
        buffer_type: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[Buffer]:
        wanted_type = BufferType(buffer_type) if buffer_type else None
        wanted_status = BufferStatus(status) if status else None
        with self._lock:
            return [
                buffer.copy()
                for buffer in self._buffers.values()
                if buffer.project_id == project_id
                and (wanted_type is None or buffer.buffer_type == wanted_type)
                and (wanted_status is None or buffer.status == wanted_status)
            ]

    def increment_consumed(
        self, buffer_id: str, delta_minutes: float, timestamp: Optional[int] = None
    ) -> Buffer:
        with self._lock:
            buffer = self._get(buffer_id)
            buffer.consume(delta_minutes, timestamp)
            return buffer.copy()

    def reset_consumed(
        self, buffer_id: str, consumed_minutes: float, timestamp: Optional[int] = None
    ) -> Buffer:
        with self._lock:
            buffer = self._get(buffer_id)
            buffer.reset(consumed_minutes, timestamp)
            return buffer.copy()

    def update_buffer(
        self,
        buffer_id: str,
        name: Optional[str] = None,
        consumed_minutes: Optional[float] = None,
        status: Optional[str] = None,
        timestamp: Optional[int] = None,
    ) -> Buffer:
        with self._lock:
            buffer = self._get(buffer_id)
            staged = buffer.copy()
            staged.apply_update(name, consumed_minutes, status, timestamp)
            self._buffers[buffer_id] = staged
            return staged.copy()

    def delete_buffer(self, buffer_id: str) -> Buffer:
        with self._lock:
            buffer = self._get(buffer_id)
            del self._buffers[buffer_id]
            return buffer

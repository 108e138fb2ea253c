from ccpm_engine.domain.task import Task, TaskError, StageCategory
from ccpm_engine.domain.dependency import Dependency, DependencyError, DependencyType
from ccpm_engine.domain.chain import Chain, ChainError
from ccpm_engine.domain.buffer import Buffer, BufferError, BufferStatus, BufferType
from ccpm_engine.domain.forecast import ForecastResult

__all__ = [
    "Task",
    "TaskError",
    "StageCategory",
    "Dependency",
    "DependencyError",
    "DependencyType",
    "Chain",
    "ChainError",
    "Buffer",
    "BufferError",
    "BufferStatus",
    "BufferType",
    "ForecastResult",
]

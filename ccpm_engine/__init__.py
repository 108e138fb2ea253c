"""
CCPM Analysis Engine
====================

Critical Chain Project Management analysis: critical chain identification,
buffer sizing, buffer consumption tracking and Monte Carlo completion
forecasts over a project's task dependency graph.
"""

import logging

from ccpm_engine.api import CCPMService
from ccpm_engine.domain import (
    Buffer,
    BufferStatus,
    BufferType,
    Chain,
    Dependency,
    DependencyType,
    ForecastResult,
    StageCategory,
    Task,
)
from ccpm_engine.errors import CCPMError, CycleDetectedError
from ccpm_engine.store import AnalysisStore, InMemoryStore
from ccpm_engine.utils.clock import Clock, FixedClock, SystemClock

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "CCPMService",
    "Buffer",
    "BufferStatus",
    "BufferType",
    "Chain",
    "Dependency",
    "DependencyType",
    "ForecastResult",
    "StageCategory",
    "Task",
    "CCPMError",
    "CycleDetectedError",
    "AnalysisStore",
    "InMemoryStore",
    "Clock",
    "FixedClock",
    "SystemClock",
]

"""
Service facade exposing the engine to the platform's API layer.

Every method returns plain dicts with the camelCase keys the REST layer
serves. Errors are raised as CCPMError subclasses; the caller maps
``error.code`` and ``error.status`` onto its responses.
"""

import logging

from .config import (
    CUT_AND_PASTE_FRACTION,
    DEFAULT_BUFFER_STRATEGY,
    DEFAULT_DISTRIBUTION,
    DEFAULT_LIST_LIMIT,
    DEFAULT_PERCENTILES,
    DEFAULT_SIMULATIONS,
    RESOURCE_LEVELING_DEFAULT,
    YELLOW_BAND_FRACTION,
)
from .services.buffer_generator import BufferGenerator
from .services.buffer_tracker import BufferTracker
from .services.critical_chain import CriticalChainAnalyzer
from .services.forecast import ForecastSimulator, validate_simulations
from .utils.clock import SystemClock

logger = logging.getLogger(__name__)


class CCPMService:
    def __init__(
        self,
        store,
        clock=None,
        resource_leveling=RESOURCE_LEVELING_DEFAULT,
        buffer_strategy=DEFAULT_BUFFER_STRATEGY,
        cut_and_paste_fraction=CUT_AND_PASTE_FRACTION,
        yellow_band_fraction=YELLOW_BAND_FRACTION,
        distribution=DEFAULT_DISTRIBUTION,
        seed=None,
        max_workers=None,
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.analyzer = CriticalChainAnalyzer(store, resource_leveling=resource_leveling)
        self.generator = BufferGenerator(
            store,
            analyzer=self.analyzer,
            clock=self.clock,
            project_buffer_strategy=buffer_strategy,
            feeding_buffer_strategy=buffer_strategy,
            cut_and_paste_fraction=cut_and_paste_fraction,
        )
        self.tracker = BufferTracker(
            store, clock=self.clock, yellow_band_fraction=yellow_band_fraction
        )
        self.simulator = ForecastSimulator(
            store,
            analyzer=self.analyzer,
            clock=self.clock,
            distribution=distribution,
            seed=seed,
            max_workers=max_workers,
        )

    # Queries

    def critical_chain(self, project_id):
        """critical-chain query: {criticalChain, feedingChains, ...}"""
        return self.analyzer.analyze_project(project_id).to_dict()

    def forecast(
        self,
        project_id,
        simulations=DEFAULT_SIMULATIONS,
        percentiles=DEFAULT_PERCENTILES,
        start_at=None,
    ):
        """
        forecast(simulations) query: {percentiles, simulations, generatedAt, ...}

        start_at (epoch ms or datetime) anchors the percentile timestamps; the
        project start is used when it is omitted.
        """
        validate_simulations(simulations)
        return self.simulator.forecast(
            project_id, simulations, percentiles, start_at=start_at
        ).to_dict()

    def buffer_status(self, project_id):
        """buffer-status query: {projectBuffer, feedingBuffers}"""
        return self.tracker.project_buffer_status(project_id)

    # Commands

    def regenerate_buffers(self, project_id, created_by=None):
        """buffers/regenerate command: the new buffers, prior ones archived"""
        return [
            buffer.to_dict()
            for buffer in self.generator.regenerate(project_id, created_by)
        ]

    def record_consumption(self, buffer_id, delta_minutes):
        return self.tracker.update(buffer_id, delta_minutes).to_dict()

    def reset_consumption(self, buffer_id, consumed_minutes=0.0):
        return self.tracker.reset_consumption(buffer_id, consumed_minutes).to_dict()

    # Buffer CRUD

    def list_buffers(
        self,
        project_id,
        buffer_type=None,
        status=None,
        limit=DEFAULT_LIST_LIMIT,
        offset=0,
    ):
        page = self.tracker.list_buffers(project_id, buffer_type, status, limit, offset)
        page["items"] = [buffer.to_dict() for buffer in page["items"]]
        return page

    def get_buffer(self, buffer_id):
        return self.tracker.get_buffer(buffer_id).to_dict()

    def update_buffer(self, buffer_id, name=None, consumed_minutes=None, status=None):
        return self.tracker.update_buffer(
            buffer_id, name=name, consumed_minutes=consumed_minutes, status=status
        ).to_dict()

    def delete_buffer(self, buffer_id):
        self.tracker.delete_buffer(buffer_id)

"""
Monte Carlo forecast of project completion.

Each trial samples every task's duration and re-runs the forward pass of the
critical chain analysis; the project finish of the trial is its latest early
finish. Trials are grouped into blocks that are evaluated as numpy vectors,
and blocks run in parallel on a thread pool. Every block owns its random
generator and its duration arrays, so blocks share no mutable state.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from ..config import (
    DEFAULT_DISTRIBUTION,
    DEFAULT_PERCENTILES,
    DEFAULT_SIMULATIONS,
    FORECAST_BLOCK_SIZE,
    FORECAST_MAX_WORKERS,
    HISTOGRAM_BINS,
    MAX_SIMULATIONS,
    MIN_SIMULATIONS,
    MINUTE_MS,
    PERT_SHAPE,
)
from ..domain.forecast import ForecastResult
from ..errors import InvalidSimulationCountError, SimulationFailedError
from ..utils.clock import SystemClock, to_epoch_ms
from ..utils.graph import forward_pass
from .critical_chain import CriticalChainAnalyzer

logger = logging.getLogger(__name__)

DISTRIBUTIONS = ("triangular", "pert")


def validate_simulations(simulations):
    """
    Reject a simulation count outside [MIN_SIMULATIONS, MAX_SIMULATIONS].

    Raises:
        InvalidSimulationCountError: For non-integers (bools included) and
                                     out-of-range values
    """
    if isinstance(simulations, bool) or not isinstance(
        simulations, (int, np.integer)
    ):
        raise InvalidSimulationCountError(simulations, MIN_SIMULATIONS, MAX_SIMULATIONS)
    if not MIN_SIMULATIONS <= simulations <= MAX_SIMULATIONS:
        raise InvalidSimulationCountError(simulations, MIN_SIMULATIONS, MAX_SIMULATIONS)
    return int(simulations)


def validate_percentiles(percentiles):
    values = []
    for p in percentiles:
        if isinstance(p, bool) or not isinstance(p, (int, float)):
            raise ValueError(f"Percentile must be a number, got {p!r}")
        if not 0 < p <= 100:
            raise ValueError(f"Percentile must be in (0, 100], got {p}")
        values.append(p)
    if not values:
        raise ValueError("At least one percentile is required")
    return sorted(set(values))


def percentile_index(count, percentile):
    """Index into the sorted trial durations for a percentile"""
    return min(int(math.floor(count * percentile / 100.0)), count - 1)


class TaskSampler:
    """Duration model of one task: a fixed value or a (o, m, p) range"""

    def __init__(self, task):
        self.task_id = task.id
        if task.has_range_estimate() and task.pessimistic_minutes > task.optimistic_minutes:
            self.low = float(task.optimistic_minutes)
            self.mode = float(task.most_likely)
            self.high = float(task.pessimistic_minutes)
            self.fixed = None
        else:
            self.fixed = task.effective_duration

    def sample(self, rng, size, distribution):
        if self.fixed is not None:
            return np.full(size, self.fixed, dtype=float)
        if distribution == "pert":
            span = self.high - self.low
            alpha = 1.0 + PERT_SHAPE * (self.mode - self.low) / span
            beta = 1.0 + PERT_SHAPE * (self.high - self.mode) / span
            return self.low + span * rng.beta(alpha, beta, size)
        return rng.triangular(self.low, self.mode, self.high, size)


class ForecastSimulator:
    def __init__(
        self,
        store,
        analyzer=None,
        clock=None,
        distribution=DEFAULT_DISTRIBUTION,
        block_size=FORECAST_BLOCK_SIZE,
        max_workers=FORECAST_MAX_WORKERS,
        seed=None,
        histogram_bins=HISTOGRAM_BINS,
    ):
        """
        Args:
            store: AnalysisStore to read projects from
            analyzer: CriticalChainAnalyzer (its resource leveling option applies)
            clock: Clock for the generation timestamp and default start
            distribution: "triangular" or "pert"
            block_size: Trials evaluated together by one worker
            max_workers: Thread pool size, None for the executor default
            seed: Seed for reproducible forecasts, None for fresh entropy
            histogram_bins: Number of bins of the duration histogram
        """
        if distribution not in DISTRIBUTIONS:
            raise ValueError(
                f"Unknown distribution: {distribution}. Must be one of {DISTRIBUTIONS}"
            )
        if block_size < 1:
            raise ValueError("block_size must be at least 1")
        self.store = store
        self.analyzer = analyzer or CriticalChainAnalyzer(store)
        self.clock = clock or SystemClock()
        self.distribution = distribution
        self.block_size = block_size
        self.max_workers = max_workers
        self.seed = seed
        self.histogram_bins = histogram_bins

    def forecast(
        self,
        project_id,
        simulations=DEFAULT_SIMULATIONS,
        percentiles=DEFAULT_PERCENTILES,
        start_at=None,
    ):
        """
        Forecast project completion with a Monte Carlo simulation.

        Args:
            project_id: Project to forecast
            simulations: Number of trials, 100 to 10000
            percentiles: Percentiles to report, e.g. (50, 80, 95)
            start_at: Analysis start (epoch ms or datetime); defaults to the
                      project's start, then to the clock's current time

        Returns:
            ForecastResult

        Raises:
            InvalidSimulationCountError: Before any work for a bad count
            ProjectNotFoundError, InsufficientDataError, CycleDetectedError:
                From loading and analysing the project
            SimulationFailedError: If any trial fails
        """
        simulations = validate_simulations(simulations)
        percentiles = validate_percentiles(percentiles)

        project = self.store.get_project(project_id)
        analysis = self.analyzer.analyze(self.analyzer.load_graph(project_id))
        task_graph = analysis.task_graph

        if start_at is None:
            start_at = project.get("startAt")
        start_ms = to_epoch_ms(start_at) if start_at is not None else self.clock.now_ms()

        durations = self.run_trials(task_graph, simulations)

        percentile_durations = {}
        percentile_epochs = {}
        for p in percentiles:
            minutes = float(durations[percentile_index(simulations, p)])
            percentile_durations[p] = minutes
            percentile_epochs[p] = start_ms + int(round(minutes * MINUTE_MS))

        counts, edges = np.histogram(durations, bins=self.histogram_bins)
        histogram = [
            {
                "minMinutes": float(edges[i]),
                "maxMinutes": float(edges[i + 1]),
                "count": int(counts[i]),
            }
            for i in range(len(counts))
        ]

        result = ForecastResult(
            project_id=project_id,
            simulations=simulations,
            percentiles=percentile_epochs,
            percentile_durations=percentile_durations,
            generated_at=self.clock.now_ms(),
            start_at=start_ms,
            deterministic_duration_minutes=analysis.project_finish,
            deterministic_finish_at=start_ms
            + int(round(analysis.project_finish * MINUTE_MS)),
            histogram=histogram,
        )
        logger.info("Forecast for project %s: %r", project_id, result)
        return result

    def run_trials(self, task_graph, simulations):
        """
        Run all trials and return their completion times, sorted ascending.

        Raises:
            SimulationFailedError: If any block fails; no partial result is kept
        """
        samplers = [TaskSampler(task_graph.tasks[t]) for t in task_graph.topological_order()]
        full_blocks, remainder = divmod(simulations, self.block_size)
        sizes = [self.block_size] * full_blocks + ([remainder] if remainder else [])
        seeds = np.random.SeedSequence(self.seed).spawn(len(sizes))

        def run_block(size, seed_sequence):
            return self._run_block(task_graph, samplers, size, seed_sequence)

        try:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                blocks = list(executor.map(run_block, sizes, seeds))
        except SimulationFailedError:
            raise
        except (ArithmeticError, ValueError) as exc:
            raise SimulationFailedError(
                f"Forecast trial failed: {exc}",
                {"projectId": task_graph.project_id},
            ) from exc

        return np.sort(np.concatenate(blocks))

    def _run_block(self, task_graph, samplers, size, seed_sequence):
        rng = np.random.default_rng(seed_sequence)
        with np.errstate(divide="raise", over="raise", invalid="raise"):
            durations = {}
            for sampler in samplers:
                sampled = sampler.sample(rng, size, self.distribution)
                if not np.all(np.isfinite(sampled)) or np.any(sampled < 0):
                    raise SimulationFailedError(
                        f"Invalid sampled duration for task {sampler.task_id}",
                        {
                            "projectId": task_graph.project_id,
                            "taskId": sampler.task_id,
                        },
                    )
                durations[sampler.task_id] = sampled

            _, early_finish = forward_pass(task_graph, durations)
            if not early_finish:
                return np.zeros(size)
            return np.max(np.vstack(list(early_finish.values())), axis=0)

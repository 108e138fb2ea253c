import unittest
from datetime import datetime, timezone

import numpy as np

from ccpm_engine.domain.dependency import Dependency
from ccpm_engine.domain.task import Task
from ccpm_engine.errors import (
    CycleDetectedError,
    InvalidSimulationCountError,
    SimulationFailedError,
)
from ccpm_engine.services.forecast import (
    ForecastSimulator,
    TaskSampler,
    percentile_index,
    validate_percentiles,
    validate_simulations,
)
from ccpm_engine.store import InMemoryStore
from ccpm_engine.utils.clock import FixedClock, to_epoch_ms

START = to_epoch_ms(datetime(2025, 4, 1, tzinfo=timezone.utc))
MINUTE_MS = 60_000


class TestValidation(unittest.TestCase):
    def test_simulation_bounds(self):
        self.assertEqual(validate_simulations(100), 100)
        self.assertEqual(validate_simulations(10000), 10000)
        self.assertEqual(validate_simulations(np.int64(500)), 500)
        for bad in (99, 10001, 0, -5, True, 500.0, "1000", None):
            with self.assertRaises(InvalidSimulationCountError):
                validate_simulations(bad)

    def test_percentiles(self):
        self.assertEqual(validate_percentiles([95, 50, 80, 50]), [50, 80, 95])
        for bad in ([], [0], [101], ["50"], [True]):
            with self.assertRaises(ValueError):
                validate_percentiles(bad)

    def test_percentile_index(self):
        self.assertEqual(percentile_index(1000, 50), 500)
        self.assertEqual(percentile_index(1000, 95), 950)
        self.assertEqual(percentile_index(1000, 100), 999)
        self.assertEqual(percentile_index(100, 99.5), 99)


class TestTaskSampler(unittest.TestCase):
    def test_fixed_duration(self):
        rng = np.random.default_rng(1)
        sampler = TaskSampler(Task("A", "P1", effort_minutes=45))
        np.testing.assert_array_equal(sampler.sample(rng, 5, "triangular"), [45.0] * 5)

        no_spread = TaskSampler(Task("B", "P1", optimistic_minutes=30, pessimistic_minutes=30))
        self.assertEqual(no_spread.fixed, 30.0)

    def test_samples_stay_in_range(self):
        rng = np.random.default_rng(1)
        sampler = TaskSampler(
            Task("A", "P1", optimistic_minutes=60, pessimistic_minutes=180, most_likely_minutes=90)
        )
        self.assertEqual(sampler.mode, 90.0)
        for distribution in ("triangular", "pert"):
            samples = sampler.sample(rng, 2000, distribution)
            self.assertTrue(np.all(samples >= 60))
            self.assertTrue(np.all(samples <= 180))


class TestForecastSimulator(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryStore().add_project("P1", start_at=START)
        self.clock = FixedClock(START + 5 * MINUTE_MS)

    def add_chain(self, *tasks):
        self.store.add_tasks(tasks)
        for pred, succ in zip(tasks, tasks[1:]):
            self.store.add_dependency(Dependency(pred.id, succ.id))

    def test_invalid_count_is_rejected_before_any_work(self):
        simulator = ForecastSimulator(self.store, clock=self.clock)
        # The project does not exist, so any work would fail differently
        for bad in (99, 10001, True, 1000.0):
            with self.assertRaises(InvalidSimulationCountError) as ctx:
                simulator.forecast("missing", simulations=bad)
            self.assertEqual(ctx.exception.code, "INVALID_SIMULATION_COUNT")
            self.assertEqual(ctx.exception.status, 400)

    def test_percentiles_are_ordered(self):
        self.add_chain(
            Task("A", "P1", optimistic_minutes=60, pessimistic_minutes=180, position=1),
            Task("B", "P1", optimistic_minutes=30, pessimistic_minutes=90, position=2),
            Task("C", "P1", optimistic_minutes=90, pessimistic_minutes=270, position=3),
        )
        simulator = ForecastSimulator(self.store, clock=self.clock, seed=3)

        result = simulator.forecast("P1", simulations=1000)

        self.assertLessEqual(result.percentiles[50], result.percentiles[80])
        self.assertLessEqual(result.percentiles[80], result.percentiles[95])
        self.assertGreaterEqual(result.percentile_durations[50], 180)
        self.assertLessEqual(result.percentile_durations[95], 540)
        self.assertEqual(result.generated_at, self.clock.now_ms())
        self.assertEqual(result.start_at, START)

        histogram = result.to_dict()["histogram"]
        self.assertEqual(len(histogram), 10)
        self.assertEqual(sum(bucket["count"] for bucket in histogram), 1000)

    def test_zero_variance_matches_deterministic_schedule(self):
        self.add_chain(
            Task("A", "P1", optimistic_minutes=60, pessimistic_minutes=60, position=1),
            Task("B", "P1", effort_minutes=30, position=2),
            Task("C", "P1", optimistic_minutes=90, pessimistic_minutes=90, position=3),
        )
        simulator = ForecastSimulator(self.store, clock=self.clock, block_size=64)

        result = simulator.forecast("P1", simulations=300, percentiles=(50, 80, 95))

        expected = START + 180 * MINUTE_MS
        self.assertEqual(result.deterministic_duration_minutes, 180.0)
        self.assertEqual(result.deterministic_finish_at, expected)
        for p in (50, 80, 95):
            self.assertEqual(result.percentiles[p], expected)

        durations = simulator.run_trials(
            simulator.analyzer.load_graph("P1"), 300
        )
        self.assertEqual(len(durations), 300)
        self.assertTrue(np.all(durations == 180.0))

    def test_explicit_start(self):
        self.add_chain(Task("A", "P1", effort_minutes=120))
        simulator = ForecastSimulator(self.store, clock=self.clock)
        start = datetime(2025, 6, 2, 9, 0)

        result = simulator.forecast("P1", simulations=100, start_at=start)

        self.assertEqual(result.percentiles[50], to_epoch_ms(start) + 120 * MINUTE_MS)

    def test_clock_is_used_without_project_start(self):
        self.store.add_project("P2")
        self.store.add_task(Task("A", "P2", effort_minutes=10))
        simulator = ForecastSimulator(self.store, clock=self.clock)

        result = simulator.forecast("P2", simulations=100)

        self.assertEqual(result.start_at, self.clock.now_ms())

    def test_negative_sample_fails_whole_forecast(self):
        self.add_chain(
            Task("A", "P1", optimistic_minutes=60, pessimistic_minutes=120, position=1),
            Task("B", "P1", optimistic_minutes=-30, pessimistic_minutes=-10, position=2),
        )
        simulator = ForecastSimulator(self.store, clock=self.clock, seed=1)

        with self.assertRaises(SimulationFailedError) as ctx:
            simulator.forecast("P1", simulations=500)
        self.assertEqual(ctx.exception.code, "SIMULATION_FAILED")
        self.assertEqual(ctx.exception.details["taskId"], "B")

    def test_negative_fixed_duration_fails(self):
        self.add_chain(Task("A", "P1", effort_minutes=-5))
        simulator = ForecastSimulator(self.store, clock=self.clock)

        with self.assertRaises(SimulationFailedError):
            simulator.forecast("P1", simulations=100)

    def test_seed_is_reproducible(self):
        self.add_chain(
            Task("A", "P1", optimistic_minutes=60, pessimistic_minutes=180, position=1),
            Task("B", "P1", optimistic_minutes=30, pessimistic_minutes=90, position=2),
        )

        first = ForecastSimulator(self.store, clock=self.clock, seed=11, max_workers=4)
        second = ForecastSimulator(self.store, clock=self.clock, seed=11, max_workers=1)

        self.assertEqual(
            first.forecast("P1", simulations=2000).to_dict(),
            second.forecast("P1", simulations=2000).to_dict(),
        )

    def test_pert_distribution(self):
        self.add_chain(
            Task("A", "P1", optimistic_minutes=60, pessimistic_minutes=180, position=1),
            Task("B", "P1", optimistic_minutes=30, pessimistic_minutes=90, position=2),
        )
        simulator = ForecastSimulator(
            self.store, clock=self.clock, distribution="pert", seed=5
        )

        result = simulator.forecast("P1", simulations=1000).to_dict()

        self.assertEqual(sorted(result["percentiles"]), ["p50", "p80", "p95"])
        self.assertGreaterEqual(result["percentileDurations"]["p50"], 90)
        self.assertLessEqual(result["percentileDurations"]["p95"], 270)

    def test_unknown_distribution(self):
        with self.assertRaises(ValueError):
            ForecastSimulator(self.store, distribution="uniform")

    def test_cycle_fails_forecast(self):
        self.add_chain(
            Task("A", "P1", effort_minutes=10, position=1),
            Task("B", "P1", effort_minutes=10, position=2),
        )
        self.store.add_dependency(Dependency("B", "A"))
        simulator = ForecastSimulator(self.store, clock=self.clock)

        with self.assertRaises(CycleDetectedError):
            simulator.forecast("P1", simulations=100)


if __name__ == "__main__":
    unittest.main()

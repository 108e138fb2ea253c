import threading
import unittest

from ccpm_engine.domain.buffer import Buffer, BufferStatus
from ccpm_engine.domain.dependency import Dependency
from ccpm_engine.domain.task import StageCategory, Task
from ccpm_engine.errors import (
    BufferArchivedError,
    BufferNotFoundError,
    InvalidConsumptionError,
)
from ccpm_engine.services.buffer_generator import BufferGenerator
from ccpm_engine.services.buffer_tracker import (
    BufferTracker,
    BufferZone,
    chain_complete_percent,
    classify_zone,
)
from ccpm_engine.store import InMemoryStore
from ccpm_engine.utils.clock import FixedClock


class TestClassifyZone(unittest.TestCase):
    def test_boundaries(self):
        self.assertEqual(classify_zone(0.5, 0.5), BufferZone.GREEN)
        self.assertEqual(classify_zone(0.75, 0.5), BufferZone.YELLOW)
        self.assertEqual(classify_zone(0.8, 0.5), BufferZone.RED)
        self.assertEqual(classify_zone(0.0, 0.0), BufferZone.GREEN)
        self.assertEqual(classify_zone(0.5, 0.0), BufferZone.YELLOW)
        self.assertEqual(classify_zone(0.51, 0.0), BufferZone.RED)

    def test_overrun_is_red(self):
        self.assertEqual(classify_zone(1.3, 0.9), BufferZone.RED)
        self.assertEqual(classify_zone(float("inf"), 0.2), BufferZone.RED)

    def test_complete_chain(self):
        self.assertEqual(classify_zone(1.0, 1.0), BufferZone.GREEN)
        self.assertEqual(classify_zone(1.01, 1.0), BufferZone.RED)

    def test_custom_yellow_band(self):
        self.assertEqual(classify_zone(0.6, 0.5, yellow_band_fraction=0.1), BufferZone.RED)

    def test_invalid_completion(self):
        with self.assertRaises(ValueError):
            classify_zone(0.5, 1.5)

    def test_chain_complete_percent(self):
        tasks = {
            "A": Task("A", "P1", stage_category="COMPLETED"),
            "B": Task("B", "P1"),
            "C": Task("C", "P1", stage_category="COMPLETED"),
        }
        self.assertAlmostEqual(chain_complete_percent(["A", "B", "C", "gone"], tasks), 0.5)
        self.assertEqual(chain_complete_percent([], tasks), 0.0)


class TestBufferTracker(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryStore().add_project("P1")
        self.store.add_tasks(
            [
                Task("A", "P1", optimistic_minutes=60, pessimistic_minutes=180, position=1),
                Task("B", "P1", optimistic_minutes=30, pessimistic_minutes=90, position=2),
                Task("F", "P1", optimistic_minutes=10, pessimistic_minutes=50, position=3),
            ]
        )
        self.store.add_dependencies([Dependency("A", "B"), Dependency("F", "B")])
        self.clock = FixedClock(1_000)
        self.buffers = BufferGenerator(self.store, clock=self.clock).regenerate("P1")
        self.project_buffer, self.feeding_buffer = self.buffers
        self.tracker = BufferTracker(self.store, clock=self.clock)

    def test_monotonic_update(self):
        self.clock.advance(500)
        buffer = self.tracker.update(self.project_buffer.id, 10)
        self.assertEqual(buffer.consumed_minutes, 10.0)
        self.assertEqual(buffer.updated_at, 1_500)

        buffer = self.tracker.record_consumption(self.project_buffer.id, 5.5)
        self.assertEqual(buffer.consumed_minutes, 15.5)

        with self.assertRaises(InvalidConsumptionError) as ctx:
            self.tracker.update(self.project_buffer.id, -1)
        self.assertEqual(ctx.exception.status, 400)
        self.assertEqual(self.store.get_buffer(self.project_buffer.id).consumed_minutes, 15.5)

    def test_non_finite_consumption_is_rejected(self):
        self.tracker.update(self.project_buffer.id, 40)

        for bad in (float("nan"), float("inf"), float("-inf")):
            with self.assertRaises(InvalidConsumptionError):
                self.tracker.update(self.project_buffer.id, bad)
            with self.assertRaises(InvalidConsumptionError):
                self.tracker.update_buffer(self.project_buffer.id, consumed_minutes=bad)
            with self.assertRaises(InvalidConsumptionError):
                self.tracker.reset_consumption(self.project_buffer.id, bad)
        self.assertEqual(self.store.get_buffer(self.project_buffer.id).consumed_minutes, 40.0)

        buffer = self.tracker.update(self.project_buffer.id, 10)
        self.assertEqual(buffer.consumed_minutes, 50.0)
        status = self.tracker.buffer_status(self.project_buffer.id, completion=0.0)
        self.assertAlmostEqual(
            status["consumedPercent"], 50.0 / self.project_buffer.planned_minutes
        )

    def test_overrun_is_recorded(self):
        planned = self.project_buffer.planned_minutes
        self.tracker.update(self.project_buffer.id, planned * 2)

        status = self.tracker.buffer_status(self.project_buffer.id)

        self.assertAlmostEqual(status["consumedPercent"], 2.0)
        self.assertEqual(status["zone"], "RED")

    def test_reset_is_the_only_way_down(self):
        self.tracker.update(self.project_buffer.id, 40)
        buffer = self.tracker.reset_consumption(self.project_buffer.id, 15)
        self.assertEqual(buffer.consumed_minutes, 15.0)

        with self.assertRaises(InvalidConsumptionError):
            self.tracker.update_buffer(self.project_buffer.id, consumed_minutes=5)
        buffer = self.tracker.update_buffer(self.project_buffer.id, consumed_minutes=20)
        self.assertEqual(buffer.consumed_minutes, 20.0)

    def test_archived_buffers_are_immutable(self):
        BufferGenerator(self.store, clock=self.clock).regenerate("P1")

        with self.assertRaises(BufferArchivedError) as ctx:
            self.tracker.update(self.project_buffer.id, 5)
        self.assertEqual(ctx.exception.status, 409)
        with self.assertRaises(BufferArchivedError):
            self.tracker.reset_consumption(self.project_buffer.id)
        with self.assertRaises(BufferArchivedError):
            self.tracker.update_buffer(self.project_buffer.id, name="Renamed")

    def test_unknown_buffer(self):
        with self.assertRaises(BufferNotFoundError) as ctx:
            self.tracker.update("missing", 1)
        self.assertEqual(ctx.exception.code, "BUFFER_NOT_FOUND")

    def test_project_buffer_status(self):
        self.store.set_task_stage("P1", "A", StageCategory.COMPLETED)
        self.tracker.update(self.project_buffer.id, self.project_buffer.planned_minutes * 0.4)

        status = self.tracker.project_buffer_status("P1")

        project = status["projectBuffer"]
        self.assertEqual(project["bufferId"], self.project_buffer.id)
        self.assertAlmostEqual(project["chainCompletePercent"], 0.5)
        self.assertAlmostEqual(project["consumedPercent"], 0.4)
        self.assertEqual(project["zone"], "GREEN")

        self.assertEqual(len(status["feedingBuffers"]), 1)
        feeding = status["feedingBuffers"][0]
        self.assertEqual(feeding["feedingPathTaskId"], "B")
        self.assertEqual(feeding["chainCompletePercent"], 0.0)
        self.assertEqual(feeding["zone"], "GREEN")

    def test_supplied_completion(self):
        self.tracker.update(self.project_buffer.id, self.project_buffer.planned_minutes * 0.8)
        status = self.tracker.buffer_status(self.project_buffer.id, completion=0.5)
        self.assertEqual(status["zone"], "RED")

    def test_list_get_update_delete(self):
        BufferGenerator(self.store, clock=self.clock).regenerate("P1")

        page = self.tracker.list_buffers("P1")
        self.assertEqual(page["total"], 4)
        self.assertEqual(len(page["items"]), 4)

        active = self.tracker.list_buffers("P1", status="ACTIVE")
        self.assertEqual(active["total"], 2)
        feeding = self.tracker.list_buffers("P1", buffer_type="FEEDING", status="ARCHIVED")
        self.assertEqual([b.id for b in feeding["items"]], [self.feeding_buffer.id])

        paged = self.tracker.list_buffers("P1", limit=1, offset=3)
        self.assertEqual(len(paged["items"]), 1)
        self.assertEqual(paged["total"], 4)
        with self.assertRaises(ValueError):
            self.tracker.list_buffers("P1", limit=-1)

        new_id = active["items"][0].id
        updated = self.tracker.update_buffer(new_id, name="Release buffer")
        self.assertEqual(self.tracker.get_buffer(new_id).name, "Release buffer")
        self.assertEqual(updated.status, BufferStatus.ACTIVE)

        self.tracker.delete_buffer(new_id)
        with self.assertRaises(BufferNotFoundError):
            self.tracker.get_buffer(new_id)

    def test_concurrent_increments(self):
        buffer = Buffer("shared", "P1", "PROJECT", 1000)
        self.store.save_buffers("P1", [buffer])

        def log_time():
            for _ in range(200):
                self.tracker.update("shared", 0.5)

        threads = [threading.Thread(target=log_time) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(self.store.get_buffer("shared").consumed_minutes, 800.0)


if __name__ == "__main__":
    unittest.main()

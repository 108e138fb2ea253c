import unittest

from ccpm_engine.domain.buffer import Buffer, BufferError, BufferStatus, BufferType
from ccpm_engine.domain.chain import Chain, ChainError
from ccpm_engine.domain.dependency import Dependency, DependencyError, DependencyType
from ccpm_engine.domain.task import StageCategory, Task, TaskError
from ccpm_engine.errors import BufferArchivedError, InvalidConsumptionError


class TestTask(unittest.TestCase):
    def test_task_creation(self):
        task = Task("T1", "P1", optimistic_minutes=60, pessimistic_minutes=180)
        self.assertEqual(task.id, "T1")
        self.assertEqual(task.project_id, "P1")
        self.assertEqual(task.title, "T1")
        self.assertEqual(task.stage_category, StageCategory.ACTIVE)
        self.assertTrue(task.has_range_estimate())

    def test_validation(self):
        with self.assertRaises(TaskError):
            Task(None, "P1")
        with self.assertRaises(TaskError):
            Task("T1", "")
        with self.assertRaises(TaskError):
            Task("T1", "P1", optimistic_minutes=100, pessimistic_minutes=50)
        with self.assertRaises(TaskError):
            Task("T1", "P1", optimistic_minutes="10")
        with self.assertRaises(TaskError):
            Task("T1", "P1", stage_category="DONE")
        with self.assertRaises(TaskError):
            Task(
                "T1",
                "P1",
                optimistic_minutes=10,
                pessimistic_minutes=20,
                most_likely_minutes=30,
            )

    def test_non_finite_estimates(self):
        with self.assertRaises(TaskError):
            Task("T1", "P1", optimistic_minutes=float("nan"))
        with self.assertRaises(TaskError):
            Task("T1", "P1", optimistic_minutes=10, pessimistic_minutes=float("inf"))
        with self.assertRaises(TaskError):
            Task("T1", "P1", effort_minutes=float("-inf"))

    def test_negative_estimates_are_accepted(self):
        # Rejected later, when a forecast samples them
        task = Task("T1", "P1", optimistic_minutes=-10, pessimistic_minutes=-5)
        self.assertEqual(task.effective_duration, -5.0)

    def test_effective_duration_fallbacks(self):
        self.assertEqual(
            Task("T", "P", optimistic_minutes=10, pessimistic_minutes=30).effective_duration,
            30.0,
        )
        self.assertEqual(
            Task("T", "P", optimistic_minutes=10, effort_minutes=20).effective_duration,
            20.0,
        )
        self.assertEqual(Task("T", "P", optimistic_minutes=10).effective_duration, 10.0)
        self.assertEqual(Task("T", "P").effective_duration, 0.0)

    def test_most_likely(self):
        task = Task("T", "P", optimistic_minutes=10, pessimistic_minutes=30)
        self.assertEqual(task.most_likely, 20.0)
        task = Task(
            "T", "P", optimistic_minutes=10, pessimistic_minutes=30, most_likely_minutes=12
        )
        self.assertEqual(task.most_likely, 12.0)
        self.assertIsNone(Task("T", "P", effort_minutes=5).most_likely)

    def test_stage_and_copy(self):
        task = Task("T", "P", stage_category="COMPLETED")
        self.assertTrue(task.is_completed())

        clone = task.copy()
        clone.set_stage(StageCategory.ACTIVE)
        self.assertTrue(task.is_completed())
        self.assertFalse(clone.is_completed())

    def test_from_dict(self):
        task = Task.from_dict(
            {
                "id": "T1",
                "projectId": "P1",
                "optimisticMinutes": 30,
                "pessimisticMinutes": 60,
                "stageCategory": "DEFERRED",
                "position": 3,
                "assigneeIds": ["u1"],
            }
        )
        self.assertEqual(task.stage_category, StageCategory.DEFERRED)
        self.assertEqual(task.sort_key(), (3, "T1"))
        self.assertEqual(task.to_dict()["assigneeIds"], ["u1"])


class TestDependency(unittest.TestCase):
    def test_defaults(self):
        dep = Dependency("A", "B")
        self.assertEqual(dep.type, DependencyType.FS)
        self.assertEqual(dep.lag_minutes, 0)
        self.assertEqual(dep.key, ("A", "B"))

    def test_validation(self):
        with self.assertRaises(DependencyError):
            Dependency("A", "A")
        with self.assertRaises(DependencyError):
            Dependency("A", "B", type="XX")
        with self.assertRaises(DependencyError):
            Dependency("A", "B", lag_minutes="5")

    def test_from_dict(self):
        dep = Dependency.from_dict(
            {"predecessorTaskId": "A", "successorTaskId": "B", "type": "SS", "lagMinutes": 15}
        )
        self.assertEqual(dep.type, DependencyType.SS)
        self.assertEqual(dep.lag_minutes, 15)
        self.assertEqual(dep.to_dict()["type"], "SS")


class TestChain(unittest.TestCase):
    def test_chain_creation(self):
        chain = Chain("feeding_1", tasks=["A", "B", "A"], merge_task_id="C")
        self.assertEqual(chain.get_tasks(), ["A", "B"])
        self.assertTrue(chain.is_feeding())
        self.assertIn("A", chain)
        self.assertEqual(len(chain), 2)

    def test_validation(self):
        with self.assertRaises(ChainError):
            Chain("")
        with self.assertRaises(ChainError):
            Chain("c", type="other")
        with self.assertRaises(ChainError):
            Chain("critical", type="critical", merge_task_id="X")
        with self.assertRaises(ChainError):
            Chain("critical", type="critical").set_merge_point("X")

    def test_to_dict(self):
        critical = Chain("critical", type="critical", tasks=["A"], duration_minutes=60)
        self.assertNotIn("mergeTaskId", critical.to_dict())
        feeding = Chain("feeding_1", tasks=["B"]).set_merge_point("A")
        self.assertEqual(feeding.to_dict()["mergeTaskId"], "A")


class TestBuffer(unittest.TestCase):
    def setUp(self):
        self.project_buffer = Buffer("PB", "P1", "PROJECT", 100)
        self.feeding_buffer = Buffer(
            "FB", "P1", BufferType.FEEDING, 50, feeding_path_task_id="C"
        )

    def test_initialization_validation(self):
        with self.assertRaises(BufferError):
            Buffer(None, "P1", "PROJECT", 10)
        with self.assertRaises(BufferError):
            Buffer("b", "P1", "PROJECT", -1)
        with self.assertRaises(BufferError):
            Buffer("b", "P1", "PROJECT", "10")
        with self.assertRaises(BufferError):
            Buffer("b", "P1", "PROJECT", float("inf"))
        with self.assertRaises(BufferError):
            Buffer("b", "P1", "PROJECT", 10, consumed_minutes=float("nan"))
        with self.assertRaises(BufferError):
            Buffer("b", "P1", "OTHER", 10)
        with self.assertRaises(BufferError):
            Buffer("b", "P1", "FEEDING", 10)
        with self.assertRaises(BufferError):
            Buffer("b", "P1", "PROJECT", 10, feeding_path_task_id="C")

        self.assertEqual(self.project_buffer.name, "Project Buffer")
        self.assertEqual(self.feeding_buffer.name, "Feeding Buffer -> C")
        self.assertEqual(self.project_buffer.status, BufferStatus.ACTIVE)

    def test_consumption(self):
        self.assertEqual(self.project_buffer.consume(30, 1000), 30.0)
        self.assertEqual(self.project_buffer.consume(90, 2000), 120.0)
        self.assertEqual(self.project_buffer.updated_at, 2000)
        # Overrun is reported, not rejected
        self.assertAlmostEqual(self.project_buffer.get_consumption_ratio(), 1.2)

        with self.assertRaises(InvalidConsumptionError):
            self.project_buffer.consume(-1)
        with self.assertRaises(InvalidConsumptionError):
            self.project_buffer.consume(float("nan"))
        self.assertEqual(self.project_buffer.consumed_minutes, 120.0)

    def test_reset(self):
        self.project_buffer.consume(80)
        discarded = self.project_buffer.reset(20)
        self.assertEqual(discarded, 60.0)
        self.assertEqual(self.project_buffer.consumed_minutes, 20.0)
        with self.assertRaises(InvalidConsumptionError):
            self.project_buffer.reset(-5)

    def test_zero_size_ratio(self):
        empty = Buffer("Z", "P1", "PROJECT", 0)
        self.assertEqual(empty.get_consumption_ratio(), 0.0)
        empty.consume(1)
        self.assertEqual(empty.get_consumption_ratio(), float("inf"))

    def test_archived_buffer_is_frozen(self):
        self.project_buffer.consume(10)
        self.project_buffer.archive(5000)
        self.assertEqual(self.project_buffer.status, BufferStatus.ARCHIVED)

        with self.assertRaises(BufferArchivedError):
            self.project_buffer.consume(5)
        with self.assertRaises(BufferArchivedError):
            self.project_buffer.reset()
        with self.assertRaises(BufferArchivedError):
            self.project_buffer.apply_update(name="renamed")
        self.assertEqual(self.project_buffer.consumed_minutes, 10.0)

    def test_apply_update(self):
        self.feeding_buffer.consume(10)
        self.feeding_buffer.apply_update(name="Design feed", consumed_minutes=25)
        self.assertEqual(self.feeding_buffer.name, "Design feed")
        self.assertEqual(self.feeding_buffer.consumed_minutes, 25.0)

        with self.assertRaises(InvalidConsumptionError):
            self.feeding_buffer.apply_update(name="Other", consumed_minutes=5)
        # Nothing applied from the rejected update
        self.assertEqual(self.feeding_buffer.name, "Design feed")

        with self.assertRaises(BufferError):
            self.feeding_buffer.apply_update(status="PAUSED")

        self.feeding_buffer.apply_update(status="ARCHIVED")
        self.assertFalse(self.feeding_buffer.is_active())

    def test_dict_round_trip(self):
        self.feeding_buffer.consume(12)
        restored = Buffer.from_dict(self.feeding_buffer.to_dict())
        self.assertEqual(restored.to_dict(), self.feeding_buffer.to_dict())


if __name__ == "__main__":
    unittest.main()

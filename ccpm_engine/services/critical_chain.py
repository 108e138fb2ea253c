import logging
from math import isclose

from ..config import RESOURCE_LEVELING_DEFAULT
from ..domain.chain import Chain
from ..errors import InsufficientDataError
from ..utils.graph import (
    backward_pass,
    constraint_start,
    forward_pass,
    load_task_graph,
)
from .feeding_chain import identify_feeding_chains
from .resource_leveling import level_resources

logger = logging.getLogger(__name__)

TOLERANCE = 1e-9


def _same_time(a, b):
    return isclose(float(a), float(b), rel_tol=0.0, abs_tol=TOLERANCE)


def identify_critical_chain(task_graph, durations, early_start, early_finish):
    """
    Identify the critical chain: the longest path to the project finish.

    The chain ends at the task with the latest early finish (ties: sinks
    first, then lower position, then smaller ID). It is traced backwards
    through each task's driving predecessor, the one whose constraint sets
    the task's early start, preferring lower position, then smaller ID.

    Args:
        task_graph: TaskGraph of the project
        durations: Duration per task used for the forward pass
        early_start: Early start per task
        early_finish: Early finish per task

    Returns:
        Chain: The critical chain object
    """
    if not len(task_graph):
        return Chain("critical", type="critical")

    project_finish = max(float(early_finish[t]) for t in task_graph.tasks)
    sinks = set(task_graph.sinks())
    end_candidates = [
        t for t in task_graph.tasks if _same_time(early_finish[t], project_finish)
    ]
    end_task_id = min(
        end_candidates, key=lambda t: (t not in sinks,) + task_graph.sort_key(t)
    )

    path = [end_task_id]
    current = end_task_id
    while True:
        driver = None
        # predecessors() is already in (position, id) order
        for pred_id, dep_type, lag in task_graph.predecessors(current):
            bound = constraint_start(
                dep_type,
                lag,
                early_start[pred_id],
                early_finish[pred_id],
                durations[current],
            )
            if _same_time(bound, early_start[current]):
                driver = pred_id
                break
        if driver is None:
            break
        path.append(driver)
        current = driver

    path.reverse()
    return Chain(
        "critical",
        type="critical",
        tasks=path,
        duration_minutes=float(early_finish[end_task_id]) - float(early_start[path[0]]),
    )


class CriticalChainAnalysis:
    """Result of a critical chain analysis over one project snapshot."""

    def __init__(
        self,
        task_graph,
        critical_chain,
        feeding_chains,
        schedule,
        project_finish,
        resource_edges=None,
    ):
        self.task_graph = task_graph
        self.critical_chain = critical_chain
        self.feeding_chains = feeding_chains
        self.schedule = schedule
        self.project_finish = project_finish
        self.resource_edges = list(resource_edges or [])

    @property
    def project_id(self):
        return self.task_graph.project_id

    def chain_tasks(self, chain):
        return [self.task_graph.tasks[task_id] for task_id in chain.tasks]

    def to_dict(self):
        return {
            "projectId": self.project_id,
            "criticalChain": self.critical_chain.get_tasks(),
            "feedingChains": [
                {
                    "chainTaskIds": chain.get_tasks(),
                    "mergeTaskId": chain.merge_task_id,
                }
                for chain in self.feeding_chains
            ],
            "durationMinutes": self.critical_chain.duration_minutes,
            "projectFinishMinutes": self.project_finish,
            "schedule": {
                task_id: dict(entry) for task_id, entry in self.schedule.items()
            },
            "resourceEdges": [
                {"predecessorTaskId": pred, "successorTaskId": succ}
                for pred, succ, _, _ in self.resource_edges
            ],
        }

    def __repr__(self):
        return (
            f"CriticalChainAnalysis(project={self.project_id}, "
            f"critical={self.critical_chain.tasks}, "
            f"feeding={len(self.feeding_chains)}, finish={self.project_finish})"
        )


class CriticalChainAnalyzer:
    """
    Computes the critical chain and feeding chains of a project.

    Resource leveling is an explicit option: when enabled, tasks sharing an
    assignee that overlap in the first schedule are serialized with injected
    FS edges before the chains are identified.
    """

    def __init__(self, store=None, resource_leveling=RESOURCE_LEVELING_DEFAULT):
        self.store = store
        self.resource_leveling = resource_leveling

    def load_graph(self, project_id):
        """
        Snapshot the project from the store and build its graph.

        Raises:
            ProjectNotFoundError: If the project does not exist
            InsufficientDataError: If the project has no tasks
            CycleDetectedError: If the dependencies contain a cycle
        """
        if self.store is None:
            raise ValueError("CriticalChainAnalyzer needs a store to load projects")
        task_graph = load_task_graph(self.store, project_id)
        if not len(task_graph):
            raise InsufficientDataError(
                f"No tasks found in project '{project_id}'", {"projectId": project_id}
            )
        return task_graph

    def prepare_graph(self, task_graph):
        """
        Apply the configured pre-processing (resource leveling) to a graph.

        Returns:
            tuple: (graph to analyse, injected resource edges)
        """
        if not self.resource_leveling:
            return task_graph, []
        durations = task_graph.durations()
        early_start, early_finish = forward_pass(task_graph, durations)
        return level_resources(task_graph, early_start, early_finish)

    def analyze_project(self, project_id):
        return self.analyze(self.load_graph(project_id))

    def analyze(self, task_graph):
        """
        Run the full analysis on a graph.

        Args:
            task_graph: TaskGraph built by the graph builder

        Returns:
            CriticalChainAnalysis: chains, per-task schedule and project finish
        """
        task_graph, resource_edges = self.prepare_graph(task_graph)
        durations = task_graph.durations()

        early_start, early_finish = forward_pass(task_graph, durations)
        project_finish = max(
            (float(value) for value in early_finish.values()), default=0.0
        )
        late_start, late_finish, total_float = backward_pass(
            task_graph, durations, early_start, project_finish
        )

        critical_chain = identify_critical_chain(
            task_graph, durations, early_start, early_finish
        )
        feeding_chains = identify_feeding_chains(
            task_graph, critical_chain, early_start, early_finish
        )

        schedule = {
            task_id: {
                "durationMinutes": float(durations[task_id]),
                "earlyStart": float(early_start[task_id]),
                "earlyFinish": float(early_finish[task_id]),
                "lateStart": float(late_start[task_id]),
                "lateFinish": float(late_finish[task_id]),
                "totalFloat": float(total_float[task_id]),
            }
            for task_id in task_graph.topological_order()
        }

        logger.debug(
            "Project %s: critical chain %s (%.1f min), %d feeding chains",
            task_graph.project_id,
            critical_chain.tasks,
            critical_chain.duration_minutes,
            len(feeding_chains),
        )

        return CriticalChainAnalysis(
            task_graph,
            critical_chain,
            feeding_chains,
            schedule,
            project_finish,
            resource_edges,
        )

import logging

import networkx as nx
import numpy as np

from ccpm_engine.domain.dependency import DependencyError, DependencyType
from ccpm_engine.errors import CycleDetectedError

logger = logging.getLogger(__name__)

WHITE, GREY, BLACK = 0, 1, 2


class TaskGraph:
    """
    Immutable dependency graph of one project's tasks.

    Nodes are task IDs; the Task records live in ``tasks`` and each edge
    carries its dependency ``type`` and ``lag``. Built once from a snapshot and
    only read afterwards, so one instance can be shared by concurrent readers.
    """

    def __init__(self, project_id, tasks, graph):
        self.project_id = project_id
        self.tasks = tasks
        self.graph = graph
        self._order = list(
            nx.lexicographical_topological_sort(graph, key=self.sort_key)
        )

    def sort_key(self, task_id):
        return self.tasks[task_id].sort_key()

    def __len__(self):
        return len(self.tasks)

    def __contains__(self, task_id):
        return task_id in self.tasks

    def topological_order(self):
        return list(self._order)

    def predecessors(self, task_id):
        """Incoming edges as (predecessor_id, DependencyType, lag) tuples"""
        return [
            (pred_id, data["type"], data["lag"])
            for pred_id, _, data in sorted(
                self.graph.in_edges(task_id, data=True),
                key=lambda edge: self.sort_key(edge[0]),
            )
        ]

    def successors(self, task_id):
        """Outgoing edges as (successor_id, DependencyType, lag) tuples"""
        return [
            (succ_id, data["type"], data["lag"])
            for _, succ_id, data in sorted(
                self.graph.out_edges(task_id, data=True),
                key=lambda edge: self.sort_key(edge[1]),
            )
        ]

    def sinks(self):
        return [task_id for task_id in self._order if self.graph.out_degree(task_id) == 0]

    def sources(self):
        return [task_id for task_id in self._order if self.graph.in_degree(task_id) == 0]

    def durations(self):
        """Effective planning duration per task"""
        return {task_id: task.effective_duration for task_id, task in self.tasks.items()}

    def with_edges(self, extra_edges):
        """
        Return a new graph with extra (pred, succ, type, lag) edges added.

        Raises:
            CycleDetectedError: If the extra edges close a cycle
        """
        graph = self.graph.copy()
        for pred_id, succ_id, dep_type, lag in extra_edges:
            graph.add_edge(pred_id, succ_id, type=DependencyType(dep_type), lag=lag)
        cycle = find_cycle(graph, self.sort_key)
        if cycle:
            raise CycleDetectedError(cycle)
        return TaskGraph(self.project_id, self.tasks, graph)


def find_cycle(graph, sort_key=None):
    """
    Find a cycle with an iterative three-colour depth-first search.

    White nodes are unvisited, grey nodes are on the current DFS path and
    black nodes are finished. Reaching a grey node closes a cycle.

    Args:
        graph: networkx DiGraph
        sort_key: Optional key to visit nodes in a deterministic order

    Returns:
        list: Node IDs of the cycle with the first node repeated at the end,
              or an empty list when the graph is acyclic
    """
    order = sorted(graph.nodes, key=sort_key) if sort_key else list(graph.nodes)
    colour = {node: WHITE for node in order}

    def children(node):
        succs = list(graph.successors(node))
        return iter(sorted(succs, key=sort_key) if sort_key else succs)

    for root in order:
        if colour[root] != WHITE:
            continue
        colour[root] = GREY
        path = [root]
        stack = [children(root)]
        while stack:
            advanced = False
            for child in stack[-1]:
                if colour[child] == GREY:
                    return path[path.index(child):] + [child]
                if colour[child] == WHITE:
                    colour[child] = GREY
                    path.append(child)
                    stack.append(children(child))
                    advanced = True
                    break
            if not advanced:
                colour[path.pop()] = BLACK
                stack.pop()
    return []


def build_task_graph(project_id, tasks, dependencies):
    """
    Build the dependency DAG for one project.

    Deleted tasks and tasks of other projects are dropped, as are edges with
    an endpoint outside the remaining set.

    Args:
        project_id: Project to build the graph for
        tasks: Iterable of Task records
        dependencies: Iterable of Dependency records

    Returns:
        TaskGraph: The project's graph

    Raises:
        CycleDetectedError: If the dependencies are not acyclic
        DependencyError: If a (predecessor, successor) pair appears twice
    """
    project_tasks = {
        task.id: task
        for task in tasks
        if task.project_id == project_id and not task.deleted
    }

    G = nx.DiGraph()

    # Add task nodes
    for task_id in project_tasks:
        G.add_node(task_id)

    # Add dependency edges with both endpoints in the project
    skipped = 0
    for dep in dependencies:
        if (
            dep.predecessor_task_id not in project_tasks
            or dep.successor_task_id not in project_tasks
        ):
            skipped += 1
            continue
        if G.has_edge(dep.predecessor_task_id, dep.successor_task_id):
            raise DependencyError(
                f"Duplicate dependency {dep.predecessor_task_id} -> {dep.successor_task_id}"
            )
        G.add_edge(
            dep.predecessor_task_id,
            dep.successor_task_id,
            type=dep.type,
            lag=dep.lag_minutes,
        )

    if skipped:
        logger.debug("Project %s: ignored %d out-of-project edges", project_id, skipped)

    cycle = find_cycle(G, lambda task_id: project_tasks[task_id].sort_key())
    if cycle:
        logger.warning("Project %s: dependency cycle %s", project_id, cycle)
        raise CycleDetectedError(cycle)

    return TaskGraph(project_id, project_tasks, G)


def load_task_graph(store, project_id):
    """Snapshot a project's tasks and edges from the store and build its graph"""
    store.get_project(project_id)
    tasks = store.get_task_graph(project_id)
    dependencies = store.get_dependencies(project_id)
    return build_task_graph(project_id, tasks, dependencies)


def constraint_start(dep_type, lag, pred_start, pred_finish, duration):
    """
    Earliest start a single dependency imposes on its successor.

    Works element-wise when the inputs are numpy arrays of trials.
    """
    if dep_type == DependencyType.FS:
        return pred_finish + lag
    if dep_type == DependencyType.SS:
        return pred_start + lag
    if dep_type == DependencyType.FF:
        return pred_finish + lag - duration
    if dep_type == DependencyType.SF:
        return pred_start + lag - duration
    raise DependencyError(f"Unsupported dependency type: {dep_type}")


def forward_pass(task_graph, durations):
    """
    Calculate early start and early finish times.

    ``durations`` maps task ID to a duration, either a number or a numpy array
    with one entry per simulated trial. No task starts before time zero.

    Returns:
        tuple: (early_start, early_finish) dicts keyed by task ID
    """
    early_start = {}
    early_finish = {}

    for task_id in task_graph.topological_order():
        duration = durations[task_id]
        start = np.zeros_like(duration, dtype=float)
        for pred_id, dep_type, lag in task_graph.predecessors(task_id):
            start = np.maximum(
                start,
                constraint_start(
                    dep_type, lag, early_start[pred_id], early_finish[pred_id], duration
                ),
            )
        early_start[task_id] = start
        early_finish[task_id] = start + duration

    return early_start, early_finish


def backward_pass(task_graph, durations, early_start, project_finish):
    """
    Calculate late start, late finish and total float against project_finish.

    Returns:
        tuple: (late_start, late_finish, total_float) dicts keyed by task ID
    """
    late_start = {}
    late_finish = {}
    total_float = {}

    for task_id in reversed(task_graph.topological_order()):
        duration = durations[task_id]
        finish = project_finish
        for succ_id, dep_type, lag in task_graph.successors(task_id):
            if dep_type == DependencyType.FS:
                finish = min(finish, late_start[succ_id] - lag)
            elif dep_type == DependencyType.SS:
                finish = min(finish, late_start[succ_id] - lag + duration)
            elif dep_type == DependencyType.FF:
                finish = min(finish, late_finish[succ_id] - lag)
            elif dep_type == DependencyType.SF:
                finish = min(finish, late_finish[succ_id] - lag + duration)

        late_finish[task_id] = finish
        late_start[task_id] = finish - duration
        total_float[task_id] = late_start[task_id] - early_start[task_id]

    return late_start, late_finish, total_float

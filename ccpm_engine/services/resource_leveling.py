import logging

import networkx as nx

from ccpm_engine.domain.dependency import DependencyType

logger = logging.getLogger(__name__)


def find_resource_conflicts(task_graph, early_start, early_finish):
    """
    Find tasks that share an assignee and overlap in the unlevelled schedule.

    For each assignee the tasks are ordered by early start (ties by position,
    then ID) and every consecutive overlapping pair yields an FS edge with no
    lag from the earlier task to the later one. Pairs already linked in either
    direction, and edges that would close a cycle, are skipped.

    Args:
        task_graph: TaskGraph of the project
        early_start: Early start per task from the forward pass
        early_finish: Early finish per task from the forward pass

    Returns:
        list: (predecessor_id, successor_id, DependencyType.FS, 0) tuples
    """
    working = task_graph.graph.copy()

    tasks_by_assignee = {}
    for task_id in task_graph.topological_order():
        for assignee_id in task_graph.tasks[task_id].assignee_ids:
            tasks_by_assignee.setdefault(assignee_id, []).append(task_id)

    resource_edges = []
    for assignee_id in sorted(tasks_by_assignee, key=str):
        ordered = sorted(
            tasks_by_assignee[assignee_id],
            key=lambda t: (float(early_start[t]), task_graph.sort_key(t)),
        )
        for first_id, second_id in zip(ordered, ordered[1:]):
            if float(early_finish[first_id]) <= float(early_start[second_id]):
                continue
            if working.has_edge(first_id, second_id) or working.has_edge(
                second_id, first_id
            ):
                continue
            if nx.has_path(working, second_id, first_id):
                logger.debug(
                    "Skipping resource edge %s -> %s for %s: would create a cycle",
                    first_id,
                    second_id,
                    assignee_id,
                )
                continue

            working.add_edge(first_id, second_id, type=DependencyType.FS, lag=0)
            resource_edges.append((first_id, second_id, DependencyType.FS, 0))

    return resource_edges


def level_resources(task_graph, early_start, early_finish):
    """
    Apply resource leveling by injecting contention edges into the graph.

    Returns:
        tuple: (levelled TaskGraph, list of injected edges)
    """
    resource_edges = find_resource_conflicts(task_graph, early_start, early_finish)
    if not resource_edges:
        return task_graph, []

    logger.debug(
        "Project %s: injecting %d resource edges",
        task_graph.project_id,
        len(resource_edges),
    )
    return task_graph.with_edges(resource_edges), resource_edges

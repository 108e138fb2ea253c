from collections import deque

from ..domain.chain import Chain


def identify_feeding_chains(task_graph, critical_chain, early_start, early_finish):
    """
    Identify feeding chains - paths that feed into the critical chain.

    Critical tasks are visited in chain order. Each non-critical direct
    predecessor not yet claimed by another chain seeds a new feeding chain,
    which collects every unclaimed non-critical ancestor of the seed. The
    critical task being visited is the chain's merge point.

    Args:
        task_graph: TaskGraph of the project
        critical_chain: The critical chain object or list of task IDs
        early_start: Early start per task from the forward pass
        early_finish: Early finish per task from the forward pass

    Returns:
        list: Chain objects of type "feeding", each in topological order
    """
    if isinstance(critical_chain, Chain):
        critical_task_ids = critical_chain.tasks
    else:
        critical_task_ids = critical_chain

    critical_set = set(critical_task_ids)
    position = {
        task_id: index for index, task_id in enumerate(task_graph.topological_order())
    }

    claimed = set()
    feeding_chains = []
    chain_number = 1

    for critical_task_id in critical_task_ids:
        for seed_id, _, _ in task_graph.predecessors(critical_task_id):
            if seed_id in critical_set or seed_id in claimed:
                continue

            # Trace back through unclaimed non-critical predecessors
            members = []
            queue = deque([seed_id])
            while queue:
                task_id = queue.popleft()
                if task_id in claimed or task_id in critical_set:
                    continue
                claimed.add(task_id)
                members.append(task_id)
                for pred_id, _, _ in task_graph.predecessors(task_id):
                    if pred_id not in claimed and pred_id not in critical_set:
                        queue.append(pred_id)

            members.sort(key=position.get)
            duration = max(float(early_finish[t]) for t in members) - min(
                float(early_start[t]) for t in members
            )

            feeding_chains.append(
                Chain(
                    f"feeding_{chain_number}",
                    type="feeding",
                    tasks=members,
                    merge_task_id=critical_task_id,
                    duration_minutes=duration,
                )
            )
            chain_number += 1

    return feeding_chains

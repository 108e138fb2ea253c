from datetime import datetime, timezone

from ccpm_engine.api import CCPMService
from ccpm_engine.domain.dependency import Dependency
from ccpm_engine.domain.task import Task
from ccpm_engine.store import InMemoryStore
from ccpm_engine.utils.clock import to_epoch_ms
from ccpm_engine.visualization.fever_chart import create_fever_chart

DAY = 8 * 60  # one working day in minutes


def create_sample_project():
    """Two streams of work merging into a final integration task"""
    store = InMemoryStore()
    store.add_project("demo", start_at=to_epoch_ms(datetime(2025, 4, 1)))

    store.add_tasks(
        [
            Task("T1.1", "demo", 20 * DAY, 30 * DAY, position=1, assignee_ids=["Red"]),
            Task("T1.2", "demo", 15 * DAY, 20 * DAY, position=2, assignee_ids=["Green"]),
            Task("T2.1", "demo", 20 * DAY, 25 * DAY, position=3, assignee_ids=["Blue"]),
            Task("T2.2", "demo", 10 * DAY, 15 * DAY, position=4, assignee_ids=["Green"]),
            Task("T3", "demo", 30 * DAY, 40 * DAY, position=5, assignee_ids=["Magenta"]),
        ]
    )
    store.add_dependencies(
        [
            Dependency("T1.1", "T1.2"),
            Dependency("T2.1", "T2.2"),
            Dependency("T1.2", "T3"),
            Dependency("T2.2", "T3"),
        ]
    )
    return store


def main():
    store = create_sample_project()
    service = CCPMService(store, resource_leveling=True, seed=7)

    analysis = service.critical_chain("demo")
    buffers = service.regenerate_buffers("demo", created_by="example")
    service.record_consumption(buffers[0]["id"], 5 * DAY)
    status = service.buffer_status("demo")
    forecast = service.forecast("demo", simulations=2000)

    print("CCPM Project Analysis Report")
    print("============================")
    print(f"Critical chain: {' -> '.join(analysis['criticalChain'])}")
    print(f"Chain length:   {analysis['durationMinutes'] / DAY:.1f} days")
    for chain in analysis["feedingChains"]:
        print(
            f"Feeding chain:  {' -> '.join(chain['chainTaskIds'])} "
            f"(merges into {chain['mergeTaskId']})"
        )

    print("\nBuffers:")
    for buffer in buffers:
        print(
            f"  {buffer['name']}: {buffer['plannedMinutes'] / DAY:.1f} days "
            f"({buffer['strategyName']})"
        )

    project_buffer = status["projectBuffer"]
    print(
        f"\nProject buffer: {project_buffer['consumedPercent']:.0%} consumed, "
        f"chain {project_buffer['chainCompletePercent']:.0%} complete, "
        f"zone {project_buffer['zone']}"
    )

    print(f"\nForecast ({forecast['simulations']} simulations):")
    for label, epoch_ms in forecast["percentiles"].items():
        finish = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
        print(f"  {label}: {finish:%Y-%m-%d %H:%M}")

    create_fever_chart(status, "ccpm_fever_chart.png", project_name="demo")
    print("\nFever chart saved to ccpm_fever_chart.png")

    return 0

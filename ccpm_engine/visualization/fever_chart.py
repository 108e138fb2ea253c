import matplotlib.pyplot as plt
import numpy as np
from matplotlib.lines import Line2D

from ccpm_engine.config import YELLOW_BAND_FRACTION

ZONE_COLORS = {"GREEN": "green", "YELLOW": "goldenrod", "RED": "red"}


def generate_fever_chart_data(buffer_status):
    """
    Generate data for a fever chart without creating the visualization.
    Useful for custom plotting or data analysis.

    Args:
        buffer_status: Result of BufferTracker.project_buffer_status()

    Returns:
        list: One point per active buffer with chain completion and buffer
              consumption as percentages (0-100, consumption unclamped)
    """
    statuses = []
    if buffer_status.get("projectBuffer"):
        statuses.append(buffer_status["projectBuffer"])
    statuses.extend(buffer_status.get("feedingBuffers", []))

    return [
        {
            "bufferId": status["bufferId"],
            "label": status["name"],
            "bufferType": status["bufferType"],
            "chainCompletion": status["chainCompletePercent"] * 100,
            "bufferConsumption": status["consumedPercent"] * 100,
            "zone": status["zone"],
        }
        for status in statuses
    ]


def zone_boundaries(yellow_band_fraction=YELLOW_BAND_FRACTION, samples=101):
    """
    Zone boundary lines of the fever chart in percent.

    Returns:
        tuple: (x, green/yellow boundary, yellow/red boundary) numpy arrays
    """
    x = np.linspace(0, 100, samples)
    green_yellow = x
    yellow_red = x + yellow_band_fraction * (100 - x)
    return x, green_yellow, yellow_red


def create_fever_chart(
    buffer_status,
    filename=None,
    show=False,
    project_name=None,
    yellow_band_fraction=YELLOW_BAND_FRACTION,
):
    """
    Plot the current status of a project's buffers on a CCPM fever chart.

    Args:
        buffer_status: Result of BufferTracker.project_buffer_status()
        filename: Optional filename to save the chart
        show: Whether to display the chart
        project_name: Optional project name for the chart title
        yellow_band_fraction: Width of the yellow band, as used for the zones

    Returns:
        The matplotlib figure, or None when the project has no active buffers.
        A figure saved to filename without being shown is already closed;
        otherwise the caller closes it.
    """
    points = generate_fever_chart_data(buffer_status)
    if not points:
        return None

    fig, ax = plt.subplots(figsize=(10, 8))

    x, green_yellow, yellow_red = zone_boundaries(yellow_band_fraction)
    max_consumption = max(
        (p["bufferConsumption"] for p in points if np.isfinite(p["bufferConsumption"])),
        default=0,
    )
    y_limit = max(100, max_consumption * 1.1)

    # Fill the zones
    ax.fill_between(x, yellow_red, y_limit, color="red", alpha=0.2)
    ax.fill_between(x, green_yellow, yellow_red, color="yellow", alpha=0.2)
    ax.fill_between(x, 0, green_yellow, color="green", alpha=0.2)
    ax.plot(x, green_yellow, "k--", alpha=0.5)

    markers = {"PROJECT": "o", "FEEDING": "s"}
    for point in points:
        y = min(point["bufferConsumption"], y_limit)
        ax.scatter(
            [point["chainCompletion"]],
            [y],
            s=100,
            color=ZONE_COLORS[point["zone"]],
            edgecolor="black",
            zorder=10,
            marker=markers[point["bufferType"]],
        )
        ax.annotate(
            f"{point['label']}\n{point['chainCompletion']:.0f}%, "
            f"{point['bufferConsumption']:.0f}%",
            (point["chainCompletion"], y),
            xytext=(8, 8),
            textcoords="offset points",
            fontsize=9,
            bbox=dict(boxstyle="round,pad=0.3", fc="white", ec="gray", alpha=0.8),
        )

    legend_elements = [
        Line2D([0], [0], marker="o", color="w", markerfacecolor="gray",
               markeredgecolor="black", markersize=10, label="Project buffer"),
        Line2D([0], [0], marker="s", color="w", markerfacecolor="gray",
               markeredgecolor="black", markersize=10, label="Feeding buffer"),
    ]
    ax.legend(handles=legend_elements, loc="upper left", fontsize=10)

    ax.set_xlabel("Chain Completion (%)", fontsize=12)
    ax.set_ylabel("Buffer Consumption (%)", fontsize=12)
    title = f"Fever Chart for {project_name}" if project_name else "CCPM Fever Chart"
    ax.set_title(title, fontsize=14, weight="bold")
    ax.set_xlim(0, 105)
    ax.set_ylim(0, y_limit)
    ax.grid(True, linestyle="--", alpha=0.7)

    plt.tight_layout()

    if filename:
        plt.savefig(filename, dpi=150, bbox_inches="tight")

    if show:
        plt.show()
    elif filename:
        # Saved and not shown: release it from pyplot's figure registry
        plt.close(fig)

    return fig

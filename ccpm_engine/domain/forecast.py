from typing import Any, Dict, List, Optional


class ForecastResult:
    """
    Outcome of a Monte Carlo completion forecast.

    Percentiles are keyed by their numeric value (50, 80, 95, ...). Completion
    times are absolute epoch milliseconds anchored to the analysis start.
    """

    def __init__(
        self,
        project_id: str,
        simulations: int,
        percentiles: Dict[float, int],
        percentile_durations: Dict[float, float],
        generated_at: int,
        start_at: int,
        deterministic_duration_minutes: float,
        deterministic_finish_at: int,
        histogram: Optional[List[Dict[str, Any]]] = None,
    ):
        self.project_id = project_id
        self.simulations = simulations
        self.percentiles = dict(percentiles)
        self.percentile_durations = dict(percentile_durations)
        self.generated_at = generated_at
        self.start_at = start_at
        self.deterministic_duration_minutes = deterministic_duration_minutes
        self.deterministic_finish_at = deterministic_finish_at
        self.histogram = list(histogram) if histogram else []

    @staticmethod
    def percentile_label(percentile) -> str:
        value = float(percentile)
        return f"p{int(value)}" if value.is_integer() else f"p{value:g}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "projectId": self.project_id,
            "simulations": self.simulations,
            "generatedAt": self.generated_at,
            "startAt": self.start_at,
            "percentiles": {
                self.percentile_label(p): epoch for p, epoch in self.percentiles.items()
            },
            "percentileDurations": {
                self.percentile_label(p): minutes
                for p, minutes in self.percentile_durations.items()
            },
            "deterministicDurationMinutes": self.deterministic_duration_minutes,
            "deterministicFinishAt": self.deterministic_finish_at,
            "histogram": list(self.histogram),
        }

    def __repr__(self) -> str:
        labels = ", ".join(
            f"{self.percentile_label(p)}={minutes:.0f}m"
            for p, minutes in self.percentile_durations.items()
        )
        return f"ForecastResult(simulations={self.simulations}, {labels})"

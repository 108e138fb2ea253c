from abc import ABC, abstractmethod
from math import sqrt

from ..config import CUT_AND_PASTE_FRACTION


class BufferCalculationStrategy(ABC):
    @abstractmethod
    def calculate_buffer_size(self, tasks, chain_duration):
        """Calculate buffer size in minutes for the chain's tasks"""
        pass

    def get_name(self):
        """Get the name of this strategy"""
        return self.__class__.__name__


# Cut-and-Paste Method (C&PM)
class CutAndPasteMethod(BufferCalculationStrategy):
    def __init__(self, fraction=CUT_AND_PASTE_FRACTION):
        if not isinstance(fraction, (int, float)) or fraction < 0:
            raise ValueError("Cut-and-paste fraction must be a non-negative number")
        self.fraction = fraction

    def calculate_buffer_size(self, tasks, chain_duration):
        """
        Fixed fraction of the chain's scheduled duration
        Buffer = fraction * chain duration
        """
        return float(chain_duration) * self.fraction

    def get_name(self):
        return "Cut-and-Paste Method (C&PM)"


class _VarianceMethod(BufferCalculationStrategy):
    """
    Variance based sizing with a cut-and-paste fallback.

    Only tasks with both optimistic and pessimistic estimates contribute; when
    no task of the chain has them, the chain is sized by cut-and-paste instead.
    """

    def __init__(self, fallback_fraction=CUT_AND_PASTE_FRACTION):
        self.fallback = CutAndPasteMethod(fallback_fraction)

    @abstractmethod
    def spread(self, task):
        pass

    def calculate_buffer_size(self, tasks, chain_duration):
        spreads = [self.spread(task) for task in tasks if task.has_range_estimate()]
        if not spreads:
            return self.fallback.calculate_buffer_size(tasks, chain_duration)
        return sqrt(sum(s * s for s in spreads))

    def uses_fallback(self, tasks):
        return not any(task.has_range_estimate() for task in tasks)


# Root Square Error Method (RSEM)
class RootSquareErrorMethod(_VarianceMethod):
    def spread(self, task):
        """
        Half the optimistic/pessimistic spread, taken as the task's deviation
        Buffer = sqrt(sum(((pessimistic - optimistic) / 2)²))
        """
        return (task.pessimistic_minutes - task.optimistic_minutes) / 2.0

    def get_name(self):
        return "Root Square Error Method (RSEM)"


# Sum of Squares Method (SSQ)
class SumOfSquaresMethod(_VarianceMethod):
    def spread(self, task):
        """
        Full optimistic/pessimistic spread
        Buffer = sqrt(sum((pessimistic - optimistic)²))
        """
        return task.pessimistic_minutes - task.optimistic_minutes

    def get_name(self):
        return "Sum of Squares Method (SSQ)"


BUFFER_STRATEGIES = {
    "rsem": RootSquareErrorMethod,
    "ssq": SumOfSquaresMethod,
    "cpm": CutAndPasteMethod,
}


def get_strategy(strategy, fraction=CUT_AND_PASTE_FRACTION):
    """
    Resolve a strategy instance from a name or pass an instance through.

    Args:
        strategy: "rsem", "ssq", "cpm" or a BufferCalculationStrategy
        fraction: Cut-and-paste fraction (also the fallback fraction)
    """
    if isinstance(strategy, BufferCalculationStrategy):
        return strategy
    try:
        return BUFFER_STRATEGIES[strategy](fraction)
    except KeyError:
        raise ValueError(
            f"Unknown buffer strategy: {strategy}. "
            f"Must be one of {sorted(BUFFER_STRATEGIES)}"
        )

"""
CCPM Visualization Package
==========================

Available modules:
- fever_chart: CCPM Fever Chart visualization of buffer status
"""

from ccpm_engine.visualization.fever_chart import (
    create_fever_chart,
    generate_fever_chart_data,
)

__all__ = [
    "create_fever_chart",
    "generate_fever_chart_data",
]

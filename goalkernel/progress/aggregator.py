"""Progress aggregation: metric values to one overall percentage.

Pure functions. Given identical metrics they always return identical results.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Iterable

from goalkernel.progress.errors import ValidationError

if TYPE_CHECKING:
    from goalkernel.progress.models import Metric


def round_half_up(value: float) -> int:
    """Round .5 away from zero for the non-negative range used here (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


def metric_progress(current_value: float, target: float) -> float:
    """Percentage (0–100) of `target` reached by `current_value`, capped at 100."""
    if target <= 0:
        raise ValidationError(f"Metric target must be greater than 0 (got {target})")
    if current_value <= 0:
        return 0.0
    return min(100.0, (current_value / target) * 100.0)


def overall_progress(metrics: Iterable["Metric"]) -> int:
    """Rounded mean of every metric's progress; 0 when there are no metrics."""
    values = [m.progress for m in metrics]
    if not values:
        return 0
    return round_half_up(sum(values) / len(values))

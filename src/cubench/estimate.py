"""Nearest-rank percentile estimation over a finished sample set."""

from __future__ import annotations

from typing import Sequence

from cubench.exceptions import DegenerateInput
from cubench.models import LEVEL_PERCENTILES, PercentileEstimate, SampleSet


def rank_index(percentile: int, size: int) -> int:
    """Zero-based nearest-rank index of *percentile* in *size* sorted values.

    Computes ``ceil(percentile * size / 100) - 1`` in integer arithmetic and
    clamps it to ``[0, size - 1]``.
    """
    if size < 1:
        raise DegenerateInput("rank requested for an empty sample set")
    if not 0 <= percentile <= 100:
        raise ValueError(f"percentile must be within [0, 100], got {percentile}")
    index = -(-percentile * size // 100) - 1
    return min(max(index, 0), size - 1)


def nearest_rank(ordered: Sequence[int], percentile: int) -> int:
    """Return the nearest-rank *percentile* of already sorted values."""
    return ordered[rank_index(percentile, len(ordered))]


def estimate(samples: SampleSet | Sequence[int]) -> PercentileEstimate:
    """Summarise *samples* into the six named confidence levels.

    No interpolation: each level is an observed value. Sorting first makes
    the levels non-decreasing for any non-empty input, and a single sample
    yields six equal levels.

    Args:
        samples: A :class:`SampleSet` or any sequence of non-negative ints.

    Returns:
        A :class:`PercentileEstimate` with ``sample_size == len(samples)``.

    Raises:
        DegenerateInput: If *samples* is empty.
        ValueError: If any sample is negative or not an integer.
    """
    if not isinstance(samples, SampleSet):
        samples = SampleSet(values=tuple(samples))
    if len(samples) == 0:
        raise DegenerateInput("estimation requires at least one sample")

    ordered = sorted(samples.values)
    levels = {
        level.value: nearest_rank(ordered, percentile)
        for level, percentile in LEVEL_PERCENTILES.items()
    }
    return PercentileEstimate(**levels, sample_size=len(ordered))

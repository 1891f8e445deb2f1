"""Discrete legend buckets sampled from a continuous color scale."""

from __future__ import annotations

from typing import Sequence

from .models import LegendBucket
from .scales import ContinuousScale


def bucket_edges(domain: tuple[float, float], count: int) -> tuple[float, ...]:
    """``count + 1`` equally spaced edges from ``domain[0]`` to ``domain[1]``."""
    lo, hi = domain
    step = (hi - lo) / count
    edges = [lo + idx * step for idx in range(count)]
    edges.append(hi)
    return tuple(edges)


def build_legend(scale: ContinuousScale, count: int) -> tuple[LegendBucket, ...]:
    """Split the scale domain into ``count`` contiguous ascending buckets.

    Each bucket's color is sampled at its midpoint rather than on an edge.
    The last bucket is open-ended. A degenerate domain yields one bucket.
    """
    if count < 1:
        raise ValueError("Legend bucket count must be >= 1")
    lo, hi = scale.domain
    if scale.degenerate:
        return (LegendBucket(lower=lo, upper=None, color=scale(lo)),)

    edges = bucket_edges(scale.domain, count)
    buckets: list[LegendBucket] = []
    for idx in range(count):
        lower, upper = edges[idx], edges[idx + 1]
        is_last = idx == count - 1
        buckets.append(
            LegendBucket(
                lower=lower,
                upper=None if is_last else upper,
                color=scale((lower + upper) / 2.0),
            )
        )
    return tuple(buckets)


def legend_lines(buckets: Sequence[LegendBucket]) -> list[str]:
    return [f"{bucket.color} {bucket.label}" for bucket in buckets]

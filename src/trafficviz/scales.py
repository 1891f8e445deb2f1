"""Continuous scales mapping metric values to colors and magnitudes."""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Iterable

from .models import DerivedMetric


class EmptyDomainError(ValueError):
    """No valid metric is available to span a scale domain."""


@lru_cache(maxsize=16)
def _require_colormap(name: str) -> Any:
    try:
        from matplotlib import colormaps
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for color scales") from exc
    try:
        return colormaps[name]
    except KeyError as exc:
        raise ValueError(f"Unknown matplotlib colormap: '{name}'") from exc


def _to_hex(rgba: Any) -> str:
    from matplotlib.colors import to_hex

    return to_hex(rgba, keep_alpha=False)


def _signed_pow(value: float, exponent: float) -> float:
    if exponent == 1.0:
        return value
    return math.copysign(abs(value) ** exponent, value)


@dataclass(frozen=True, slots=True)
class ColorRamp:
    """Sequential color interpolator over a named matplotlib colormap."""

    colormap: str

    def __post_init__(self) -> None:
        _require_colormap(self.colormap)

    def __call__(self, t: float) -> str:
        clamped = min(max(t, 0.0), 1.0)
        return _to_hex(_require_colormap(self.colormap)(clamped))


@dataclass(frozen=True, slots=True)
class NumericRange:
    start: float
    stop: float

    @property
    def midpoint(self) -> float:
        return (self.start + self.stop) / 2.0

    def __call__(self, t: float) -> float:
        return self.start + t * (self.stop - self.start)


@dataclass(frozen=True, slots=True)
class ContinuousScale:
    """Domain ``(lo, hi)`` mapped through an optional power transform.

    A degenerate domain (``lo == hi``) normalizes every value to 0.5 so the
    output collapses to the middle of the configured range.
    """

    domain: tuple[float, float]
    interpolator: Callable[[float], Any]
    exponent: float = 1.0

    def __post_init__(self) -> None:
        lo, hi = self.domain
        if not (math.isfinite(lo) and math.isfinite(hi)):
            raise ValueError(f"Scale domain must be finite, got {self.domain}")
        if lo > hi:
            raise ValueError(f"Scale domain must satisfy min <= max, got {self.domain}")
        if self.exponent <= 0:
            raise ValueError("Scale exponent must be > 0")

    @property
    def degenerate(self) -> bool:
        return self.domain[0] == self.domain[1]

    def normalize(self, value: float) -> float:
        if self.degenerate:
            return 0.5
        lo = _signed_pow(self.domain[0], self.exponent)
        hi = _signed_pow(self.domain[1], self.exponent)
        return (_signed_pow(float(value), self.exponent) - lo) / (hi - lo)

    def __call__(self, value: float) -> Any:
        return self.interpolator(self.normalize(value))


def valid_values(metrics: Iterable[DerivedMetric]) -> list[float]:
    return [metric.value for metric in metrics if metric.value is not None]


def metric_domain(
    metrics: Iterable[DerivedMetric], *, anchor_zero: bool = False
) -> tuple[float, float]:
    """Min/max over every valid metric; invalid ones never reach the domain."""
    values = valid_values(metrics)
    if not values:
        raise EmptyDomainError("Cannot build a scale domain without any valid metric")
    lo, hi = min(values), max(values)
    if anchor_zero:
        lo = min(lo, 0.0)
    return (lo, hi)


def build_color_scale(
    metrics: Iterable[DerivedMetric], colormap: str, *, anchor_zero: bool = False
) -> ContinuousScale:
    return ContinuousScale(
        domain=metric_domain(metrics, anchor_zero=anchor_zero),
        interpolator=ColorRamp(colormap),
    )


def build_width_scale(
    metrics: Iterable[DerivedMetric],
    width_range: tuple[float, float],
    *,
    anchor_zero: bool = False,
) -> ContinuousScale:
    # sqrt keeps the few very busy segments from drowning out the rest
    return ContinuousScale(
        domain=metric_domain(metrics, anchor_zero=anchor_zero),
        interpolator=NumericRange(*width_range),
        exponent=0.5,
    )


def build_linear_scale(
    domain: tuple[float, float], output_range: tuple[float, float]
) -> ContinuousScale:
    return ContinuousScale(domain=domain, interpolator=NumericRange(*output_range))


def _tick_increment(start: float, stop: float, count: int) -> float:
    step = (stop - start) / max(count, 1)
    power = math.floor(math.log10(step))
    error = step / (10**power)
    if error >= math.sqrt(50):
        factor = 10
    elif error >= math.sqrt(10):
        factor = 5
    elif error >= math.sqrt(2):
        factor = 2
    else:
        factor = 1
    return factor * (10**power)


def linear_ticks(start: float, stop: float, count: int = 5) -> tuple[float, ...]:
    """Round-number ticks covering ``[start, stop]``, roughly ``count`` of them."""
    if count < 1:
        return ()
    if start == stop:
        return (float(start),)
    if start > stop:
        return tuple(reversed(linear_ticks(stop, start, count)))
    increment = _tick_increment(start, stop, count)
    first = math.ceil(start / increment)
    last = math.floor(stop / increment)
    # multiply instead of accumulating so ticks stay exact round numbers
    return tuple(round(i * increment, 12) for i in range(first, last + 1))

"""Bar chart layout for a ranking: band rows and linear bar extents."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from .config import ChartConfig
from .models import RankEntry
from .scales import build_linear_scale, linear_ticks


@dataclass(frozen=True, slots=True)
class BandScale:
    """Evenly spaced rows with equal inner and outer padding, centred in range."""

    count: int
    range: tuple[float, float]
    padding: float = 0.1

    def __post_init__(self) -> None:
        if self.count < 0:
            raise ValueError("Band count must be >= 0")
        if self.padding < 0.0 or self.padding >= 1.0:
            raise ValueError("Band padding must be in [0, 1)")

    @property
    def step(self) -> float:
        start, stop = self.range
        return (stop - start) / max(1.0, self.count - self.padding + 2.0 * self.padding)

    @property
    def bandwidth(self) -> float:
        return self.step * (1.0 - self.padding)

    @property
    def offset(self) -> float:
        start, stop = self.range
        return start + (stop - start - self.step * (self.count - self.padding)) / 2.0

    def position(self, index: int) -> float:
        if index < 0 or index >= self.count:
            raise IndexError(f"Band index {index} out of range for {self.count} bands")
        return self.offset + self.step * index


@dataclass(frozen=True, slots=True)
class BarGeometry:
    name: str
    metric: float
    y: float
    height: float
    x: float
    start_width: float
    target_width: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "metric": self.metric,
            "y": self.y,
            "height": self.height,
            "x": self.x,
            "start_width": self.start_width,
            "target_width": self.target_width,
        }


@dataclass(frozen=True, slots=True)
class ChartLayout:
    width: float
    height: float
    x_domain: tuple[float, float]
    bars: tuple[BarGeometry, ...]
    x_ticks: tuple[tuple[float, float], ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "x_domain": list(self.x_domain),
            "bars": [bar.to_dict() for bar in self.bars],
            "x_ticks": [{"value": value, "x": x} for value, x in self.x_ticks],
        }


def inner_chart_area(cfg: ChartConfig) -> tuple[float, float]:
    return (cfg.inner_width, cfg.inner_height)


class ChartLayoutEngine:
    """Positions ranked entries as horizontal bars growing from zero."""

    def __init__(self, *, padding: float = 0.1, tick_count: int = 5) -> None:
        self.padding = padding
        self.tick_count = tick_count

    @classmethod
    def from_config(cls, cfg: ChartConfig) -> ChartLayoutEngine:
        return cls(padding=cfg.band_padding, tick_count=cfg.tick_count)

    def layout(self, ranking: Sequence[RankEntry], width: float, height: float) -> ChartLayout:
        if width <= 0 or height <= 0:
            raise ValueError("Chart area must have positive width and height")
        bands = BandScale(count=len(ranking), range=(0.0, height), padding=self.padding)
        top = max((entry.metric for entry in ranking), default=0.0)

        if top > 0:
            x_scale = build_linear_scale((0.0, top), (0.0, width))
            extents = [float(x_scale(entry.metric)) for entry in ranking]
            ticks = tuple((value, float(x_scale(value))) for value in linear_ticks(0.0, top, self.tick_count))
        else:
            # nothing to compare against; bars stay flat
            extents = [0.0 for _ in ranking]
            ticks = ((0.0, 0.0),)

        bars = tuple(
            BarGeometry(
                name=entry.name,
                metric=entry.metric,
                y=bands.position(idx),
                height=bands.bandwidth,
                x=0.0,
                start_width=0.0,
                target_width=extent,
            )
            for idx, (entry, extent) in enumerate(zip(ranking, extents))
        )
        return ChartLayout(
            width=width,
            height=height,
            x_domain=(0.0, top),
            bars=bars,
            x_ticks=ticks,
        )

"""Feature style resolution from the current scales."""

from __future__ import annotations

from dataclasses import dataclass, field

from .config import AppConfig, ChoroplethConfig, NetworkConfig
from .metrics import PER_CAPITA_FACTOR, derive_metric
from .models import (
    HIGHLIGHT_BASE,
    KIND_REGION,
    KIND_SEGMENT,
    DerivedMetric,
    GeographicFeature,
    StyleDescriptor,
)
from .scales import ContinuousScale


@dataclass(slots=True)
class EncodingContext:
    """Current data and scales for one rendering session.

    Owned by the host and passed explicitly to the resolver and the
    interaction controller. Scales are replaced wholesale, never mutated.
    """

    features: dict[str, GeographicFeature] = field(default_factory=dict)
    region_color: ContinuousScale | None = None
    segment_color: ContinuousScale | None = None
    segment_width: ContinuousScale | None = None
    highlight: dict[str, str] = field(default_factory=dict)

    def feature(self, feature_id: str) -> GeographicFeature:
        try:
            return self.features[feature_id]
        except KeyError:
            raise KeyError(f"Unknown feature id: '{feature_id}'") from None

    def replace_feature(self, feature: GeographicFeature) -> None:
        self.features[feature.feature_id] = feature

    def highlight_state(self, feature_id: str) -> str:
        return self.highlight.get(feature_id, HIGHLIGHT_BASE)


def _format_factor(factor: float) -> str:
    return f"{factor:,.0f}".replace(",", "'")


def tooltip_text(
    feature: GeographicFeature, metric: DerivedMetric, factor: float = PER_CAPITA_FACTOR
) -> str:
    if feature.kind == KIND_REGION:
        if metric.value is None:
            return f"{feature.label}\nno data ({metric.invalid_reason})"
        return f"{feature.label}\n{metric.value:.0f} passengers / {_format_factor(factor)} inhabitants"
    if metric.value is None:
        return f"no data ({metric.invalid_reason})"
    return f"{metric.value:.0f} passengers"


class StyleResolver:
    """Pure mapping of (feature, current scales) to a StyleDescriptor."""

    def __init__(
        self,
        choropleth: ChoroplethConfig,
        network: NetworkConfig,
        *,
        per_capita_factor: float = PER_CAPITA_FACTOR,
    ) -> None:
        self.choropleth = choropleth
        self.network = network
        self.per_capita_factor = per_capita_factor

    @classmethod
    def from_config(cls, cfg: AppConfig) -> StyleResolver:
        return cls(
            cfg.choropleth,
            cfg.network,
            per_capita_factor=cfg.metrics.per_capita_factor,
        )

    def metric(self, feature: GeographicFeature) -> DerivedMetric:
        return derive_metric(feature, self.per_capita_factor)

    def resolve(self, feature: GeographicFeature, context: EncodingContext) -> StyleDescriptor:
        metric = self.metric(feature)
        if feature.kind == KIND_REGION:
            return self.region_style(metric, context.region_color)
        if feature.kind == KIND_SEGMENT:
            return self.segment_style(metric, context.segment_color, context.segment_width)
        raise ValueError(f"Unknown feature kind: {feature.kind}")

    def region_style(
        self, metric: DerivedMetric, color_scale: ContinuousScale | None
    ) -> StyleDescriptor:
        cfg = self.choropleth
        if metric.value is None or color_scale is None:
            fill = cfg.no_data_color
        else:
            fill = color_scale(metric.value)
        return StyleDescriptor(
            fill_color=fill,
            fill_opacity=cfg.fill_opacity,
            stroke_color=cfg.stroke_color,
            stroke_width=cfg.stroke_width,
        )

    def segment_style(
        self,
        metric: DerivedMetric,
        color_scale: ContinuousScale | None,
        width_scale: ContinuousScale | None,
    ) -> StyleDescriptor:
        cfg = self.network
        if metric.value is None or color_scale is None or width_scale is None:
            return StyleDescriptor(stroke_color=cfg.no_data_color, stroke_width=cfg.no_data_width)
        # color and width are independent encodings of the same load
        return StyleDescriptor(
            stroke_color=color_scale(metric.value),
            stroke_width=float(width_scale(metric.value)),
        )

    def tooltip(self, feature: GeographicFeature) -> str:
        return tooltip_text(feature, self.metric(feature), self.per_capita_factor)

"""Per-feature metric derivation."""

from __future__ import annotations

from typing import Iterable

from .models import KIND_REGION, KIND_SEGMENT, DerivedMetric, GeographicFeature


PER_CAPITA_FACTOR = 10_000.0


def _traffic_value(feature: GeographicFeature) -> DerivedMetric:
    traffic = feature.average_daily_traffic
    if traffic is None:
        return DerivedMetric.invalid("missing average daily traffic")
    if traffic < 0:
        return DerivedMetric.invalid(f"negative average daily traffic ({traffic:g})")
    return DerivedMetric.of(traffic)


def per_capita_ratio(
    feature: GeographicFeature, factor: float = PER_CAPITA_FACTOR
) -> DerivedMetric:
    """Traffic per ``factor`` inhabitants, invalid without a positive population."""
    population = feature.population
    if population is None:
        return DerivedMetric.invalid("missing population")
    if population <= 0:
        return DerivedMetric.invalid(f"non-positive population ({population:g})")
    traffic = _traffic_value(feature)
    if traffic.value is None:
        return traffic
    return DerivedMetric.of(traffic.value / population * factor)


def segment_load(feature: GeographicFeature) -> DerivedMetric:
    return _traffic_value(feature)


def absolute_load(feature: GeographicFeature) -> DerivedMetric:
    """Raw traffic of a region, regardless of population."""
    return _traffic_value(feature)


def derive_metric(feature: GeographicFeature, factor: float = PER_CAPITA_FACTOR) -> DerivedMetric:
    if feature.kind == KIND_REGION:
        return per_capita_ratio(feature, factor)
    if feature.kind == KIND_SEGMENT:
        return segment_load(feature)
    raise ValueError(f"Unknown feature kind: {feature.kind}")


def derive_all(
    features: Iterable[GeographicFeature], factor: float = PER_CAPITA_FACTOR
) -> dict[str, DerivedMetric]:
    return {feature.feature_id: derive_metric(feature, factor) for feature in features}

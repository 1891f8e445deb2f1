"""Top-N selection over derived metrics."""

from __future__ import annotations

from typing import Callable, Iterable

from .models import DerivedMetric, GeographicFeature, RankEntry


def select_top(
    features: Iterable[GeographicFeature],
    metric_fn: Callable[[GeographicFeature], DerivedMetric],
    n: int,
) -> tuple[RankEntry, ...]:
    """Return the ``n`` highest valid metrics, descending.

    Features with an invalid metric are skipped. Equal metrics keep dataset
    order; ``sorted`` is stable with ``reverse=True`` as well.
    """
    if n < 0:
        raise ValueError("n must be >= 0")
    entries: list[RankEntry] = []
    for feature in features:
        metric = metric_fn(feature)
        if metric.value is None:
            continue
        entries.append(RankEntry(feature_id=feature.feature_id, name=feature.label, metric=metric.value))
    ranked = sorted(entries, key=lambda entry: entry.metric, reverse=True)
    return tuple(ranked[:n])

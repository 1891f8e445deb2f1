"""Load, encode, export, and render the three traffic visualizations."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Sequence

from .chart import ChartLayout, ChartLayoutEngine, inner_chart_area
from .config import AppConfig
from .io_geo import GeoJsonRepository, LoadFailure, load_datasets
from .legend import build_legend, legend_lines
from .metrics import absolute_load, derive_all, per_capita_ratio
from .models import (
    DerivedMetric,
    FeatureCollection,
    LegendBucket,
    RankEntry,
    StyleDescriptor,
)
from .ranking import select_top
from .render import run_render
from .scales import (
    EmptyDomainError,
    build_color_scale,
    build_width_scale,
    valid_values,
)
from .style import EncodingContext, StyleResolver
from .util import write_json

_LOGGER = logging.getLogger("trafficviz.pipeline")


@dataclass(frozen=True, slots=True)
class EncodedDatasets:
    regions: FeatureCollection
    network: FeatureCollection
    context: EncodingContext
    region_metrics: Mapping[str, DerivedMetric]
    segment_metrics: Mapping[str, DerivedMetric]
    region_styles: Mapping[str, StyleDescriptor]
    segment_styles: Mapping[str, StyleDescriptor]
    tooltips: Mapping[str, str]
    legend: tuple[LegendBucket, ...]
    ranking: tuple[RankEntry, ...]
    chart: ChartLayout


@dataclass(frozen=True, slots=True)
class LoadSummary:
    """Plain data answers about absolute and per-capita region load."""

    busiest_region: RankEntry | None
    top_absolute: tuple[RankEntry, ...]
    top_per_capita: tuple[RankEntry, ...]
    invalid_regions: Mapping[str, str]
    invalid_segments: Mapping[str, str]


@dataclass(slots=True)
class PipelineReport:
    encoded: EncodedDatasets | None = None
    artifacts: dict[str, Path] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    infos: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def add_info(self, msg: str) -> None:
        self.infos.append(msg)


def build_context(
    regions: FeatureCollection,
    network: FeatureCollection,
    cfg: AppConfig,
    *,
    region_metrics: Mapping[str, DerivedMetric] | None = None,
    segment_metrics: Mapping[str, DerivedMetric] | None = None,
) -> EncodingContext:
    """Scales span the full datasets, never the ranked subset."""
    factor = cfg.metrics.per_capita_factor
    region_metrics = region_metrics or derive_all(regions.features, factor)
    segment_metrics = segment_metrics or derive_all(network.features, factor)

    region_features = regions.by_id()
    segment_features = network.by_id()
    shared = sorted(region_features.keys() & segment_features.keys())
    if shared:
        raise ValueError("Region and segment features share ids: " + ", ".join(shared))
    context = EncodingContext(features={**region_features, **segment_features})
    try:
        context.region_color = build_color_scale(
            region_metrics.values(), cfg.choropleth.colormap
        )
    except EmptyDomainError:
        _LOGGER.warning("No valid per-capita metric in %s; choropleth has no scale.", regions.source)

    try:
        context.segment_color = build_color_scale(
            segment_metrics.values(),
            cfg.network.colormap,
            anchor_zero=cfg.network.anchor_zero,
        )
        context.segment_width = build_width_scale(
            segment_metrics.values(),
            cfg.network.width_range,
            anchor_zero=cfg.network.anchor_zero,
        )
    except EmptyDomainError:
        _LOGGER.warning("No valid segment load in %s; network has no scale.", network.source)
    return context


def encode_datasets(
    regions: FeatureCollection,
    network: FeatureCollection,
    cfg: AppConfig,
) -> EncodedDatasets:
    factor = cfg.metrics.per_capita_factor
    region_metrics = derive_all(regions.features, factor)
    segment_metrics = derive_all(network.features, factor)
    context = build_context(
        regions,
        network,
        cfg,
        region_metrics=region_metrics,
        segment_metrics=segment_metrics,
    )

    resolver = StyleResolver.from_config(cfg)
    region_styles = {f.feature_id: resolver.resolve(f, context) for f in regions.features}
    segment_styles = {f.feature_id: resolver.resolve(f, context) for f in network.features}
    tooltips = {f.feature_id: resolver.tooltip(f) for f in (*regions.features, *network.features)}

    legend: tuple[LegendBucket, ...] = ()
    if context.region_color is not None:
        legend = build_legend(context.region_color, cfg.legend.bucket_count)

    ranking = select_top(
        regions.features,
        lambda feature: per_capita_ratio(feature, factor),
        cfg.ranking.top_n,
    )
    chart = ChartLayoutEngine.from_config(cfg.chart).layout(ranking, *inner_chart_area(cfg.chart))
    return EncodedDatasets(
        regions=regions,
        network=network,
        context=context,
        region_metrics=region_metrics,
        segment_metrics=segment_metrics,
        region_styles=region_styles,
        segment_styles=segment_styles,
        tooltips=tooltips,
        legend=legend,
        ranking=ranking,
        chart=chart,
    )


def summarize_loads(
    regions: FeatureCollection,
    network: FeatureCollection,
    cfg: AppConfig,
) -> LoadSummary:
    factor = cfg.metrics.per_capita_factor
    top_absolute = select_top(regions.features, absolute_load, cfg.ranking.top_n)
    return LoadSummary(
        busiest_region=top_absolute[0] if top_absolute else None,
        top_absolute=top_absolute,
        top_per_capita=select_top(
            regions.features,
            lambda feature: per_capita_ratio(feature, factor),
            cfg.ranking.top_n,
        ),
        invalid_regions=_invalid_reasons(derive_all(regions.features, factor)),
        invalid_segments=_invalid_reasons(derive_all(network.features, factor)),
    )


def format_summary_lines(summary: LoadSummary) -> Sequence[str]:
    lines: list[str] = []
    if summary.busiest_region is None:
        lines.append("No region carries a valid traffic value.")
    else:
        lines.append(
            "Busiest region by absolute load: "
            f"{summary.busiest_region.name} ({summary.busiest_region.metric:.0f})"
        )
    lines.append(f"Top {len(summary.top_absolute)} regions by absolute load:")
    lines.extend(
        f"  {rank}. {entry.name}: {entry.metric:.0f}"
        for rank, entry in enumerate(summary.top_absolute, start=1)
    )
    lines.append(f"Top {len(summary.top_per_capita)} regions by per-capita load:")
    lines.extend(
        f"  {rank}. {entry.name}: {entry.metric:.0f}"
        for rank, entry in enumerate(summary.top_per_capita, start=1)
    )
    for feature_id, reason in summary.invalid_regions.items():
        lines.append(f"Region '{feature_id}' excluded: {reason}")
    if summary.invalid_segments:
        lines.append(f"{len(summary.invalid_segments)} network segments excluded (invalid load)")
    return lines


def _invalid_reasons(metrics: Mapping[str, DerivedMetric]) -> dict[str, str]:
    return {
        feature_id: metric.invalid_reason or "invalid"
        for feature_id, metric in metrics.items()
        if not metric.valid
    }


def encodings_payload(encoded: EncodedDatasets, cfg: AppConfig) -> dict[str, Any]:
    """JSON-ready view of everything a front end needs to draw."""

    def _feature_rows(
        collection: FeatureCollection,
        metrics: Mapping[str, DerivedMetric],
        styles: Mapping[str, StyleDescriptor],
    ) -> list[dict[str, Any]]:
        rows: list[dict[str, Any]] = []
        for feature in collection.features:
            metric = metrics[feature.feature_id]
            rows.append(
                {
                    "feature_id": feature.feature_id,
                    "name": feature.name,
                    "metric": metric.value,
                    "invalid_reason": metric.invalid_reason,
                    "style": styles[feature.feature_id].to_dict(),
                    "tooltip": encoded.tooltips[feature.feature_id],
                }
            )
        return rows

    context = encoded.context
    return {
        "choropleth": {
            "source": encoded.regions.source,
            "domain": list(context.region_color.domain) if context.region_color else None,
            "features": _feature_rows(encoded.regions, encoded.region_metrics, encoded.region_styles),
            "legend": {
                "title": cfg.legend.title,
                "buckets": [bucket.to_dict() for bucket in encoded.legend],
            },
        },
        "network": {
            "source": encoded.network.source,
            "domain": list(context.segment_color.domain) if context.segment_color else None,
            "features": _feature_rows(
                encoded.network, encoded.segment_metrics, encoded.segment_styles
            ),
        },
        "bar_chart": {
            "ranking": [entry.to_dict() for entry in encoded.ranking],
            "layout": encoded.chart.to_dict(),
            "bar_color": cfg.chart.bar_color,
            "transition": {
                "duration_ms": cfg.chart.transition.duration_ms,
                "easing": cfg.chart.transition.easing,
            },
        },
        "map": {
            "center": [cfg.map.center_lat, cfg.map.center_lon],
            "zoom": cfg.map.zoom,
        },
    }


def export_encodings(encoded: EncodedDatasets, cfg: AppConfig, path: Path) -> Path:
    write_json(path, encodings_payload(encoded, cfg))
    return path


def run_pipeline(
    cfg: AppConfig,
    *,
    render: bool = True,
    repository: GeoJsonRepository | None = None,
) -> PipelineReport:
    """Join-load both datasets, then encode, export and optionally render."""
    report = PipelineReport()
    try:
        regions, network = load_datasets(cfg, repository=repository)
    except LoadFailure as exc:
        report.add_error(str(exc))
        return report
    report.add_info(f"Loaded {len(regions)} regions and {len(network)} network segments.")

    encoded = encode_datasets(regions, network, cfg)
    report.encoded = encoded

    invalid_regions = len(regions) - len(valid_values(encoded.region_metrics.values()))
    if invalid_regions:
        report.add_warning(f"{invalid_regions} regions have no valid per-capita metric.")
    invalid_segments = len(network) - len(valid_values(encoded.segment_metrics.values()))
    if invalid_segments:
        report.add_warning(f"{invalid_segments} network segments have no valid load.")
    if encoded.context.region_color is None:
        report.add_warning("Choropleth scale unavailable: no valid region metric.")
    if encoded.context.segment_color is None:
        report.add_warning("Network scales unavailable: no valid segment load.")
    report.infos.extend(f"legend {line}" for line in legend_lines(encoded.legend))
    report.add_info(f"Ranking holds {len(encoded.ranking)} regions.")

    output_dir = cfg.paths.output_dir
    report.artifacts["encodings"] = export_encodings(encoded, cfg, output_dir / "encodings.json")
    report.add_info(f"Encodings written to {report.artifacts['encodings']}")

    if render:
        render_report = run_render(encoded, cfg, output_dir=output_dir)
        report.infos.extend(render_report.infos)
        report.warnings.extend(render_report.warnings)
        report.errors.extend(render_report.errors)
        report.artifacts.update(render_report.outputs)
    return report

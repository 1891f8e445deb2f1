"""Typed configuration loader for `config.yaml`."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, cast

import yaml


def _mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"Expected mapping for '{field_name}'")
    return cast(Mapping[str, Any], value)


def _section(raw: Mapping[str, Any], key: str, field_name: str) -> Mapping[str, Any]:
    value = raw.get(key)
    if value is None:
        return {}
    return _mapping(value, field_name)


def _str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Expected integer for '{field_name}'")
    return value


def _float(value: Any, field_name: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise ValueError(f"Expected float for '{field_name}'")


def _bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"Expected bool for '{field_name}'")
    return value


def _str_list(value: Any, field_name: str) -> tuple[str, ...]:
    if isinstance(value, str):
        return (_str(value, field_name),)
    if not isinstance(value, list) or not value:
        raise ValueError(f"Expected non-empty list for '{field_name}'")
    return tuple(_str(item, f"{field_name}[{idx}]") for idx, item in enumerate(value))


def _float_pair(value: Any, field_name: str) -> tuple[float, float]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ValueError(f"Expected two-item list for '{field_name}'")
    return (_float(value[0], f"{field_name}[0]"), _float(value[1], f"{field_name}[1]"))


def _source_from_cfg(value: Any, field_name: str, root_dir: Path) -> str:
    """Return a URL untouched, or an absolute filesystem path."""
    raw = _str(value, field_name)
    if raw.startswith(("http://", "https://")):
        return raw
    p = Path(raw)
    return str(p if p.is_absolute() else root_dir / p)


def _path_from_cfg(value: Any, field_name: str, root_dir: Path) -> Path:
    p = Path(_str(value, field_name))
    return p if p.is_absolute() else root_dir / p


def is_remote_source(source: str) -> bool:
    return source.startswith(("http://", "https://"))


@dataclass(frozen=True, slots=True)
class ProjectConfig:
    title: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ProjectConfig:
        return cls(title=_str(raw.get("title", "Rail passenger load"), "project.title"))


@dataclass(frozen=True, slots=True)
class PathsConfig:
    regions: str
    network: str
    output_dir: Path
    logs_dir: Path

    @property
    def build_directories(self) -> tuple[Path, ...]:
        return (self.output_dir, self.logs_dir)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], root_dir: Path) -> PathsConfig:
        output_dir = _path_from_cfg(raw.get("output_dir", "build"), "paths.output_dir", root_dir)
        logs_raw = raw.get("logs_dir")
        return cls(
            regions=_source_from_cfg(
                raw.get("regions", "data/cantons_average_daily_trafic.geojson"),
                "paths.regions",
                root_dir,
            ),
            network=_source_from_cfg(
                raw.get("network", "data/network_average_daily_trafic.geojson"),
                "paths.network",
                root_dir,
            ),
            output_dir=output_dir,
            logs_dir=(
                output_dir / "logs"
                if logs_raw is None
                else _path_from_cfg(logs_raw, "paths.logs_dir", root_dir)
            ),
        )


@dataclass(frozen=True, slots=True)
class FieldsConfig:
    """Property names probed in order on each GeoJSON feature."""

    name: tuple[str, ...]
    population: tuple[str, ...]
    traffic: tuple[str, ...]

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> FieldsConfig:
        return cls(
            name=_str_list(raw.get("name", ["name"]), "fields.name"),
            population=_str_list(raw.get("population", ["population"]), "fields.population"),
            traffic=_str_list(
                raw.get("traffic", ["avg_daily_trafic", "averageDailyTraffic"]),
                "fields.traffic",
            ),
        )


@dataclass(frozen=True, slots=True)
class LoaderConfig:
    request_timeout_s: float
    user_agent: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> LoaderConfig:
        timeout = _float(raw.get("request_timeout_s", 30.0), "loader.request_timeout_s")
        if timeout <= 0:
            raise ValueError("loader.request_timeout_s must be > 0")
        return cls(
            request_timeout_s=timeout,
            user_agent=_str(raw.get("user_agent", "trafficviz/0.1"), "loader.user_agent"),
        )


@dataclass(frozen=True, slots=True)
class MetricsConfig:
    per_capita_factor: float

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> MetricsConfig:
        factor = _float(raw.get("per_capita_factor", 10_000), "metrics.per_capita_factor")
        if factor <= 0:
            raise ValueError("metrics.per_capita_factor must be > 0")
        return cls(per_capita_factor=factor)


@dataclass(frozen=True, slots=True)
class RankingConfig:
    top_n: int

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> RankingConfig:
        top_n = _int(raw.get("top_n", 10), "ranking.top_n")
        if top_n < 1:
            raise ValueError("ranking.top_n must be >= 1")
        return cls(top_n=top_n)


@dataclass(frozen=True, slots=True)
class LegendConfig:
    bucket_count: int
    title: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> LegendConfig:
        bucket_count = _int(raw.get("bucket_count", 5), "legend.bucket_count")
        if bucket_count < 1:
            raise ValueError("legend.bucket_count must be >= 1")
        return cls(
            bucket_count=bucket_count,
            title=_str(raw.get("title", "Passengers / 10'000 inhabitants"), "legend.title"),
        )


@dataclass(frozen=True, slots=True)
class MapImageConfig:
    width_px: int
    height_px: int
    dpi: int

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> MapImageConfig:
        return cls(
            width_px=_int(raw.get("width_px", 900), "map.image.width_px"),
            height_px=_int(raw.get("height_px", 700), "map.image.height_px"),
            dpi=_int(raw.get("dpi", 100), "map.image.dpi"),
        )


@dataclass(frozen=True, slots=True)
class MapConfig:
    center_lat: float
    center_lon: float
    zoom: int
    basemap: str
    image: MapImageConfig

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> MapConfig:
        lat, lon = _float_pair(raw.get("center", [46.8, 8.3]), "map.center")
        if lat < -90.0 or lat > 90.0:
            raise ValueError("map.center latitude must be between -90 and 90")
        if lon < -180.0 or lon > 180.0:
            raise ValueError("map.center longitude must be between -180 and 180")
        zoom = _int(raw.get("zoom", 8), "map.zoom")
        if zoom < 0 or zoom > 19:
            raise ValueError("map.zoom must be between 0 and 19")
        basemap = _str(raw.get("basemap", "osm"), "map.basemap").casefold()
        allowed = {"none", "osm"}
        if basemap not in allowed:
            raise ValueError("map.basemap must be one of: " + ", ".join(sorted(allowed)))
        return cls(
            center_lat=lat,
            center_lon=lon,
            zoom=zoom,
            basemap=basemap,
            image=MapImageConfig.from_mapping(_section(raw, "image", "map.image")),
        )


@dataclass(frozen=True, slots=True)
class ChoroplethConfig:
    colormap: str
    stroke_color: str
    stroke_width: float
    fill_opacity: float
    no_data_color: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ChoroplethConfig:
        opacity = _float(raw.get("fill_opacity", 0.7), "choropleth.fill_opacity")
        if opacity < 0.0 or opacity > 1.0:
            raise ValueError("choropleth.fill_opacity must be between 0 and 1")
        return cls(
            colormap=_str(raw.get("colormap", "Blues"), "choropleth.colormap"),
            stroke_color=_str(raw.get("stroke_color", "#333333"), "choropleth.stroke_color"),
            stroke_width=_float(raw.get("stroke_width", 1.0), "choropleth.stroke_width"),
            fill_opacity=opacity,
            no_data_color=_str(raw.get("no_data_color", "#cccccc"), "choropleth.no_data_color"),
        )


@dataclass(frozen=True, slots=True)
class NetworkConfig:
    colormap: str
    width_range: tuple[float, float]
    anchor_zero: bool
    no_data_color: str
    no_data_width: float

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> NetworkConfig:
        width_range = _float_pair(raw.get("width_range", [1.0, 8.0]), "network.width_range")
        if width_range[0] < 0 or width_range[1] < width_range[0]:
            raise ValueError("network.width_range must be [min, max] with 0 <= min <= max")
        return cls(
            colormap=_str(raw.get("colormap", "YlOrRd"), "network.colormap"),
            width_range=width_range,
            anchor_zero=_bool(raw.get("anchor_zero", False), "network.anchor_zero"),
            no_data_color=_str(raw.get("no_data_color", "#bbbbbb"), "network.no_data_color"),
            no_data_width=_float(raw.get("no_data_width", 0.5), "network.no_data_width"),
        )


@dataclass(frozen=True, slots=True)
class InteractionConfig:
    region_emphasis_width: float
    segment_emphasis_factor: float

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> InteractionConfig:
        factor = _float(
            raw.get("segment_emphasis_factor", 1.5), "interaction.segment_emphasis_factor"
        )
        if factor < 1.0:
            raise ValueError("interaction.segment_emphasis_factor must be >= 1")
        return cls(
            region_emphasis_width=_float(
                raw.get("region_emphasis_width", 3.0), "interaction.region_emphasis_width"
            ),
            segment_emphasis_factor=factor,
        )


@dataclass(frozen=True, slots=True)
class MarginConfig:
    top: float
    right: float
    bottom: float
    left: float

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> MarginConfig:
        return cls(
            top=_float(raw.get("top", 20), "chart.margin.top"),
            right=_float(raw.get("right", 20), "chart.margin.right"),
            bottom=_float(raw.get("bottom", 30), "chart.margin.bottom"),
            left=_float(raw.get("left", 140), "chart.margin.left"),
        )


@dataclass(frozen=True, slots=True)
class TransitionConfig:
    duration_ms: int
    easing: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> TransitionConfig:
        duration_ms = _int(raw.get("duration_ms", 1000), "chart.transition.duration_ms")
        if duration_ms < 0:
            raise ValueError("chart.transition.duration_ms must be >= 0")
        return cls(
            duration_ms=duration_ms,
            easing=_str(raw.get("easing", "cubic-out"), "chart.transition.easing"),
        )


@dataclass(frozen=True, slots=True)
class ChartConfig:
    width: float
    height: float
    margin: MarginConfig
    band_padding: float
    bar_color: str
    tick_count: int
    transition: TransitionConfig

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ChartConfig:
        padding = _float(raw.get("band_padding", 0.1), "chart.band_padding")
        if padding < 0.0 or padding >= 1.0:
            raise ValueError("chart.band_padding must be in [0, 1)")
        cfg = cls(
            width=_float(raw.get("width", 600), "chart.width"),
            height=_float(raw.get("height", 400), "chart.height"),
            margin=MarginConfig.from_mapping(_section(raw, "margin", "chart.margin")),
            band_padding=padding,
            bar_color=_str(raw.get("bar_color", "#69b3a2"), "chart.bar_color"),
            tick_count=_int(raw.get("tick_count", 5), "chart.tick_count"),
            transition=TransitionConfig.from_mapping(
                _section(raw, "transition", "chart.transition")
            ),
        )
        if cfg.inner_width <= 0 or cfg.inner_height <= 0:
            raise ValueError("chart margins leave no drawable area")
        return cfg

    @property
    def inner_width(self) -> float:
        return self.width - self.margin.left - self.margin.right

    @property
    def inner_height(self) -> float:
        return self.height - self.margin.top - self.margin.bottom


@dataclass(frozen=True, slots=True)
class BuildConfig:
    write_manifest: bool
    write_report: bool

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> BuildConfig:
        return cls(
            write_manifest=_bool(raw.get("write_manifest", True), "build.write_manifest"),
            write_report=_bool(raw.get("write_report", True), "build.write_report"),
        )


@dataclass(frozen=True, slots=True)
class AppConfig:
    source_path: Path
    project: ProjectConfig
    paths: PathsConfig
    fields: FieldsConfig
    loader: LoaderConfig
    metrics: MetricsConfig
    ranking: RankingConfig
    legend: LegendConfig
    map: MapConfig
    choropleth: ChoroplethConfig
    network: NetworkConfig
    interaction: InteractionConfig
    chart: ChartConfig
    build: BuildConfig

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], source_path: Path) -> AppConfig:
        root_dir = source_path.parent.resolve()
        return cls(
            source_path=source_path.resolve(),
            project=ProjectConfig.from_mapping(_section(raw, "project", "project")),
            paths=PathsConfig.from_mapping(_section(raw, "paths", "paths"), root_dir),
            fields=FieldsConfig.from_mapping(_section(raw, "fields", "fields")),
            loader=LoaderConfig.from_mapping(_section(raw, "loader", "loader")),
            metrics=MetricsConfig.from_mapping(_section(raw, "metrics", "metrics")),
            ranking=RankingConfig.from_mapping(_section(raw, "ranking", "ranking")),
            legend=LegendConfig.from_mapping(_section(raw, "legend", "legend")),
            map=MapConfig.from_mapping(_section(raw, "map", "map")),
            choropleth=ChoroplethConfig.from_mapping(_section(raw, "choropleth", "choropleth")),
            network=NetworkConfig.from_mapping(_section(raw, "network", "network")),
            interaction=InteractionConfig.from_mapping(
                _section(raw, "interaction", "interaction")
            ),
            chart=ChartConfig.from_mapping(_section(raw, "chart", "chart")),
            build=BuildConfig.from_mapping(_section(raw, "build", "build")),
        )


def load_config(path: str | Path) -> AppConfig:
    """Load and validate the YAML config file into typed settings."""
    cfg_path = Path(path).resolve()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ValueError("Top-level config must be a YAML mapping")
    return AppConfig.from_mapping(cast(Mapping[str, Any], raw), cfg_path)

"""Static rendering of the choropleth, network map, and ranked bar chart."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping

from .config import AppConfig
from .models import FeatureCollection, StyleDescriptor

if TYPE_CHECKING:
    from .pipeline import EncodedDatasets


_WEB_MERCATOR_RES_Z0 = 156_543.03392804097  # metres per pixel at zoom 0
_OSM_ATTRIBUTION = "© OpenStreetMap contributors"

_LOGGER = logging.getLogger("trafficviz.render")


@dataclass(slots=True)
class RenderReport:
    outputs: dict[str, Path] = field(default_factory=dict)
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


class MapRenderer:
    """Draws resolved styles with matplotlib; computes nothing data-driven."""

    def __init__(self, cfg: AppConfig) -> None:
        self.cfg = cfg
        self._web_mercator = cfg.map.basemap != "none"
        self._basemap_source = _resolve_basemap_source(cfg.map.basemap)
        self._basemap_failure: str | None = None

    @property
    def basemap_warning(self) -> str | None:
        return self._basemap_failure

    def render_choropleth(self, encoded: EncodedDatasets, output_path: Path) -> Path:
        plt = _require_pyplot()
        fig, ax = self._new_map_figure(plt)
        try:
            self._draw_features(ax, encoded.regions, encoded.region_styles, polygons=True)
            self._finish_map_axes(ax)
            if encoded.legend:
                self._draw_legend(ax, encoded)
            return self._save(fig, output_path)
        finally:
            plt.close(fig)

    def render_network(self, encoded: EncodedDatasets, output_path: Path) -> Path:
        plt = _require_pyplot()
        fig, ax = self._new_map_figure(plt)
        try:
            self._draw_features(ax, encoded.network, encoded.segment_styles, polygons=False)
            self._finish_map_axes(ax)
            return self._save(fig, output_path)
        finally:
            plt.close(fig)

    def render_bar_chart(self, encoded: EncodedDatasets, output_path: Path) -> Path:
        plt = _require_pyplot()
        chart_cfg = self.cfg.chart
        layout = encoded.chart
        dpi = self.cfg.map.image.dpi
        fig = plt.figure(figsize=(chart_cfg.width / dpi, chart_cfg.height / dpi), dpi=dpi)
        try:
            ax = fig.add_axes(
                (
                    chart_cfg.margin.left / chart_cfg.width,
                    chart_cfg.margin.bottom / chart_cfg.height,
                    layout.width / chart_cfg.width,
                    layout.height / chart_cfg.height,
                )
            )
            # layout coordinates are top-down like the band positions
            ax.set_xlim(0.0, layout.width)
            ax.set_ylim(layout.height, 0.0)
            for bar in layout.bars:
                ax.barh(
                    bar.y,
                    bar.target_width,
                    height=bar.height,
                    left=bar.x,
                    align="edge",
                    color=chart_cfg.bar_color,
                )
            ax.set_yticks([bar.y + bar.height / 2.0 for bar in layout.bars])
            ax.set_yticklabels([bar.name for bar in layout.bars], fontsize=8)
            ax.set_xticks([x for _, x in layout.x_ticks])
            ax.set_xticklabels([f"{value:g}" for value, _ in layout.x_ticks], fontsize=8)
            for side in ("top", "right"):
                ax.spines[side].set_visible(False)
            return self._save(fig, output_path)
        finally:
            plt.close(fig)

    def _new_map_figure(self, plt: Any) -> tuple[Any, Any]:
        image = self.cfg.map.image
        fig, ax = plt.subplots(
            figsize=(image.width_px / image.dpi, image.height_px / image.dpi),
            dpi=image.dpi,
        )
        fig.subplots_adjust(left=0.0, right=1.0, bottom=0.0, top=1.0)
        ax.set_axis_off()
        return fig, ax

    def _draw_features(
        self,
        ax: Any,
        collection: FeatureCollection,
        styles: Mapping[str, StyleDescriptor],
        *,
        polygons: bool,
    ) -> None:
        series, kept_ids = self._geoseries(collection)
        if not kept_ids:
            _LOGGER.warning("No drawable geometry in %s", collection.source)
            return
        kept_styles = [styles[feature_id] for feature_id in kept_ids]
        if polygons:
            series.plot(
                ax=ax,
                color=[style.fill_color or "none" for style in kept_styles],
                alpha=kept_styles[0].fill_opacity,
                edgecolor="none",
                zorder=1,
            )
            series.boundary.plot(
                ax=ax,
                color=[style.stroke_color for style in kept_styles],
                linewidth=[style.stroke_width for style in kept_styles],
                zorder=2,
            )
        else:
            series.plot(
                ax=ax,
                color=[style.stroke_color for style in kept_styles],
                linewidth=[style.stroke_width for style in kept_styles],
                zorder=2,
            )

    def _geoseries(self, collection: FeatureCollection) -> tuple[Any, list[str]]:
        gpd = _require_geopandas()
        shape = _require_shapely_shape()
        geometries: list[Any] = []
        kept_ids: list[str] = []
        for feature in collection.features:
            if feature.geometry is None:
                continue
            geometries.append(shape(feature.geometry))
            kept_ids.append(feature.feature_id)
        series = gpd.GeoSeries(geometries, crs="EPSG:4326")
        if self._web_mercator:
            series = series.to_crs(epsg=3857)
        return series, kept_ids

    def _finish_map_axes(self, ax: Any) -> None:
        if not self._web_mercator:
            return
        x0, x1, y0, y1 = self._view_extent()
        ax.set_xlim(x0, x1)
        ax.set_ylim(y0, y1)
        self._draw_basemap(ax)

    def _view_extent(self) -> tuple[float, float, float, float]:
        """Web Mercator window around the configured center at the configured zoom."""
        map_cfg = self.cfg.map
        transformer = _require_pyproj_transformer()
        cx, cy = transformer.transform(map_cfg.center_lon, map_cfg.center_lat)
        resolution = _WEB_MERCATOR_RES_Z0 / (2**map_cfg.zoom)
        half_w = map_cfg.image.width_px * resolution / 2.0
        half_h = map_cfg.image.height_px * resolution / 2.0
        return (cx - half_w, cx + half_w, cy - half_h, cy + half_h)

    def _draw_basemap(self, ax: Any) -> None:
        if self._basemap_source is None or self._basemap_failure is not None:
            return
        contextily = _require_contextily()
        x0, x1 = ax.get_xlim()
        y0, y1 = ax.get_ylim()
        try:
            image, extent = contextily.bounds2img(
                x0,
                y0,
                x1,
                y1,
                zoom=self.cfg.map.zoom,
                source=self._basemap_source,
                ll=False,
                use_cache=True,
                max_retries=1,
            )
            ax.imshow(image, extent=extent, interpolation="bilinear", zorder=-8)
            ax.set_xlim(x0, x1)
            ax.set_ylim(y0, y1)
            ax.text(
                0.995,
                0.005,
                _OSM_ATTRIBUTION,
                transform=ax.transAxes,
                ha="right",
                va="bottom",
                fontsize=6,
                color="#444444",
            )
        except Exception as exc:
            self._basemap_failure = (
                "Basemap loading failed once and was disabled for remaining renders: "
                f"{exc}"
            )
            _LOGGER.warning(self._basemap_failure)

    def _draw_legend(self, ax: Any, encoded: EncodedDatasets) -> None:
        from matplotlib.patches import Patch

        handles = [
            Patch(facecolor=bucket.color, edgecolor="none", label=bucket.label)
            for bucket in encoded.legend
        ]
        ax.legend(
            handles=handles,
            title=self.cfg.legend.title,
            loc="lower right",
            fontsize=8,
            title_fontsize=8,
            framealpha=0.9,
        )

    def _save(self, fig: Any, output_path: Path) -> Path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=self.cfg.map.image.dpi, format="png")
        return output_path


def run_render(
    encoded: EncodedDatasets,
    cfg: AppConfig,
    *,
    output_dir: Path,
) -> RenderReport:
    """Render all three figures; one failing figure does not stop the others."""
    report = RenderReport()
    renderer = MapRenderer(cfg)
    jobs = (
        ("choropleth", renderer.render_choropleth, output_dir / "choropleth.png"),
        ("network", renderer.render_network, output_dir / "network.png"),
        ("bar_chart", renderer.render_bar_chart, output_dir / "bar_chart.png"),
    )
    for name, render_fn, path in jobs:
        t0 = time.perf_counter()
        try:
            report.outputs[name] = render_fn(encoded, path)
        except Exception as exc:
            _LOGGER.exception("[render] %s failed", name)
            report.add_error(f"Rendering {name} failed: {exc}")
            continue
        _LOGGER.info("[render] built %s in %.2fs", name, time.perf_counter() - t0)
        report.add_info(f"Rendered {name} to {path}")
    if renderer.basemap_warning is not None:
        report.add_warning(renderer.basemap_warning)
    return report


def _resolve_basemap_source(mode: str) -> Any | None:
    if mode.casefold() == "none":
        return None
    providers = _require_xyzservices_providers()
    return providers.OpenStreetMap.Mapnik


def _require_pyplot() -> Any:
    try:
        import matplotlib

        matplotlib.use("Agg", force=False)
        import matplotlib.pyplot as plt
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for rendering") from exc
    return plt


@lru_cache(maxsize=1)
def _require_geopandas() -> Any:
    try:
        import geopandas as gpd
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("geopandas is required for map rendering") from exc
    return gpd


@lru_cache(maxsize=1)
def _require_shapely_shape() -> Any:
    try:
        from shapely.geometry import shape
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("shapely is required to build geometries for rendering") from exc
    return shape


@lru_cache(maxsize=1)
def _require_contextily() -> Any:
    try:
        import contextily as ctx
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("contextily is required for basemap rendering") from exc
    return ctx


@lru_cache(maxsize=1)
def _require_xyzservices_providers() -> Any:
    try:
        from xyzservices import providers
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("xyzservices is required for basemap source definitions") from exc
    return providers


@lru_cache(maxsize=1)
def _require_pyproj_transformer() -> Any:
    try:
        from pyproj import Transformer
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("pyproj is required for Web Mercator projection") from exc
    return Transformer.from_crs("EPSG:4326", "EPSG:3857", always_xy=True)

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from trafficviz.config import AppConfig
from trafficviz.models import KIND_REGION, KIND_SEGMENT, FeatureCollection, GeographicFeature

SQUARE = {
    "type": "Polygon",
    "coordinates": [[[8.0, 46.0], [8.5, 46.0], [8.5, 46.5], [8.0, 46.5], [8.0, 46.0]]],
}
LINE = {"type": "LineString", "coordinates": [[8.0, 46.0], [8.5, 46.5]]}


def region(name: str, traffic: float | None, population: float | None) -> GeographicFeature:
    return GeographicFeature(
        feature_id=name,
        kind=KIND_REGION,
        name=name,
        geometry=SQUARE,
        population=population,
        average_daily_traffic=traffic,
    )


def segment(feature_id: str, traffic: float | None) -> GeographicFeature:
    return GeographicFeature(
        feature_id=feature_id,
        kind=KIND_SEGMENT,
        name=None,
        geometry=LINE,
        average_daily_traffic=traffic,
    )


def region_document(rows: list[tuple[str, Any, Any]]) -> dict[str, Any]:
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"name": name, "population": pop, "avg_daily_trafic": traffic},
                "geometry": SQUARE,
            }
            for name, traffic, pop in rows
        ],
    }


def network_document(loads: list[Any]) -> dict[str, Any]:
    return {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "properties": {"avg_daily_trafic": load}, "geometry": LINE}
            for load in loads
        ],
    }


@pytest.fixture
def scenario_regions() -> FeatureCollection:
    return FeatureCollection(
        source="memory://regions",
        kind=KIND_REGION,
        features=(region("A", 100, 1000), region("B", 300, 1000), region("C", 0, 500)),
    )


@pytest.fixture
def scenario_network() -> FeatureCollection:
    return FeatureCollection(
        source="memory://network",
        kind=KIND_SEGMENT,
        features=(segment("s0", 10.0), segment("s1", 160_000.0), segment("s2", 2_500.0)),
    )


@pytest.fixture
def write_config(tmp_path: Path):
    """Write datasets plus a config.yaml into tmp_path and return its path."""

    def _write(
        regions: dict[str, Any] | None = None,
        network: dict[str, Any] | None = None,
        extra: str = "",
    ) -> Path:
        data_dir = tmp_path / "data"
        data_dir.mkdir(exist_ok=True)
        if regions is not None:
            (data_dir / "regions.geojson").write_text(json.dumps(regions), encoding="utf-8")
        if network is not None:
            (data_dir / "network.geojson").write_text(json.dumps(network), encoding="utf-8")
        cfg_path = tmp_path / "config.yaml"
        cfg_path.write_text(
            "paths:\n"
            "  regions: data/regions.geojson\n"
            "  network: data/network.geojson\n"
            "  output_dir: out\n"
            "map:\n"
            "  basemap: none\n" + extra,
            encoding="utf-8",
        )
        return cfg_path

    return _write


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    return AppConfig.from_mapping(
        {"paths": {"output_dir": "out"}, "map": {"basemap": "none"}},
        tmp_path / "config.yaml",
    )

from __future__ import annotations

from pathlib import Path

import pytest

from trafficviz.config import AppConfig, is_remote_source, load_config


def _cfg(raw: dict, tmp_path: Path) -> AppConfig:
    return AppConfig.from_mapping(raw, tmp_path / "config.yaml")


def test_defaults_fill_every_section(tmp_path):
    cfg = _cfg({}, tmp_path)
    assert cfg.metrics.per_capita_factor == 10_000.0
    assert cfg.ranking.top_n == 10
    assert cfg.legend.bucket_count == 5
    assert cfg.network.width_range == (1.0, 8.0)
    assert cfg.network.anchor_zero is False
    assert cfg.map.basemap == "osm"
    assert (cfg.map.center_lat, cfg.map.center_lon, cfg.map.zoom) == (46.8, 8.3, 8)
    assert cfg.chart.transition.duration_ms == 1000
    assert cfg.fields.traffic == ("avg_daily_trafic", "averageDailyTraffic")


def test_relative_paths_resolve_against_config_dir(tmp_path):
    cfg = _cfg({"paths": {"regions": "in/r.geojson", "output_dir": "out"}}, tmp_path)
    assert cfg.paths.regions == str(tmp_path.resolve() / "in" / "r.geojson")
    assert cfg.paths.output_dir == tmp_path.resolve() / "out"
    assert cfg.paths.logs_dir == tmp_path.resolve() / "out" / "logs"


def test_urls_pass_through_untouched(tmp_path):
    url = "https://example.org/network.geojson"
    cfg = _cfg({"paths": {"network": url}}, tmp_path)
    assert cfg.paths.network == url
    assert is_remote_source(cfg.paths.network)
    assert not is_remote_source(cfg.paths.regions)


def test_single_string_field_becomes_tuple(tmp_path):
    cfg = _cfg({"fields": {"name": "NAME"}}, tmp_path)
    assert cfg.fields.name == ("NAME",)


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        ({"ranking": {"top_n": "ten"}}, "ranking.top_n"),
        ({"ranking": {"top_n": 0}}, "ranking.top_n"),
        ({"metrics": {"per_capita_factor": True}}, "metrics.per_capita_factor"),
        ({"map": {"basemap": "satellite"}}, "map.basemap"),
        ({"map": {"center": [46.8]}}, "map.center"),
        ({"network": {"width_range": [8, 1]}}, "network.width_range"),
        ({"network": {"anchor_zero": "yes"}}, "network.anchor_zero"),
        ({"chart": {"margin": {"left": 600}}}, "chart margins"),
        ({"chart": {"band_padding": 1.0}}, "chart.band_padding"),
        ({"paths": []}, "paths"),
    ],
)
def test_invalid_values_name_the_field(tmp_path, raw, message):
    with pytest.raises(ValueError, match=message):
        _cfg(raw, tmp_path)


def test_load_config_reads_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("ranking:\n  top_n: 3\nlegend:\n  bucket_count: 4\n", encoding="utf-8")
    cfg = load_config(path)
    assert cfg.ranking.top_n == 3
    assert cfg.legend.bucket_count == 4
    assert cfg.source_path == path.resolve()


def test_load_config_accepts_empty_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config(path).ranking.top_n == 10


def test_load_config_rejects_non_mapping(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError, match="mapping"):
        load_config(path)


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")

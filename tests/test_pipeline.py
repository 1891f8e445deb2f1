from __future__ import annotations

import json

import pytest

from conftest import network_document, region_document
from trafficviz.config import load_config
from trafficviz.pipeline import (
    encode_datasets,
    encodings_payload,
    format_summary_lines,
    run_pipeline,
    summarize_loads,
)

SCENARIO_REGIONS = [("A", 100, 1000), ("B", 300, 1000), ("C", 0, 500)]
SCENARIO_LOADS = [10, 160_000, 2_500]


@pytest.fixture
def scenario_config(write_config):
    return load_config(
        write_config(region_document(SCENARIO_REGIONS), network_document(SCENARIO_LOADS))
    )


def test_encode_scenario(app_config, scenario_regions, scenario_network):
    encoded = encode_datasets(scenario_regions, scenario_network, app_config)
    assert encoded.context.region_color.domain == (0.0, 3000.0)
    assert [entry.name for entry in encoded.ranking] == ["B", "A", "C"]
    assert [entry.metric for entry in encoded.ranking] == [3000.0, 1000.0, 0.0]
    assert encoded.legend[0].lower == 0.0
    assert encoded.legend[-1].upper is None
    assert len(encoded.legend) == app_config.legend.bucket_count
    assert set(encoded.region_styles) == {"A", "B", "C"}
    assert set(encoded.segment_styles) == {"s0", "s1", "s2"}
    assert encoded.tooltips["B"] == "B\n3000 passengers / 10'000 inhabitants"


def test_chart_uses_inner_area(app_config, scenario_regions, scenario_network):
    chart = encode_datasets(scenario_regions, scenario_network, app_config).chart
    assert (chart.width, chart.height) == (440.0, 350.0)
    assert [bar.target_width for bar in chart.bars] == pytest.approx([440.0, 440.0 / 3, 0.0])


def test_ranking_is_capped_by_top_n(write_config):
    rows = [(f"R{i}", i * 10, 100) for i in range(15)]
    cfg = load_config(write_config(region_document(rows), network_document([1])))
    report = run_pipeline(cfg, render=False)
    assert len(report.encoded.ranking) == 10
    assert report.encoded.ranking[0].name == "R14"
    # R0 falls outside the top 10 but still sets the low end of the scale
    lo, hi = report.encoded.context.region_color.domain
    assert lo == 0.0
    assert hi == pytest.approx(14_000.0)


def test_payload_carries_every_encoding(app_config, scenario_regions, scenario_network):
    encoded = encode_datasets(scenario_regions, scenario_network, app_config)
    payload = encodings_payload(encoded, app_config)
    assert payload["choropleth"]["domain"] == [0.0, 3000.0]
    assert payload["network"]["domain"] == [10.0, 160_000.0]
    assert len(payload["choropleth"]["legend"]["buckets"]) == 5
    assert payload["bar_chart"]["transition"] == {"duration_ms": 1000, "easing": "cubic-out"}
    assert payload["map"] == {"center": [46.8, 8.3], "zoom": 8}
    json.dumps(payload)


def test_run_pipeline_writes_encodings(scenario_config):
    report = run_pipeline(scenario_config, render=False)
    assert report.ok
    path = report.artifacts["encodings"]
    assert path == scenario_config.paths.output_dir / "encodings.json"
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert [row["feature_id"] for row in payload["bar_chart"]["ranking"]] == [
        "region:B",
        "region:A",
        "region:C",
    ]


def test_invalid_regions_produce_warnings(write_config):
    rows = [("A", 100, 1000), ("Z", 50, 0)]
    cfg = load_config(write_config(region_document(rows), network_document([1, None])))
    report = run_pipeline(cfg, render=False)
    assert report.ok
    assert any("regions have no valid" in msg for msg in report.warnings)
    assert any("segments have no valid" in msg for msg in report.warnings)
    assert [entry.name for entry in report.encoded.ranking] == ["A"]
    assert report.encoded.region_styles["Z"].fill_color == cfg.choropleth.no_data_color


def test_load_failure_stops_everything(write_config):
    cfg = load_config(write_config(region_document(SCENARIO_REGIONS), network=None))
    report = run_pipeline(cfg, render=False)
    assert not report.ok
    assert report.encoded is None
    assert report.artifacts == {}
    assert not (cfg.paths.output_dir / "encodings.json").exists()


def test_summary_answers_busiest_region(app_config, scenario_regions, scenario_network):
    summary = summarize_loads(scenario_regions, scenario_network, app_config)
    assert summary.busiest_region.name == "B"
    assert summary.busiest_region.metric == 300.0
    assert [entry.name for entry in summary.top_per_capita] == ["B", "A", "C"]
    assert summary.invalid_regions == {}
    lines = format_summary_lines(summary)
    assert lines[0] == "Busiest region by absolute load: B (300)"


def test_render_writes_three_figures(scenario_config):
    pytest.importorskip("geopandas")
    report = run_pipeline(scenario_config, render=True)
    assert report.ok, report.errors
    for name in ("choropleth", "network", "bar_chart"):
        assert report.artifacts[name].exists()

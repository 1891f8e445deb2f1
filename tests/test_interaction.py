from __future__ import annotations

from dataclasses import replace

import pytest

from conftest import LINE, SQUARE, region, segment
from trafficviz.config import FieldsConfig, LoaderConfig
from trafficviz.interaction import InteractionController
from trafficviz.io_geo import GeoJsonRepository
from trafficviz.models import (
    HIGHLIGHT_ACTIVE,
    HIGHLIGHT_BASE,
    KIND_REGION,
    KIND_SEGMENT,
    DerivedMetric,
    FeatureCollection,
)
from trafficviz.pipeline import build_context
from trafficviz.scales import build_color_scale
from trafficviz.style import StyleResolver


@pytest.fixture
def controller(app_config, scenario_regions, scenario_network):
    context = build_context(scenario_regions, scenario_network, app_config)
    return InteractionController(
        StyleResolver.from_config(app_config), context, app_config.interaction
    )


def _fresh(controller, feature_id):
    return controller.resolver.resolve(controller.context.feature(feature_id), controller.context)


def test_enter_widens_stroke_and_keeps_colors(controller):
    base = _fresh(controller, "A")
    emphasized = controller.pointer_enter("A")
    assert controller.state("A") == HIGHLIGHT_ACTIVE
    assert emphasized.stroke_width == 3.0
    assert emphasized.fill_color == base.fill_color
    assert emphasized.stroke_color == base.stroke_color


def test_leave_restores_fresh_style(controller):
    controller.pointer_enter("A")
    restored = controller.pointer_leave("A")
    assert controller.state("A") == HIGHLIGHT_BASE
    assert restored == _fresh(controller, "A")


def test_leave_reflects_data_changed_while_hovered(controller):
    controller.pointer_enter("A")
    feature = controller.context.feature("A")
    controller.context.replace_feature(replace(feature, average_daily_traffic=300.0))
    restored = controller.pointer_leave("A")
    assert restored.fill_color == controller.context.region_color(3000.0)


def test_leave_reflects_scale_changed_while_hovered(controller):
    controller.pointer_enter("A")
    controller.context.region_color = build_color_scale(
        [DerivedMetric.of(0.0), DerivedMetric.of(1000.0)], "Reds"
    )
    restored = controller.pointer_leave("A")
    assert restored.fill_color == controller.context.region_color(1000.0)


def test_states_are_independent_per_feature(controller):
    controller.pointer_enter("A")
    controller.pointer_enter("B")
    controller.pointer_leave("A")
    assert controller.state("A") == HIGHLIGHT_BASE
    assert controller.state("B") == HIGHLIGHT_ACTIVE
    assert controller.current_style("B").stroke_width == 3.0
    assert controller.current_style("A").stroke_width == 1.0


def test_segment_emphasis_scales_width(controller):
    base = controller.current_style("s1")
    assert controller.pointer_enter("s1").stroke_width == pytest.approx(base.stroke_width * 1.5)


def test_unknown_feature_raises(controller):
    with pytest.raises(KeyError):
        controller.pointer_enter("missing")


def _numbered(kind, rows):
    features = []
    for feature_id, properties, geometry in rows:
        features.append(
            {"type": "Feature", "id": feature_id, "properties": properties, "geometry": geometry}
        )
    repo = GeoJsonRepository(LoaderConfig.from_mapping({}), FieldsConfig.from_mapping({}))
    return repo.parse_collection(
        {"type": "FeatureCollection", "features": features}, source="mem", kind=kind
    )


def test_region_and_segment_with_same_raw_id_stay_apart(app_config):
    regions = _numbered(
        KIND_REGION,
        [(1, {"name": "Bern", "population": 1000, "avg_daily_trafic": 100}, SQUARE)],
    )
    network = _numbered(KIND_SEGMENT, [(1, {"avg_daily_trafic": 5000}, LINE)])
    context = build_context(regions, network, app_config)
    controller = InteractionController(
        StyleResolver.from_config(app_config), context, app_config.interaction
    )

    assert context.feature("region:1").kind == KIND_REGION
    assert context.feature("segment:1").kind == KIND_SEGMENT

    emphasized = controller.pointer_enter("region:1")
    assert emphasized.fill_color is not None
    assert controller.state("region:1") == HIGHLIGHT_ACTIVE
    assert controller.state("segment:1") == HIGHLIGHT_BASE

    restored = controller.pointer_leave("region:1")
    assert restored == _fresh(controller, "region:1")
    assert restored.fill_color == context.region_color(1000.0)


def test_build_context_rejects_shared_ids(app_config):
    regions = FeatureCollection(source="r", kind=KIND_REGION, features=(region("x", 1, 10),))
    network = FeatureCollection(source="n", kind=KIND_SEGMENT, features=(segment("x", 1.0),))
    with pytest.raises(ValueError, match="share ids"):
        build_context(regions, network, app_config)

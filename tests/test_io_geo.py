from __future__ import annotations

from typing import Any

import pytest
import requests

from conftest import network_document, region_document
from trafficviz.config import FieldsConfig, LoaderConfig, load_config
from trafficviz.io_geo import GeoJsonRepository, LoadFailure, load_datasets
from trafficviz.models import KIND_REGION, KIND_SEGMENT


class FakeResponse:
    def __init__(self, payload: Any, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self) -> Any:
        return self._payload


class FakeSession:
    def __init__(self, responses: dict[str, FakeResponse]) -> None:
        self.headers: dict[str, str] = {}
        self.responses = responses
        self.calls: list[tuple[str, float]] = []

    def get(self, url: str, timeout: float) -> FakeResponse:
        self.calls.append((url, timeout))
        return self.responses[url]


def _repository(session: Any = None) -> GeoJsonRepository:
    return GeoJsonRepository(
        LoaderConfig.from_mapping({}), FieldsConfig.from_mapping({}), session=session
    )


def test_parse_regions_reads_configured_properties():
    document = region_document([("Bern", 1200, 1_000_000), ("Uri", None, 36_000)])
    collection = _repository().parse_collection(document, source="mem", kind=KIND_REGION)
    bern, uri = collection.features
    assert bern.feature_id == "region:Bern"
    assert bern.label == "Bern"
    assert bern.population == 1_000_000.0
    assert bern.average_daily_traffic == 1200.0
    assert uri.average_daily_traffic is None
    assert len(collection) == 2


def test_segments_without_id_get_positional_ids():
    collection = _repository().parse_collection(
        network_document([10, 20]), source="mem", kind=KIND_SEGMENT
    )
    assert [f.feature_id for f in collection.features] == ["segment:0", "segment:1"]
    assert collection.features[0].name is None


def test_non_numeric_properties_are_missing():
    document = region_document([("Bern", "lots", True)])
    feature = _repository().parse_collection(document, source="mem", kind=KIND_REGION).features[0]
    assert feature.average_daily_traffic is None
    assert feature.population is None


def test_alternate_traffic_key_is_probed():
    document = {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "properties": {"averageDailyTraffic": 42}, "geometry": None}
        ],
    }
    feature = _repository().parse_collection(document, source="mem", kind=KIND_SEGMENT).features[0]
    assert feature.average_daily_traffic == 42.0


@pytest.mark.parametrize(
    "document",
    [
        {"type": "Feature"},
        {"type": "FeatureCollection", "features": {}},
        {"type": "FeatureCollection", "features": [{"type": "Point"}]},
        [],
    ],
)
def test_malformed_documents_are_rejected(document):
    with pytest.raises(ValueError):
        _repository().parse_collection(document, source="mem", kind=KIND_REGION)


def test_duplicate_region_names_are_rejected():
    document = region_document([("Bern", 1, 1), ("Bern", 2, 2)])
    with pytest.raises(ValueError, match="Duplicate feature id"):
        _repository().parse_collection(document, source="mem", kind=KIND_REGION)


def test_load_collection_wraps_bad_json(tmp_path):
    path = tmp_path / "broken.geojson"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(LoadFailure) as excinfo:
        _repository().load_collection(str(path), KIND_REGION)
    assert excinfo.value.source == str(path)


def test_load_collection_wraps_missing_file(tmp_path):
    with pytest.raises(LoadFailure, match="not found"):
        _repository().load_collection(str(tmp_path / "missing.geojson"), KIND_SEGMENT)


def test_remote_sources_use_session_with_timeout():
    url = "https://example.org/network.geojson"
    session = FakeSession({url: FakeResponse(network_document([5]))})
    collection = _repository(session).load_collection(url, KIND_SEGMENT)
    assert len(collection) == 1
    assert session.calls == [(url, 30.0)]
    assert session.headers["User-Agent"] == "trafficviz/0.1"


def test_remote_http_error_is_a_load_failure():
    url = "https://example.org/regions.geojson"
    session = FakeSession({url: FakeResponse({}, status_code=503)})
    with pytest.raises(LoadFailure, match="503"):
        _repository(session).load_collection(url, KIND_REGION)


def test_load_datasets_returns_both_collections(write_config):
    cfg = load_config(
        write_config(region_document([("A", 1, 10)]), network_document([1, 2, 3]))
    )
    regions, network = load_datasets(cfg)
    assert regions.kind == KIND_REGION
    assert len(regions) == 1
    assert network.kind == KIND_SEGMENT
    assert len(network) == 3


def test_load_datasets_fails_when_regions_fail(write_config):
    cfg = load_config(write_config(regions=None, network=network_document([1])))
    with pytest.raises(LoadFailure) as excinfo:
        load_datasets(cfg)
    assert excinfo.value.source == cfg.paths.regions


def test_load_datasets_fails_when_network_fails(write_config):
    cfg = load_config(write_config(regions=region_document([("A", 1, 10)]), network=None))
    with pytest.raises(LoadFailure) as excinfo:
        load_datasets(cfg)
    assert excinfo.value.source == cfg.paths.network

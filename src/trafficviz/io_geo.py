"""GeoJSON dataset loading for the region and network collections."""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Mapping

import requests

from .config import AppConfig, FieldsConfig, LoaderConfig, is_remote_source
from .models import KIND_REGION, KIND_SEGMENT, FeatureCollection, GeographicFeature

_LOGGER = logging.getLogger("trafficviz.io_geo")


class LoadFailure(RuntimeError):
    """A dataset could not be fetched or parsed; the pipeline must stop."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"Failed loading '{source}': {reason}")
        self.source = source
        self.reason = reason


class GeoJsonRepository:
    """Fetches GeoJSON documents from disk or HTTP and parses them into features."""

    def __init__(
        self,
        loader: LoaderConfig,
        fields: FieldsConfig,
        *,
        session: requests.Session | None = None,
    ) -> None:
        self.loader = loader
        self.fields = fields
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": loader.user_agent})

    def fetch_document(self, source: str) -> Any:
        if is_remote_source(source):
            return self._fetch_remote(source)
        return self._read_local(Path(source))

    def load_collection(self, source: str, kind: str) -> FeatureCollection:
        try:
            document = self.fetch_document(source)
            collection = self.parse_collection(document, source=source, kind=kind)
        except LoadFailure:
            raise
        except (OSError, ValueError, requests.RequestException) as exc:
            raise LoadFailure(source, str(exc)) from exc
        _LOGGER.info("Loaded %d %s features from %s", len(collection), kind, source)
        return collection

    def parse_collection(self, document: Any, *, source: str, kind: str) -> FeatureCollection:
        if not isinstance(document, Mapping) or document.get("type") != "FeatureCollection":
            raise ValueError("Expected a GeoJSON FeatureCollection")
        raw_features = document.get("features")
        if not isinstance(raw_features, list):
            raise ValueError("Expected list for 'features'")

        features: list[GeographicFeature] = []
        for idx, raw in enumerate(raw_features):
            if not isinstance(raw, Mapping):
                raise ValueError(f"Expected mapping at feature index {idx}")
            features.append(
                GeographicFeature.from_geojson(
                    raw,
                    index=idx,
                    kind=kind,
                    name_keys=self.fields.name,
                    population_keys=self.fields.population,
                    traffic_keys=self.fields.traffic,
                )
            )
        seen: set[str] = set()
        for feature in features:
            if feature.feature_id in seen:
                raise ValueError(f"Duplicate feature id '{feature.feature_id}'")
            seen.add(feature.feature_id)
        return FeatureCollection(source=source, kind=kind, features=tuple(features))

    def _fetch_remote(self, url: str) -> Any:
        _LOGGER.debug("GET %s", url)
        response = self._session.get(url, timeout=self.loader.request_timeout_s)
        response.raise_for_status()
        return response.json()

    def _read_local(self, path: Path) -> Any:
        if not path.exists():
            raise FileNotFoundError(f"Dataset file not found: {path}")
        with path.open("r", encoding="utf-8") as fh:
            return json.load(fh)


def load_datasets(
    cfg: AppConfig,
    *,
    repository: GeoJsonRepository | None = None,
) -> tuple[FeatureCollection, FeatureCollection]:
    """Load regions and network concurrently; both must succeed.

    The executor is only left once both loads have finished. The first
    failure, in submission order, is raised as a single LoadFailure and no
    partial result is returned. There is no join timeout.
    """
    repo = repository or GeoJsonRepository(cfg.loader, cfg.fields)
    jobs: list[tuple[str, Callable[[], FeatureCollection]]] = [
        (cfg.paths.regions, lambda: repo.load_collection(cfg.paths.regions, KIND_REGION)),
        (cfg.paths.network, lambda: repo.load_collection(cfg.paths.network, KIND_SEGMENT)),
    ]
    results: list[FeatureCollection] = []
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="trafficviz-load") as executor:
        futures = [(source, executor.submit(job)) for source, job in jobs]
        for source, future in futures:
            exc = future.exception()
            if exc is None:
                results.append(future.result())
            elif isinstance(exc, LoadFailure):
                raise exc
            else:
                raise LoadFailure(source, str(exc)) from exc
    return results[0], results[1]

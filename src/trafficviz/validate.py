"""Validation layer for config and input datasets."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .config import AppConfig, is_remote_source
from .io_geo import GeoJsonRepository, LoadFailure
from .metrics import derive_all
from .models import KIND_REGION, KIND_SEGMENT, FeatureCollection
from .scales import ColorRamp


_MAX_LISTED_IDS = 8


@dataclass(slots=True)
class ValidationReport:
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


def _format_id_list(values: list[str], limit: int = _MAX_LISTED_IDS) -> str:
    if len(values) <= limit:
        return ", ".join(values)
    return f"{', '.join(values[:limit])}, ... (+{len(values) - limit} more)"


class Validator:
    """Checks config values and both datasets without rendering anything."""

    def __init__(self, cfg: AppConfig, *, repository: GeoJsonRepository | None = None) -> None:
        self.cfg = cfg
        self.repository = repository or GeoJsonRepository(cfg.loader, cfg.fields)

    def run(self) -> ValidationReport:
        report = ValidationReport()
        self._validate_colormaps(report)
        regions = self._validate_source(report, self.cfg.paths.regions, KIND_REGION)
        network = self._validate_source(report, self.cfg.paths.network, KIND_SEGMENT)
        if regions is not None:
            self._validate_metrics(report, regions, required=True)
        if network is not None:
            self._validate_metrics(report, network, required=False)
        return report

    def _validate_colormaps(self, report: ValidationReport) -> None:
        for field_name, name in (
            ("choropleth.colormap", self.cfg.choropleth.colormap),
            ("network.colormap", self.cfg.network.colormap),
        ):
            try:
                ColorRamp(name)
            except ValueError as exc:
                report.add_error(f"Invalid {field_name}: {exc}")

    def _validate_source(
        self, report: ValidationReport, source: str, kind: str
    ) -> FeatureCollection | None:
        if not is_remote_source(source) and not Path(source).exists():
            report.add_error(f"Missing {kind} dataset file: {source}")
            return None
        try:
            collection = self.repository.load_collection(source, kind)
        except LoadFailure as exc:
            report.add_error(str(exc))
            return None
        report.add_info(f"Loaded {len(collection)} {kind} features from {source}")
        return collection

    def _validate_metrics(
        self, report: ValidationReport, collection: FeatureCollection, *, required: bool
    ) -> None:
        if not collection.features:
            msg = f"{collection.kind} dataset is empty: {collection.source}"
            if required:
                report.add_error(msg)
            else:
                report.add_warning(msg)
            return

        metrics = derive_all(collection.features, self.cfg.metrics.per_capita_factor)
        invalid = sorted(feature_id for feature_id, metric in metrics.items() if not metric.valid)
        if len(invalid) == len(metrics):
            report.add_error(f"No {collection.kind} feature has a valid metric in {collection.source}")
        elif invalid:
            report.add_warning(
                f"{len(invalid)} {collection.kind} features excluded from scales: "
                + _format_id_list(invalid)
            )

        missing_geometry = sorted(f.feature_id for f in collection.features if f.geometry is None)
        if missing_geometry:
            report.add_warning(
                f"{len(missing_geometry)} {collection.kind} features have no geometry: "
                + _format_id_list(missing_geometry)
            )

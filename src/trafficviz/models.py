"""Domain models shared across pipeline modules."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence


KIND_REGION = "region"
KIND_SEGMENT = "segment"

HIGHLIGHT_BASE = "base"
HIGHLIGHT_ACTIVE = "highlighted"


def _optional_number(value: Any) -> float | None:
    # bool is an int subclass; a flag is never a count.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    number = float(value)
    return number if math.isfinite(number) else None


def _first_present(properties: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        if key in properties and properties[key] is not None:
            return properties[key]
    return None


@dataclass(frozen=True, slots=True)
class GeographicFeature:
    """One loaded feature; geometry stays an opaque GeoJSON mapping."""

    feature_id: str
    kind: str
    name: str | None
    geometry: Mapping[str, Any] | None
    population: float | None = None
    average_daily_traffic: float | None = None

    @property
    def label(self) -> str:
        return self.name if self.name else self.feature_id

    @classmethod
    def from_geojson(
        cls,
        raw: Mapping[str, Any],
        *,
        index: int,
        kind: str,
        name_keys: Sequence[str],
        population_keys: Sequence[str],
        traffic_keys: Sequence[str],
    ) -> GeographicFeature:
        if raw.get("type") != "Feature":
            raise ValueError(f"Expected GeoJSON Feature at index {index}")
        properties = raw.get("properties") or {}
        if not isinstance(properties, Mapping):
            raise ValueError(f"Expected mapping for 'properties' at index {index}")
        geometry = raw.get("geometry")
        if geometry is not None and not isinstance(geometry, Mapping):
            raise ValueError(f"Expected mapping for 'geometry' at index {index}")

        name_raw = _first_present(properties, name_keys)
        name = str(name_raw).strip() if name_raw is not None and str(name_raw).strip() else None

        # ids are qualified by kind so regions and segments never share one
        raw_id = raw.get("id")
        if raw_id is not None and str(raw_id).strip():
            local_id = str(raw_id).strip()
        elif kind == KIND_REGION and name:
            local_id = name
        else:
            local_id = str(index)
        feature_id = f"{kind}:{local_id}"

        return cls(
            feature_id=feature_id,
            kind=kind,
            name=name,
            geometry=geometry,
            population=_optional_number(_first_present(properties, population_keys)),
            average_daily_traffic=_optional_number(_first_present(properties, traffic_keys)),
        )


@dataclass(frozen=True, slots=True)
class FeatureCollection:
    """Parsed feature collection with its source for audit output."""

    source: str
    kind: str
    features: tuple[GeographicFeature, ...]

    def __len__(self) -> int:
        return len(self.features)

    def by_id(self) -> dict[str, GeographicFeature]:
        return {feature.feature_id: feature for feature in self.features}


@dataclass(frozen=True, slots=True)
class DerivedMetric:
    """Tagged metric result: either a finite value or an invalid reason."""

    value: float | None
    invalid_reason: str | None = None

    @property
    def valid(self) -> bool:
        return self.value is not None

    @classmethod
    def of(cls, value: float) -> DerivedMetric:
        return cls(value=float(value))

    @classmethod
    def invalid(cls, reason: str) -> DerivedMetric:
        return cls(value=None, invalid_reason=reason)


@dataclass(frozen=True, slots=True)
class StyleDescriptor:
    """Transient render attributes for one feature."""

    stroke_color: str
    stroke_width: float
    fill_color: str | None = None
    fill_opacity: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "fill_color": self.fill_color,
            "fill_opacity": self.fill_opacity,
            "stroke_color": self.stroke_color,
            "stroke_width": self.stroke_width,
        }


@dataclass(frozen=True, slots=True)
class LegendBucket:
    """Half-open legend range; ``upper is None`` marks the open last bucket."""

    lower: float
    upper: float | None
    color: str

    @property
    def label(self) -> str:
        if self.upper is None:
            return f"{self.lower:.0f}+"
        return f"{self.lower:.0f}–{self.upper:.0f}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "lower": self.lower,
            "upper": self.upper,
            "color": self.color,
            "label": self.label,
        }


@dataclass(frozen=True, slots=True)
class RankEntry:
    feature_id: str
    name: str
    metric: float

    def to_dict(self) -> dict[str, Any]:
        return {"feature_id": self.feature_id, "name": self.name, "metric": self.metric}


@dataclass(frozen=True, slots=True)
class BuildManifest:
    """Build metadata used for deterministic audit trails."""

    generated_at_utc: str
    config_hash_sha256: str
    git_commit: str | None
    steps: Mapping[str, str]
    artifacts: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        *,
        config_hash_sha256: str,
        git_commit: str | None,
        steps: Mapping[str, str],
        artifacts: Mapping[str, str],
    ) -> BuildManifest:
        return cls(
            generated_at_utc=datetime.now(timezone.utc).isoformat(),
            config_hash_sha256=config_hash_sha256,
            git_commit=git_commit,
            steps=steps,
            artifacts=artifacts,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "generated_at_utc": self.generated_at_utc,
            "config_hash_sha256": self.config_hash_sha256,
            "git_commit": self.git_commit,
            "steps": dict(self.steps),
            "artifacts": dict(self.artifacts),
        }

"""Pydantic models for logged daily measurements.

A measurement is a tagged union keyed by ``type``; each tag has exactly one
value shape.  Old record shapes are normalized here, at decode time, so the
cycle engine never sees them:

- ``lh_surge`` values written as ``{"detected": true|false}`` become
  ``{"status": "positive"|"negative"}``.
- ``bbt`` values written as ``{"celsius": 36.5}`` become
  ``{"temperature": 36.5}``.

Dates are local calendar dates (``YYYY-MM-DD``) with no time or timezone.
"""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import Field, TypeAdapter, model_validator

from src.models.base import SpottifyBase


# ---------- Enums ----------

class MeasurementType(str, Enum):
    period = "period"
    bbt = "bbt"
    cramps = "cramps"
    sore_breasts = "sore_breasts"
    lh_surge = "lh_surge"


class PeriodOption(str, Enum):
    none = "none"
    spotting = "spotting"
    light = "light"
    medium = "medium"
    heavy = "heavy"


class SymptomSeverity(str, Enum):
    none = "none"
    mild = "mild"
    moderate = "moderate"
    severe = "severe"


class LhSurgeStatus(str, Enum):
    not_tested = "not_tested"
    negative = "negative"
    positive = "positive"


# Options that count as an actual flow day for segmentation and statistics
FLOW_OPTIONS: frozenset[PeriodOption] = frozenset(
    {PeriodOption.light, PeriodOption.medium, PeriodOption.heavy}
)


# ---------- Values ----------

class PeriodValue(SpottifyBase):
    option: PeriodOption


class BbtValue(SpottifyBase):
    temperature: float = Field(gt=25.0, lt=45.0)  # degrees Celsius

    @model_validator(mode="before")
    @classmethod
    def _legacy_celsius(cls, data: Any) -> Any:
        if isinstance(data, dict) and "temperature" not in data and "celsius" in data:
            data = {**data, "temperature": data["celsius"]}
            data.pop("celsius")
        return data


class SymptomValue(SpottifyBase):
    severity: SymptomSeverity


class LhSurgeValue(SpottifyBase):
    status: LhSurgeStatus

    @model_validator(mode="before")
    @classmethod
    def _legacy_detected(cls, data: Any) -> Any:
        if isinstance(data, dict) and "status" not in data and isinstance(
            data.get("detected"), bool
        ):
            status = LhSurgeStatus.positive if data["detected"] else LhSurgeStatus.negative
            data = {k: v for k, v in data.items() if k != "detected"}
            data["status"] = status
        return data


# ---------- Measurements ----------

class MeasurementBase(SpottifyBase):
    id: str | None = None
    date: dt.date
    created_at: dt.datetime | None = None


class PeriodMeasurement(MeasurementBase):
    type: Literal["period"] = "period"
    value: PeriodValue

    @property
    def is_flow(self) -> bool:
        return self.value.option in FLOW_OPTIONS


class BbtMeasurement(MeasurementBase):
    type: Literal["bbt"] = "bbt"
    value: BbtValue


class CrampsMeasurement(MeasurementBase):
    type: Literal["cramps"] = "cramps"
    value: SymptomValue


class SoreBreastsMeasurement(MeasurementBase):
    type: Literal["sore_breasts"] = "sore_breasts"
    value: SymptomValue


class LhSurgeMeasurement(MeasurementBase):
    type: Literal["lh_surge"] = "lh_surge"
    value: LhSurgeValue


Measurement = Annotated[
    Union[
        PeriodMeasurement,
        BbtMeasurement,
        CrampsMeasurement,
        SoreBreastsMeasurement,
        LhSurgeMeasurement,
    ],
    Field(discriminator="type"),
]

_measurement_adapter: TypeAdapter[Measurement] = TypeAdapter(Measurement)


def decode_measurement(raw: dict[str, Any]) -> Measurement:
    """Decode a stored or imported record into its concrete measurement model.

    Raises:
        pydantic.ValidationError: If the type tag is unknown or the value
            does not match the shape for its type.
    """
    return _measurement_adapter.validate_python(raw)


def encode_measurement(measurement: MeasurementBase) -> dict[str, Any]:
    """Serialize a measurement to the JSON-ready export shape."""
    return measurement.model_dump(
        mode="json", include={"id", "type", "date", "value"}
    )


def is_flow_day(measurement: MeasurementBase) -> bool:
    """True for period measurements that count as a flow day (not none/spotting)."""
    return isinstance(measurement, PeriodMeasurement) and measurement.is_flow


def is_none_value(measurement: MeasurementBase) -> bool:
    """True when the value represents "nothing logged" for its type."""
    if isinstance(measurement, PeriodMeasurement):
        return measurement.value.option == PeriodOption.none
    if isinstance(measurement, (CrampsMeasurement, SoreBreastsMeasurement)):
        return measurement.value.severity == SymptomSeverity.none
    return False


def creation_order(measurement: MeasurementBase) -> tuple[bool, float, str]:
    """Sort key putting the earliest-created record of a group first.

    Records without a creation timestamp sort after timestamped ones; the id
    breaks remaining ties.
    """
    created = measurement.created_at
    return (
        created is None,
        created.timestamp() if created is not None else 0.0,
        measurement.id or "",
    )

"""Data contracts for revealmetrics-export.

Samples are small immutable dataclasses built once at the collection
boundary. Provisioning documents are pydantic models so the bundled
configuration is decoded and validated in one step.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .exceptions import SerializationError

logger = logging.getLogger(__name__)

_INT32_MIN, _INT32_MAX = -(2**31), 2**31 - 1
_INT64_MIN, _INT64_MAX = -(2**63), 2**63 - 1


class Destination(str, Enum):
    """Remote metric-group bucket a routed sample is delivered to."""

    JVM = "jvm"
    TOMCAT = "tomcat"
    APPLICATION = "application"


class NumericKind(str, Enum):
    """Wire kinds accepted by the ingestion API."""

    INT32 = "int32"
    INT64 = "int64"
    FLOAT32 = "float32"
    FLOAT64 = "float64"


@dataclass(frozen=True, slots=True)
class NumericValue:
    """A sample value tagged with its numeric kind."""

    kind: NumericKind
    value: Union[int, float]

    @classmethod
    def of(cls, raw: Any) -> "NumericValue":
        """Classify a raw collector value.

        Raises:
            SerializationError: when ``raw`` is not an int that fits in 64
                bits or a float. Booleans are rejected even though they are
                ``int`` subclasses. NaN and infinities have no JSON form
                and are rejected too.
        """
        if isinstance(raw, NumericValue):
            return raw
        if isinstance(raw, bool):
            raise SerializationError("boolean sample values are not supported")
        if isinstance(raw, int):
            if _INT32_MIN <= raw <= _INT32_MAX:
                return cls(NumericKind.INT32, raw)
            if _INT64_MIN <= raw <= _INT64_MAX:
                return cls(NumericKind.INT64, raw)
            raise SerializationError(f"integer sample value {raw} exceeds 64 bits")
        if isinstance(raw, float):
            if not math.isfinite(raw):
                raise SerializationError(f"non-finite sample value {raw}")
            return cls(NumericKind.FLOAT64, raw)
        raise SerializationError(f"unsupported sample value type {type(raw).__name__}")


@dataclass(frozen=True, slots=True)
class Sample:
    """One timestamped measurement.

    ``identity`` is the destination-qualified identifier the ingestion API
    files the value under. It is empty until the router assigns one.
    ``value`` is None when the collector produced a non-numeric value; such
    samples are still routed but contribute no field on the wire.
    """

    name: str
    value: Optional[NumericValue]
    epoch_millis: int
    identity: str = ""

    @classmethod
    def create(
        cls,
        name: str,
        value: Any,
        epoch_millis: int,
        *,
        identity: str = "",
    ) -> "Sample":
        """Build a sample, tagging ``value`` with its numeric kind."""
        try:
            numeric: Optional[NumericValue] = NumericValue.of(value)
        except SerializationError as exc:
            logger.debug("Sample %s carries no numeric value: %s", name, exc)
            numeric = None
        return cls(name=name, value=numeric, epoch_millis=int(epoch_millis), identity=identity)

    @property
    def epoch_seconds(self) -> int:
        return self.epoch_millis // 1000

    def rewritten(self, *, name: str, identity: str) -> "Sample":
        """Return a copy carrying a routed name and identity."""
        return replace(self, name=name, identity=identity)


class DefinitionDocument(BaseModel):
    """Declared metric-group or dashboard document, keyed by ``name``.

    Everything except ``name`` is opaque and passed through to the remote
    API unchanged. ``id`` is only set on copies produced after
    reconciliation.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    name: str = Field(..., min_length=1)
    id: Optional[Union[int, str]] = Field(default=None)

    def payload(self) -> dict[str, Any]:
        """Return the JSON body sent on create or update."""
        exclude = {"id"} if self.id is None else None
        return self.model_dump(mode="json", exclude=exclude)


class ProvisioningSection(BaseModel):
    """The ``config`` object: metric groups first, then dashboards."""

    model_config = ConfigDict(extra="forbid")

    metric_groups: List[DefinitionDocument]
    dashboards: List[DefinitionDocument]

    @model_validator(mode="before")
    @classmethod
    def _enforce_key_order(cls, value: Any) -> Any:
        if isinstance(value, dict):
            keys = list(value.keys())
            if keys != ["metric_groups", "dashboards"]:
                raise ValueError(
                    f"config must contain metric_groups then dashboards, got {keys}"
                )
        return value


class ProvisioningDocument(BaseModel):
    """Root of the declarative provisioning resource."""

    model_config = ConfigDict(extra="forbid")

    config: ProvisioningSection

    @classmethod
    def empty(cls) -> "ProvisioningDocument":
        return cls(config=ProvisioningSection(metric_groups=[], dashboards=[]))

    @property
    def metric_groups(self) -> List[DefinitionDocument]:
        return self.config.metric_groups

    @property
    def dashboards(self) -> List[DefinitionDocument]:
        return self.config.dashboards


__all__ = [
    "DefinitionDocument",
    "Destination",
    "NumericKind",
    "NumericValue",
    "ProvisioningDocument",
    "ProvisioningSection",
    "Sample",
]

"""Error hierarchy for revealmetrics-export.

All exceptions inherit from RevealMetricsError so callers can catch the
base class for broad error handling. Only ConfigurationError is expected
to reach the host process; the others are caught at the export-cycle
boundaries, counted and logged.
"""

from __future__ import annotations


class RevealMetricsError(Exception):
    """Base exception for all revealmetrics-export errors."""


class ConfigurationError(RevealMetricsError):
    """Invalid exporter settings (missing API key, bad URL)."""


class ConfigError(RevealMetricsError):
    """Provisioning document is missing or structurally invalid.

    Non-fatal: provisioning proceeds with an empty definition set.
    """


class ProvisioningError(RevealMetricsError):
    """Remote index fetch or create/update of a definition failed."""


class RoutingMiss(RevealMetricsError):
    """Metric name matches no routing rule or lacks expected segments."""


class DeliveryError(RevealMetricsError):
    """Sample group could not be delivered to the ingestion endpoint."""


class SerializationError(RevealMetricsError):
    """Sample value is not a supported numeric kind."""


__all__ = [
    "ConfigError",
    "ConfigurationError",
    "DeliveryError",
    "ProvisioningError",
    "RevealMetricsError",
    "RoutingMiss",
    "SerializationError",
]

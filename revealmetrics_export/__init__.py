"""revealmetrics-export: forward collected metric samples to revealmetrics.

Routes dotted metric names into metric groups, batches them per
epoch-second and posts them to the ingestion API, after provisioning the
declared metric groups and dashboards.

Usage::

    from revealmetrics_export import ExporterConfig, RevealMetricsWriter, Sample

    writer = RevealMetricsWriter(config=ExporterConfig(api_key="..."))
    writer.start()
    writer.write([Sample.create("jvm.thread.ThreadCount", 42, 1_700_000_000_000)])
    writer.stop()
"""

from .batcher import batch_by_second
from .config import ExporterConfig, get_exporter_config
from .counters import ExceptionCounter
from .delivery import DeliveryClient, serialize_group
from .exceptions import (
    ConfigError,
    ConfigurationError,
    DeliveryError,
    ProvisioningError,
    RevealMetricsError,
    RoutingMiss,
    SerializationError,
)
from .provisioning import ObjectKind, ProvisioningContext, ProvisioningManager
from .router import NameRouter, RoutedSample, route
from .schema import (
    DefinitionDocument,
    Destination,
    NumericKind,
    NumericValue,
    ProvisioningDocument,
    Sample,
)
from .writer import OutputWriter, RevealMetricsWriter

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "ConfigurationError",
    "DefinitionDocument",
    "DeliveryClient",
    "DeliveryError",
    "Destination",
    "ExceptionCounter",
    "ExporterConfig",
    "NameRouter",
    "NumericKind",
    "NumericValue",
    "ObjectKind",
    "OutputWriter",
    "ProvisioningContext",
    "ProvisioningDocument",
    "ProvisioningError",
    "ProvisioningManager",
    "RevealMetricsError",
    "RevealMetricsWriter",
    "RoutedSample",
    "RoutingMiss",
    "Sample",
    "SerializationError",
    "batch_by_second",
    "get_exporter_config",
    "route",
    "serialize_group",
]

"""RevealMetricsWriter, the primary public API of the exporter.

The writer is driven by a collection engine: ``start()`` once, then
``write(samples)`` once per export cycle, then ``stop()``.

Usage::

    writer = RevealMetricsWriter(config=ExporterConfig(api_key="..."))
    writer.start()
    writer.write([Sample.create("jvm.thread.ThreadCount", 42, now_ms)])
    writer.stop()
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Optional, Protocol, runtime_checkable

import httpx

from .batcher import batch_by_second
from .client import RevealApiClient
from .config import ExporterConfig, get_exporter_config
from .counters import ExceptionCounter
from .delivery import DeliveryClient
from .provisioning import ProvisioningContext, ProvisioningManager
from .router import NameRouter
from .schema import Destination, Sample

logger = logging.getLogger(__name__)


@runtime_checkable
class OutputWriter(Protocol):
    """Protocol the collection engine drives."""

    def start(self) -> bool:
        """Prepare the writer; returns False when nothing was started."""
        ...

    def write(self, samples: Iterable[Sample]) -> None:
        """Export one cycle of samples."""
        ...

    def stop(self) -> None:
        """Release resources held by this writer."""
        ...


class RevealMetricsWriter:
    """Route, batch and deliver samples to the revealmetrics API.

    Args:
        config: Exporter settings; defaults to bundled YAML plus environment.
        transport: Optional ``httpx`` transport override (tests).
        counter: Failure counter; a fresh one is created when omitted.
        context: Provisioning state; share one between writers of the same
            process to make ``start()`` idempotent across them.
    """

    def __init__(
        self,
        *,
        config: Optional[ExporterConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
        counter: Optional[ExceptionCounter] = None,
        context: Optional[ProvisioningContext] = None,
    ) -> None:
        self._config = config or get_exporter_config()
        self._transport = transport
        self._counter = counter if counter is not None else ExceptionCounter()
        self._context = context if context is not None else ProvisioningContext()
        self._router = NameRouter(self._config.application_prefixes)
        self._source: Optional[str] = None
        self._client: Optional[RevealApiClient] = None
        self._delivery: Optional[DeliveryClient] = None
        self._closed = False

    @classmethod
    def from_yaml(
        cls,
        yaml_path: str | Path,
        *,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> "RevealMetricsWriter":
        """Create a writer from a settings YAML file."""
        return cls(config=ExporterConfig.from_yaml(Path(yaml_path)), transport=transport)

    @property
    def config(self) -> ExporterConfig:
        return self._config

    @property
    def context(self) -> ProvisioningContext:
        return self._context

    @property
    def exception_count(self) -> int:
        return self._counter.value

    @property
    def started(self) -> bool:
        return self._delivery is not None

    @property
    def host_process_id(self) -> str:
        """``<source>.<pid>``: the identity prefix of every routed sample."""
        source = self._source if self._source is not None else self._config.resolved_source()
        return f"{source}.{os.getpid()}"

    def start(self) -> bool:
        """Validate settings and provision the remote account.

        Returns False without doing anything when the writer is disabled or
        when the same process identity has already been provisioned. An
        unexpected failure while provisioning is counted, the identity is
        released, and False is returned.

        Raises:
            ConfigurationError: when mandatory settings are missing.
        """
        if not self._config.enabled:
            logger.info("Writer disabled by configuration; not starting")
            return False

        self._config.validate()
        source = self._config.resolved_source()
        identity = f"{source}.{os.getpid()}"
        if not self._context.claim(identity):
            logger.info("Started twice with the same process identity %s; ignoring", identity)
            return False

        try:
            client = RevealApiClient(self._config, transport=self._transport)
            try:
                manager = ProvisioningManager(client, self._counter, self._context)
                manager.load_definitions(self._config.provisioning_path)
                manager.provision()
            except Exception:
                client.close()
                raise
        except Exception as exc:
            # A failed start leaves the identity unclaimed.
            self._context.release(identity)
            self._counter.increment()
            logger.warning("Cannot start writer on '%s': %s", identity, exc)
            return False

        self._source = source
        self._client = client
        self._delivery = DeliveryClient(client, self._counter)

        logger.info(
            "Started writer on '%s', connected to '%s', proxy %s, destinations %s",
            identity,
            self._client.base_url,
            self._client.proxy,
            {destination.value: object_id for destination, object_id in self._context.destinations.items()},
        )
        return True

    def write(self, samples: Iterable[Sample]) -> None:
        """Export one cycle of samples.

        Destinations without a provisioned metric group are skipped.
        Failures are counted and logged; nothing is raised.
        """
        if self._closed or not self._config.enabled:
            return
        if self._delivery is None:
            logger.warning("write() called before start(); dropping samples")
            return

        routed = self._router.route_all(list(samples), self.host_process_id)
        for destination in Destination:
            bucket = routed[destination]
            if not bucket:
                continue
            destination_id = self._context.destination_id(destination)
            if destination_id is None:
                logger.warning(
                    "No metric group resolved for destination %s; dropping %d samples",
                    destination.value,
                    len(bucket),
                )
                continue
            try:
                groups = batch_by_second(bucket)
                delivered = self._delivery.deliver_all(destination_id, groups)
            except Exception as exc:
                self._counter.increment()
                logger.warning("Export to destination %s failed: %s", destination.value, exc)
                continue
            logger.debug(
                "Delivered %d/%d groups to %s (%s)",
                delivered,
                len(groups),
                destination.value,
                destination_id,
            )

    def stop(self) -> None:
        """Close the HTTP connection pool. Safe to call more than once."""
        if self._closed:
            return
        if self._client is not None:
            self._client.close()
            logger.info("Stopped writer; %d failures counted", self._counter.value)
        self._closed = True

    def __enter__(self) -> "RevealMetricsWriter":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


__all__ = ["OutputWriter", "RevealMetricsWriter"]

"""Delivery of same-second sample groups to the ingestion endpoint."""

from __future__ import annotations

import logging
import math
from typing import Any, Sequence

import httpx

from .client import RevealApiClient
from .counters import ExceptionCounter
from .exceptions import DeliveryError
from .schema import Sample

logger = logging.getLogger(__name__)


def samples_path(destination_id: str) -> str:
    return f"/samples/{destination_id}.json"


def serialize_group(group: Sequence[Sample]) -> dict[str, Any]:
    """Build the ingestion payload for one epoch-second group.

    The identifier and timestamp come from the first sample. Values are
    written in arrival order, so a repeated name keeps its last value.
    Samples without a finite numeric value contribute no field.

    Raises:
        DeliveryError: when ``group`` is empty.
    """
    if not group:
        raise DeliveryError("cannot serialize an empty sample group")

    first = group[0]
    values: dict[str, Any] = {}
    for sample in group:
        if sample.value is None or not math.isfinite(sample.value.value):
            continue
        values[sample.name] = sample.value.value
    return {
        "identifier": first.identity,
        "timestamp": first.epoch_seconds,
        "values": values,
    }


class DeliveryClient:
    """POST serialized groups; failures are logged and counted, never raised."""

    def __init__(self, client: RevealApiClient, counter: ExceptionCounter) -> None:
        self._client = client
        self._counter = counter

    def deliver(self, destination_id: str, group: Sequence[Sample]) -> bool:
        """Send one group. Returns True only on HTTP 200."""
        path = samples_path(destination_id)
        try:
            payload = serialize_group(group)
        except DeliveryError as exc:
            self._counter.increment()
            logger.warning("Skipping delivery to %s: %s", self._client.url_for(path), exc)
            return False

        try:
            response = self._client.request("POST", path, payload=payload)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            self._counter.increment()
            logger.warning(
                "Failed to send samples to %s with proxy %s: %s",
                self._client.url_for(path),
                self._client.proxy,
                exc,
            )
            return False

        if response.status_code != 200:
            logger.warning(
                "Failure %s: %s sending samples to %s",
                response.status_code,
                response.reason_phrase,
                self._client.url_for(path),
            )
            return False
        return True

    def deliver_all(self, destination_id: str, groups: Sequence[Sequence[Sample]]) -> int:
        """Deliver groups in order; returns how many were accepted."""
        delivered = 0
        for group in groups:
            if self.deliver(destination_id, group):
                delivered += 1
        return delivered


__all__ = ["DeliveryClient", "samples_path", "serialize_group"]

"""Epoch-second batching of routed samples."""

from __future__ import annotations

from typing import Iterable, List

from .schema import Sample


def sort_by_time(samples: Iterable[Sample]) -> List[Sample]:
    """Stable sort by epoch millis; ties keep arrival order."""
    return sorted(samples, key=lambda sample: sample.epoch_millis)


def batch_by_second(samples: Iterable[Sample]) -> List[List[Sample]]:
    """Split samples into groups sharing one epoch-second.

    Groups come out in ascending time order. Each group is one delivery
    unit; the last group is emitted even when it holds a single sample.
    """
    ordered = sort_by_time(samples)
    if not ordered:
        return []

    groups: List[List[Sample]] = []
    current: List[Sample] = []
    current_second = ordered[0].epoch_seconds
    for sample in ordered:
        if sample.epoch_seconds != current_second:
            groups.append(current)
            current = []
            current_second = sample.epoch_seconds
        current.append(sample)
    groups.append(current)
    return groups


__all__ = ["batch_by_second", "sort_by_time"]

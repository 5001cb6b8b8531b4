"""Metric-name routing.

Maps a dotted collector name such as
``tomcat.thread-pool.http-nio-8080.currentThreadsBusy`` onto a destination
metric group and a rewritten sample: the name keeps only the metric-group
level segments and the qualifiers (connector, host, context, ...) move into
the sample identity.

The router is total. Names that match no rule, or that match a rule but
are too short for it, are dropped; nothing is raised to the caller.
"""

from __future__ import annotations

import logging
from typing import Callable, Mapping, NamedTuple, Optional, Sequence

from .config import DEFAULT_APPLICATION_PREFIXES
from .exceptions import RoutingMiss
from .schema import Destination, Sample

logger = logging.getLogger(__name__)

JVM_PREFIXES = frozenset({"jvm", "jmxtrans"})
ROOT_SERVLETS = frozenset({"default", "jsp"})
ROOT_SUFFIX = "ROOT"


class RoutedSample(NamedTuple):
    destination: Destination
    sample: Sample


def _segments(parts: Sequence[str], count: int) -> Sequence[str]:
    if len(parts) < count:
        raise RoutingMiss(f"expected at least {count} segments, got {len(parts)}")
    return parts


def _connector(parts: Sequence[str], hpid: str) -> tuple[str, str]:
    tomcat, kind, connector, metric = _segments(parts, 4)[:4]
    return f"{tomcat}.{kind}.{metric}", f"{hpid}.{connector}"


def _manager(parts: Sequence[str], hpid: str) -> tuple[str, str]:
    tomcat, kind, host, context, metric = _segments(parts, 5)[:5]
    return f"{tomcat}.{kind}.{metric}", f"{hpid}.{host}.{context}"


def _servlet(parts: Sequence[str], hpid: str) -> tuple[str, str]:
    tomcat, kind, webmodule, servlet, metric = _segments(parts, 5)[:5]
    if servlet in ROOT_SERVLETS:
        webmodule += ROOT_SUFFIX
    return f"{tomcat}.{kind}.{metric}", f"{hpid}.{webmodule}.{servlet}"


def _data_source(parts: Sequence[str], hpid: str) -> tuple[str, str]:
    tomcat, kind, host, context, dbname, metric = _segments(parts, 6)[:6]
    return f"{tomcat}.{kind}.{metric}", f"{hpid}.{host}.{context}.{dbname}"


_TOMCAT_RULES: Mapping[str, Callable[[Sequence[str], str], tuple[str, str]]] = {
    "thread-pool": _connector,
    "global-request-processor": _connector,
    "manager": _manager,
    "servlet": _servlet,
    "data-source": _data_source,
}


class NameRouter:
    """Classify samples into destinations.

    Args:
        application_prefixes: First name segments that mark business
            metrics delivered unchanged to the application group.
    """

    def __init__(self, application_prefixes: Sequence[str] = DEFAULT_APPLICATION_PREFIXES) -> None:
        self._application_prefixes = frozenset(application_prefixes)

    @property
    def application_prefixes(self) -> frozenset[str]:
        return self._application_prefixes

    def route(self, sample: Sample, host_process_id: str) -> Optional[RoutedSample]:
        """Return the destination and rewritten sample, or None when dropped."""
        if not sample.name:
            logger.warning("Dropping sample with empty name (epoch_millis=%s)", sample.epoch_millis)
            return None

        parts = sample.name.split(".")
        try:
            return self._classify(sample, parts, host_process_id)
        except RoutingMiss as exc:
            logger.debug("Dropping sample %s: %s", sample.name, exc)
            return None

    def route_all(
        self,
        samples: Sequence[Sample],
        host_process_id: str,
    ) -> dict[Destination, list[Sample]]:
        """Route a batch, keeping arrival order within each destination."""
        routed: dict[Destination, list[Sample]] = {destination: [] for destination in Destination}
        for sample in samples:
            result = self.route(sample, host_process_id)
            if result is not None:
                routed[result.destination].append(result.sample)
        return routed

    def _classify(
        self,
        sample: Sample,
        parts: Sequence[str],
        hpid: str,
    ) -> RoutedSample:
        head = parts[0]

        if head in JVM_PREFIXES:
            return RoutedSample(Destination.JVM, sample.rewritten(name=sample.name, identity=hpid))

        if head == "tomcat":
            rule = _TOMCAT_RULES.get(_segments(parts, 2)[1])
            if rule is None:
                raise RoutingMiss(f"no tomcat rule for {parts[1]!r}")
            name, identity = rule(parts, hpid)
            return RoutedSample(Destination.TOMCAT, sample.rewritten(name=name, identity=identity))

        if head == "website":
            if _segments(parts, 3)[1] != "visitors":
                raise RoutingMiss(f"no website rule for {parts[1]!r}")
            name = f"tomcat.website.visitors.{parts[2]}"
            return RoutedSample(Destination.TOMCAT, sample.rewritten(name=name, identity=hpid))

        if head in self._application_prefixes:
            return RoutedSample(
                Destination.APPLICATION,
                sample.rewritten(name=sample.name, identity=hpid),
            )

        raise RoutingMiss(f"unrecognized prefix {head!r}")


_DEFAULT_ROUTER = NameRouter()


def route(sample: Sample, host_process_id: str) -> Optional[RoutedSample]:
    """Route ``sample`` with the default application prefixes."""
    return _DEFAULT_ROUTER.route(sample, host_process_id)


__all__ = ["JVM_PREFIXES", "NameRouter", "RoutedSample", "route"]

"""Idempotent provisioning of metric groups and dashboards.

At start-up the declared definitions are reconciled against the remote
account: a definition whose ``name`` already exists remotely is updated in
place (PUT), anything else is created (POST). Resolved metric groups
become the destination identifiers samples are delivered to.

Every failure is contained to the definition (or index) it concerns; it is
counted and logged and the pass moves on.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx
from pydantic import ValidationError

from .client import RevealApiClient
from .counters import ExceptionCounter
from .exceptions import ConfigError, ProvisioningError
from .schema import DefinitionDocument, Destination, ProvisioningDocument

logger = logging.getLogger(__name__)


class ObjectKind(str, Enum):
    METRIC_GROUP = "metric_group"
    DASHBOARD = "dashboard"


@dataclass(frozen=True, slots=True)
class _Endpoints:
    collection: str
    item: str
    index_params: Optional[Mapping[str, Any]]
    update_params: Optional[Mapping[str, Any]]


_ID_RESERVED = frozenset("/?#")

_ENDPOINTS: Mapping[ObjectKind, _Endpoints] = {
    ObjectKind.METRIC_GROUP: _Endpoints(
        collection="/metric_groups.json",
        item="/metric_groups/{id}.json",
        index_params={"show_hidden": 1},
        update_params={"show_hidden": 1},
    ),
    ObjectKind.DASHBOARD: _Endpoints(
        collection="/dashboards.json",
        item="/dashboards/{id}.json",
        index_params=None,
        update_params=None,
    ),
}


def parse_object_id(kind: ObjectKind, raw: Any) -> str:
    """Normalize a remote ``id`` to its string form.

    Ids are parsed either as integers (integral floats included) or as
    non-empty strings taken verbatim. The result is used as a URL path
    segment, so it must be printable and free of ``/``, ``?`` and ``#``.

    Raises:
        ProvisioningError: when the id is missing, of the wrong type, or
            unusable in a URL path.
    """
    if raw is None or isinstance(raw, bool):
        raise ProvisioningError(f"{kind.value} id missing or invalid: {raw!r}")
    if isinstance(raw, int):
        return str(raw)
    if isinstance(raw, float):
        if raw.is_integer():
            return str(int(raw))
        raise ProvisioningError(f"{kind.value} id is not an integer: {raw!r}")
    if not isinstance(raw, str):
        raise ProvisioningError(f"{kind.value} id is not an integer or string: {raw!r}")
    text = raw.strip()
    if not text:
        raise ProvisioningError(f"{kind.value} id is empty")
    if not text.isprintable() or any(char in _ID_RESERVED for char in text):
        raise ProvisioningError(f"{kind.value} id is not usable in a URL path: {raw!r}")
    return text


def classify_metric_group(name: str) -> Destination:
    """Pick the destination served by a metric group, by its name.

    Case-insensitive substring match. ``tomcat`` wins over ``jvm`` and
    anything matching neither serves application metrics.
    """
    lowered = name.lower()
    if "tomcat" in lowered:
        return Destination.TOMCAT
    if "jvm" in lowered:
        return Destination.JVM
    return Destination.APPLICATION


def load_provisioning_document(path: Path) -> ProvisioningDocument:
    """Decode and validate a provisioning document.

    Raises:
        ConfigError: when the file is missing, is not JSON, or does not
            match ``{"config": {"metric_groups": [...], "dashboards": [...]}}``.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read provisioning document {path}: {exc}") from exc
    try:
        return ProvisioningDocument.model_validate(json.loads(text))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Provisioning document {path} is not JSON: {exc}") from exc
    except ValidationError as exc:
        raise ConfigError(f"Invalid provisioning document {path}: {exc}") from exc


@dataclass
class RemoteObjectIndex:
    """Snapshot of the remote objects of one kind, used for name lookups."""

    kind: ObjectKind
    entries: List[Mapping[str, Any]] = field(default_factory=list)

    def find_id(self, name: str) -> Optional[str]:
        for entry in self.entries:
            if entry.get("name") == name:
                return parse_object_id(self.kind, entry.get("id"))
        return None

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class ProvisioningContext:
    """Provisioning state shared by the writer's start and write paths.

    Created once per writer. ``destinations`` is filled during
    provisioning and only read afterwards.
    """

    document: ProvisioningDocument = field(default_factory=ProvisioningDocument.empty)
    destinations: Dict[Destination, str] = field(default_factory=dict)
    metric_groups: List[DefinitionDocument] = field(default_factory=list)
    dashboards: List[DefinitionDocument] = field(default_factory=list)
    process_identity: Optional[str] = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def claim(self, identity: str) -> bool:
        """Record ``identity`` as provisioned; False if it already was."""
        with self._lock:
            if self.process_identity == identity:
                return False
            self.process_identity = identity
            return True

    def release(self, identity: str) -> None:
        """Forget ``identity`` so a later ``claim`` can succeed again."""
        with self._lock:
            if self.process_identity == identity:
                self.process_identity = None

    def destination_id(self, destination: Destination) -> Optional[str]:
        return self.destinations.get(destination)


class ProvisioningManager:
    """Reconcile declared definitions against the remote API."""

    def __init__(
        self,
        client: RevealApiClient,
        counter: ExceptionCounter,
        context: Optional[ProvisioningContext] = None,
    ) -> None:
        self._client = client
        self._counter = counter
        self._context = context if context is not None else ProvisioningContext()

    @property
    def context(self) -> ProvisioningContext:
        return self._context

    def load_definitions(self, path: Path) -> ProvisioningDocument:
        """Load the provisioning document; degrade to empty on ConfigError."""
        try:
            document = load_provisioning_document(path)
        except ConfigError as exc:
            self._counter.increment()
            logger.warning("%s; provisioning nothing", exc)
            document = ProvisioningDocument.empty()
        self._context.document = document
        return document

    def fetch_remote_index(self, kind: ObjectKind) -> RemoteObjectIndex:
        """GET the collection for ``kind``; empty index on any failure."""
        endpoints = _ENDPOINTS[kind]
        url = self._client.url_for(endpoints.collection)
        try:
            response = self._client.request("GET", endpoints.collection, params=endpoints.index_params)
            if response.status_code != 200:
                raise ProvisioningError(f"Bad response code {response.status_code} from {kind.value} index")
            entries = response.json()
            if not isinstance(entries, list):
                raise ProvisioningError(f"{kind.value} index is not a JSON array")
        except (httpx.HTTPError, httpx.InvalidURL, ProvisioningError, ValueError) as exc:
            self._counter.increment()
            logger.warning("Cannot fetch %s index %s with proxy %s: %s", kind.value, url, self._client.proxy, exc)
            return RemoteObjectIndex(kind)
        return RemoteObjectIndex(kind, [entry for entry in entries if isinstance(entry, Mapping)])

    def reconcile(
        self,
        kind: ObjectKind,
        definition: DefinitionDocument,
        index: RemoteObjectIndex,
    ) -> Optional[str]:
        """Update or create ``definition``; return its remote id or None."""
        endpoints = _ENDPOINTS[kind]
        path = endpoints.collection
        try:
            existing = index.find_id(definition.name)
            if existing is not None:
                method, path, params = "PUT", endpoints.item.format(id=existing), endpoints.update_params
            else:
                method, params = "POST", None
            response = self._client.request(method, path, params=params, payload=definition.payload())
            if response.status_code != 200:
                raise ProvisioningError(
                    f"{method} returned {response.status_code}: {response.text[:500]}"
                )
            body = response.json()
            if not isinstance(body, Mapping):
                raise ProvisioningError("response body is not a JSON object")
            object_id = parse_object_id(kind, body.get("id"))
        except (httpx.HTTPError, httpx.InvalidURL, ProvisioningError, ValueError) as exc:
            self._counter.increment()
            logger.warning(
                "Cannot create or update %s %r at %s: %s",
                kind.value,
                definition.name,
                self._client.url_for(path),
                exc,
            )
            return None

        logger.info("%s %r resolved to id %s", kind.value, definition.name, object_id)
        return object_id

    def reconcile_all(
        self,
        kind: ObjectKind,
        definitions: Sequence[DefinitionDocument],
    ) -> List[DefinitionDocument]:
        """Reconcile every definition once; return copies carrying their ids."""
        if not definitions:
            return []
        index = self.fetch_remote_index(kind)
        resolved: List[DefinitionDocument] = []
        for definition in _unique_by_name(kind, definitions):
            object_id = self.reconcile(kind, definition, index)
            if object_id is not None:
                resolved.append(definition.model_copy(update={"id": object_id}))
        return resolved

    def provision(self, document: Optional[ProvisioningDocument] = None) -> ProvisioningContext:
        """Run one full pass: metric groups first, then dashboards."""
        if document is not None:
            self._context.document = document
        document = self._context.document

        self._context.metric_groups = self.reconcile_all(ObjectKind.METRIC_GROUP, document.metric_groups)
        for group in self._context.metric_groups:
            destination = classify_metric_group(group.name)
            previous = self._context.destinations.get(destination)
            if previous is not None and previous != group.id:
                logger.warning(
                    "Metric group %r replaces id %s for destination %s",
                    group.name,
                    previous,
                    destination.value,
                )
            self._context.destinations[destination] = str(group.id)

        self._context.dashboards = self.reconcile_all(ObjectKind.DASHBOARD, document.dashboards)
        return self._context


def _unique_by_name(
    kind: ObjectKind,
    definitions: Sequence[DefinitionDocument],
) -> List[DefinitionDocument]:
    by_name: Dict[str, DefinitionDocument] = {}
    for definition in definitions:
        if definition.name in by_name:
            logger.warning("Duplicate %s %r; the last declaration wins", kind.value, definition.name)
        by_name[definition.name] = definition
    return list(by_name.values())


__all__ = [
    "ObjectKind",
    "ProvisioningContext",
    "ProvisioningManager",
    "RemoteObjectIndex",
    "classify_metric_group",
    "load_provisioning_document",
    "parse_object_id",
]

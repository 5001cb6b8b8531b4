"""Shared fixtures for the revealmetrics-export test suite."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import httpx
import pytest

from revealmetrics_export.config import ExporterConfig

BASE_URL = "https://api.example.test/v2/revealmetrics"
BASE_PATH = "/v2/revealmetrics"


class FakeRevealApi:
    """In-memory stand-in for the remote API, served via httpx.MockTransport.

    Records every request and every response it hands out so tests can
    assert on methods, paths, bodies and connection release.
    """

    def __init__(self) -> None:
        self.metric_groups: list[dict[str, Any]] = []
        self.dashboards: list[dict[str, Any]] = []
        self.requests: list[httpx.Request] = []
        self.responses: list[httpx.Response] = []
        self.status_overrides: dict[tuple[str, str], int] = {}
        self.raise_for: set[tuple[str, str]] = set()
        self.body_overrides: dict[tuple[str, str], str] = {}
        self._next_metric_group_id = 100
        self._next_dashboard_id = 500

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    def calls(self, method: Optional[str] = None) -> list[tuple[str, str]]:
        """Return ``(method, path+query)`` for recorded requests."""
        out = []
        for request in self.requests:
            if method is not None and request.method != method:
                continue
            target = request.url.path[len(BASE_PATH):]
            if request.url.query:
                target += "?" + request.url.query.decode()
            out.append((request.method, target))
        return out

    def sample_posts(self) -> list[tuple[str, dict[str, Any]]]:
        posts = []
        for request in self.requests:
            path = request.url.path[len(BASE_PATH):]
            if request.method == "POST" and path.startswith("/samples/"):
                destination = path[len("/samples/"):-len(".json")]
                posts.append((destination, json.loads(request.content)))
        return posts

    def _respond(self, status: int, **kwargs: Any) -> httpx.Response:
        response = httpx.Response(status, **kwargs)
        self.responses.append(response)
        return response

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path[len(BASE_PATH):]
        key = (request.method, path)
        if key in self.raise_for:
            raise httpx.ConnectError("connection refused", request=request)
        if key in self.status_overrides:
            return self._respond(self.status_overrides[key], text="server says no")
        if key in self.body_overrides:
            return self._respond(200, text=self.body_overrides[key])

        if key == ("GET", "/metric_groups.json"):
            return self._respond(200, json=self.metric_groups)
        if key == ("GET", "/dashboards.json"):
            return self._respond(200, json=self.dashboards)
        if key == ("POST", "/metric_groups.json"):
            body = json.loads(request.content)
            self._next_metric_group_id += 1
            return self._respond(200, json={**body, "id": self._next_metric_group_id})
        if key == ("POST", "/dashboards.json"):
            body = json.loads(request.content)
            self._next_dashboard_id += 1
            return self._respond(200, json={**body, "id": str(self._next_dashboard_id)})
        if request.method == "PUT" and path.startswith(("/metric_groups/", "/dashboards/")):
            body = json.loads(request.content)
            object_id = path.rsplit("/", 1)[1][: -len(".json")]
            if path.startswith("/metric_groups/"):
                return self._respond(200, json={**body, "id": int(object_id)})
            return self._respond(200, json={**body, "id": object_id})
        if request.method == "POST" and path.startswith("/samples/"):
            return self._respond(200, json={})
        return self._respond(404, text="not found")


def write_provisioning(
    path: Path,
    *,
    metric_groups: list[dict[str, Any]],
    dashboards: list[dict[str, Any]] | None = None,
) -> Path:
    document = {"config": {"metric_groups": metric_groups, "dashboards": dashboards or []}}
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


@pytest.fixture
def fake_api() -> FakeRevealApi:
    return FakeRevealApi()


@pytest.fixture
def provisioning_file(tmp_path: Path) -> Path:
    return write_provisioning(
        tmp_path / "provisioning.json",
        metric_groups=[
            {"name": "JVM_Metrics", "frequency": 60},
            {"name": "Tomcat_Metrics", "frequency": 60},
            {"name": "App_Metrics", "frequency": 60},
        ],
        dashboards=[{"name": "JVM Overview", "data": {}}],
    )


@pytest.fixture
def exporter_config(provisioning_file: Path) -> ExporterConfig:
    return ExporterConfig(
        api_key="secret-key",
        url=BASE_URL,
        source="testhost",
        provisioning_path=provisioning_file,
    )

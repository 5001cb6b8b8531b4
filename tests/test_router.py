"""Tests for revealmetrics_export.router."""

from __future__ import annotations

import logging

import pytest

from revealmetrics_export.router import NameRouter, route
from revealmetrics_export.schema import Destination, Sample

HPID = "host1.4242"


def _sample(name: str, value: object = 1, epoch_millis: int = 1_000) -> Sample:
    return Sample.create(name, value, epoch_millis)


class TestJvmAndApplication:
    @pytest.mark.parametrize("name", ["jvm.memory.used", "jmxtrans.collectionDurationInMillis"])
    def test_jvm_prefixes_keep_name(self, name: str) -> None:
        result = route(_sample(name), HPID)
        assert result is not None
        assert result.destination is Destination.JVM
        assert result.sample.name == name
        assert result.sample.identity == HPID

    @pytest.mark.parametrize("name", ["sales.revenueInCentsCounter", "cocktail.search.count"])
    def test_application_prefixes(self, name: str) -> None:
        result = route(_sample(name), HPID)
        assert result is not None
        assert result.destination is Destination.APPLICATION
        assert result.sample.name == name
        assert result.sample.identity == HPID

    def test_custom_application_prefixes(self) -> None:
        router = NameRouter(application_prefixes=["billing"])
        assert router.route(_sample("billing.invoices"), HPID).destination is Destination.APPLICATION
        assert router.route(_sample("sales.revenue"), HPID) is None

    def test_value_and_timestamp_survive_routing(self) -> None:
        result = route(_sample("jvm.thread.ThreadCount", 17, 123_456), HPID)
        assert result.sample.value.value == 17
        assert result.sample.epoch_millis == 123_456


class TestTomcat:
    @pytest.mark.parametrize("kind", ["thread-pool", "global-request-processor"])
    @pytest.mark.parametrize("connector", ["http-nio-8080", "ajp-bio-8009"])
    def test_connector_rules(self, kind: str, connector: str) -> None:
        result = route(_sample(f"tomcat.{kind}.{connector}.currentThreadsBusy"), HPID)
        assert result is not None
        assert result.destination is Destination.TOMCAT
        assert result.sample.name == f"tomcat.{kind}.currentThreadsBusy"
        assert len(result.sample.name.split(".")) == 3
        assert result.sample.identity.endswith(f".{connector}")
        assert result.sample.identity == f"{HPID}.{connector}"

    def test_manager(self) -> None:
        result = route(_sample("tomcat.manager.localhost.shop.activeSessions"), HPID)
        assert result.destination is Destination.TOMCAT
        assert result.sample.name == "tomcat.manager.activeSessions"
        assert result.sample.identity == f"{HPID}.localhost.shop"

    def test_servlet_qualifiers(self) -> None:
        regular = route(_sample("tomcat.servlet.app.myservlet.processingTime"), HPID)
        default = route(_sample("tomcat.servlet.app.default.processingTime"), HPID)
        jsp = route(_sample("tomcat.servlet.app.jsp.processingTime"), HPID)

        assert regular.sample.identity == f"{HPID}.app.myservlet"
        assert default.sample.identity == f"{HPID}.appROOT.default"
        assert jsp.sample.identity == f"{HPID}.appROOT.jsp"
        for result in (regular, default, jsp):
            assert result.sample.name == "tomcat.servlet.processingTime"

    def test_data_source(self) -> None:
        result = route(_sample("tomcat.data-source.localhost.shop.jdbc_orders.numActive"), HPID)
        assert result.destination is Destination.TOMCAT
        assert result.sample.name == "tomcat.data-source.numActive"
        assert result.sample.identity == f"{HPID}.localhost.shop.jdbc_orders"

    def test_website_visitors(self) -> None:
        result = route(_sample("website.visitors.activeVisitors"), HPID)
        assert result.destination is Destination.TOMCAT
        assert result.sample.name == "tomcat.website.visitors.activeVisitors"
        assert result.sample.identity == HPID

    def test_unknown_tomcat_subtype_dropped(self) -> None:
        assert route(_sample("tomcat.cache.localhost.hits"), HPID) is None


class TestDropped:
    @pytest.mark.parametrize(
        "name",
        ["os.cpu.load", "unknown", "JVM.memory.used", "website.pageviews.total", ".jvm"],
    )
    def test_unrecognized_names_are_dropped(self, name: str) -> None:
        assert route(_sample(name), HPID) is None

    @pytest.mark.parametrize(
        "name",
        [
            "tomcat",
            "tomcat.thread-pool",
            "tomcat.thread-pool.http-nio-8080",
            "tomcat.global-request-processor.http",
            "tomcat.manager.localhost.shop",
            "tomcat.servlet.app.default",
            "tomcat.data-source.localhost.shop.db",
            "website.visitors",
            "website",
        ],
    )
    def test_truncated_names_are_dropped_without_raising(self, name: str) -> None:
        assert route(_sample(name), HPID) is None

    def test_empty_name_logs_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="revealmetrics_export.router"):
            assert route(_sample(""), HPID) is None
        assert "empty name" in caplog.text


def test_route_all_groups_by_destination_in_arrival_order() -> None:
    router = NameRouter()
    samples = [
        _sample("jvm.a", 1, 3_000),
        _sample("sales.x", 2, 1_000),
        _sample("jvm.b", 3, 2_000),
        _sample("nope.z", 4, 1_000),
        _sample("tomcat.thread-pool.http.busy", 5, 1_000),
    ]
    routed = router.route_all(samples, HPID)

    assert [s.name for s in routed[Destination.JVM]] == ["jvm.a", "jvm.b"]
    assert [s.name for s in routed[Destination.APPLICATION]] == ["sales.x"]
    assert [s.name for s in routed[Destination.TOMCAT]] == ["tomcat.thread-pool.busy"]

"""Tests for revealmetrics_export.expression."""

from __future__ import annotations

import logging
import socket

import pytest

from revealmetrics_export.expression import resolve_expression


@pytest.fixture(autouse=True)
def _fixed_host(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(socket, "gethostname", lambda: "web01")
    monkeypatch.setattr(socket, "getfqdn", lambda: "web01.prod.example.com")
    monkeypatch.setattr(socket, "gethostbyname", lambda name: "10.0.0.7")


@pytest.mark.parametrize(
    ("expression", "expected"),
    [
        ("#hostname#", "web01"),
        ("#canonical_hostname#", "web01.prod.example.com"),
        ("#reversed_canonical_hostname#", "com.example.prod.web01"),
        ("#escaped_canonical_hostname#", "web01_prod_example_com"),
        ("#hostaddress#", "10.0.0.7"),
        ("#escaped_hostaddress#", "10_0_0_7"),
        ("app.#hostname#", "app.web01"),
        ("plain", "plain"),
    ],
)
def test_host_tokens(expression: str, expected: str) -> None:
    assert resolve_expression(expression, environ={}) == expected


def test_unknown_token_is_left_alone() -> None:
    assert resolve_expression("#nope#.#hostname#", environ={}) == "#nope#.web01"


def test_environment_placeholders() -> None:
    environ = {"DC": "eu1"}
    assert resolve_expression("${DC}.#hostname#", environ=environ) == "eu1.web01"
    assert resolve_expression("${RACK:r9}", environ=environ) == "r9"
    assert resolve_expression("${DC:fallback}", environ=environ) == "eu1"


def test_unset_variable_without_default(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="revealmetrics_export.expression"):
        assert resolve_expression("x${MISSING}y", environ={}) == "xy"
    assert "MISSING" in caplog.text


def test_unresolvable_address_falls_back(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fail(name: str) -> str:
        raise socket.gaierror("no address")

    monkeypatch.setattr(socket, "gethostbyname", _fail)
    assert resolve_expression("#hostaddress#", environ={}) == "127.0.0.1"

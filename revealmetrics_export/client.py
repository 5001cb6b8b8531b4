"""Authenticated HTTP access to the revealmetrics ingestion API.

One ``httpx.Client`` is shared by provisioning and delivery so the
connection pool is reused across an export cycle. Every response body is
read to completion inside the streaming context, which releases the
connection back to the pool whatever the status code.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional

import httpx

from .config import ExporterConfig

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json; charset=utf-8"
USER_AGENT = "revealmetrics-export"
DEFAULT_CONNECT_TIMEOUT_S = 10.0


def encode_json(payload: Any) -> bytes:
    """Compact UTF-8 JSON encoding used for all request bodies."""
    text = json.dumps(payload, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    return text.encode("utf-8")


class RevealApiClient:
    """Thin wrapper over ``httpx.Client`` bound to one API base URL.

    Args:
        config: Exporter settings (URL, credentials, timeout, proxy).
        transport: Optional transport override, used by tests to serve
            canned responses. When given, the proxy setting is not applied.
    """

    def __init__(
        self,
        config: ExporterConfig,
        *,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._base_url = config.url.rstrip("/")
        self._proxy = config.proxy_url
        client_kwargs: dict[str, Any] = {
            "base_url": self._base_url,
            "auth": httpx.BasicAuth(*config.basic_auth),
            "headers": {"content-type": JSON_CONTENT_TYPE, "user-agent": USER_AGENT},
            "timeout": httpx.Timeout(DEFAULT_CONNECT_TIMEOUT_S, read=config.timeout_seconds),
        }
        if transport is not None:
            client_kwargs["transport"] = transport
        elif self._proxy is not None:
            client_kwargs["proxy"] = self._proxy
        self._client = httpx.Client(**client_kwargs)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def proxy(self) -> Optional[str]:
        return self._proxy

    def url_for(self, path: str) -> str:
        """Absolute URL for ``path``, used in log messages."""
        return f"{self._base_url}{path}"

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        payload: Any = None,
    ) -> httpx.Response:
        """Send one request and return the fully read, closed response.

        Raises:
            httpx.HTTPError: on transport failures and timeouts. HTTP error
                statuses are returned, not raised.
        """
        content = encode_json(payload) if payload is not None else None
        logger.debug("%s %s params=%s", method, self.url_for(path), params)
        with self._client.stream(method, path, params=params, content=content) as response:
            response.read()
        return response

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "RevealApiClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = ["JSON_CONTENT_TYPE", "RevealApiClient", "encode_json"]

"""Host-level expression resolution for the ``source`` setting.

Supports ``#hostname#`` style host tokens and ``${VAR}`` /
``${VAR:default}`` environment placeholders, e.g.
``"${DATACENTER:dc1}.#hostname#"``.
"""

from __future__ import annotations

import logging
import os
import re
import socket
from typing import Callable, Mapping, Optional

logger = logging.getLogger(__name__)

_HOST_TOKEN = re.compile(r"#([a-z_]+)#")
_ENV_TOKEN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_.]*)(?::([^}]*))?\}")


def _hostname() -> str:
    return socket.gethostname()


def _canonical_hostname() -> str:
    try:
        return socket.getfqdn()
    except OSError as exc:
        logger.warning("Cannot resolve canonical hostname: %s", exc)
        return _hostname()


def _hostaddress() -> str:
    try:
        return socket.gethostbyname(_hostname())
    except OSError as exc:
        logger.warning("Cannot resolve host address: %s", exc)
        return "127.0.0.1"


def _reversed(value: str) -> str:
    return ".".join(reversed(value.split(".")))


def _escaped(value: str) -> str:
    return value.replace(".", "_")


_HOST_FUNCTIONS: Mapping[str, Callable[[], str]] = {
    "hostname": _hostname,
    "reversed_hostname": lambda: _reversed(_hostname()),
    "escaped_hostname": lambda: _escaped(_hostname()),
    "canonical_hostname": _canonical_hostname,
    "reversed_canonical_hostname": lambda: _reversed(_canonical_hostname()),
    "escaped_canonical_hostname": lambda: _escaped(_canonical_hostname()),
    "hostaddress": _hostaddress,
    "escaped_hostaddress": lambda: _escaped(_hostaddress()),
}


def resolve_expression(
    expression: str,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> str:
    """Expand host tokens and environment placeholders in ``expression``.

    Unknown ``#token#`` names are left untouched. An environment
    placeholder without a default resolves to an empty string when the
    variable is unset.
    """
    env = os.environ if environ is None else environ

    def _env(match: re.Match[str]) -> str:
        value = env.get(match.group(1))
        if value is not None:
            return value
        default = match.group(2)
        if default is None:
            logger.warning("Environment variable %s is not set", match.group(1))
            return ""
        return default

    def _host(match: re.Match[str]) -> str:
        func = _HOST_FUNCTIONS.get(match.group(1))
        return func() if func is not None else match.group(0)

    return _HOST_TOKEN.sub(_host, _ENV_TOKEN.sub(_env, expression))


__all__ = ["resolve_expression"]

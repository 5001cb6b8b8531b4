"""Command-line entry point: provision, send or validate.

Exit codes: 0 on success, 1 when recoverable failures were counted (or a
provisioning document is invalid), 2 on a configuration error.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Iterator, Optional, Sequence

from .config import ExporterConfig
from .exceptions import ConfigError, ConfigurationError
from .provisioning import load_provisioning_document
from .schema import Sample
from .writer import RevealMetricsWriter

logger = logging.getLogger(__name__)


def read_samples(path: Path) -> Iterator[Sample]:
    """Yield samples from a JSONL file, skipping malformed lines."""
    with path.open("r", encoding="utf-8") as fh:
        for lineno, line in enumerate(fh, start=1):
            if not line.strip():
                continue
            try:
                record = json.loads(line)
                yield Sample.create(
                    str(record["name"]),
                    record.get("value"),
                    int(record["epoch_millis"]),
                )
            except (ValueError, KeyError, TypeError) as exc:
                logger.warning("Skipping %s:%d: %s", path, lineno, exc)


def _load_config(args: argparse.Namespace) -> ExporterConfig:
    config = ExporterConfig.from_yaml(args.config)
    if args.provisioning:
        config = replace(config, provisioning_path=args.provisioning)
    return config


def _cmd_provision(args: argparse.Namespace) -> int:
    writer = RevealMetricsWriter(config=_load_config(args))
    try:
        writer.start()
    finally:
        writer.stop()
    table = {destination.value: object_id for destination, object_id in writer.context.destinations.items()}
    print(json.dumps(table, indent=2, sort_keys=True))
    return 1 if writer.exception_count else 0


def _cmd_send(args: argparse.Namespace) -> int:
    writer = RevealMetricsWriter(config=_load_config(args))
    try:
        writer.start()
        writer.write(read_samples(args.samples))
    finally:
        writer.stop()
    return 1 if writer.exception_count else 0


def _cmd_validate(args: argparse.Namespace) -> int:
    try:
        document = load_provisioning_document(args.document)
    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    print(json.dumps(
        {
            "metric_groups": [definition.name for definition in document.metric_groups],
            "dashboards": [definition.name for definition in document.dashboards],
        },
        indent=2,
    ))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="revealmetrics-export",
        description="Provision and feed a revealmetrics account.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    provision = sub.add_parser("provision", help="Reconcile metric groups and dashboards")
    provision.add_argument("--config", type=Path, help="Exporter settings YAML")
    provision.add_argument("--provisioning", type=Path, help="Provisioning document JSON")
    provision.set_defaults(func=_cmd_provision)

    send = sub.add_parser("send", help="Provision, then send samples from a JSONL file")
    send.add_argument("samples", type=Path, help="JSONL file of {name, value, epoch_millis}")
    send.add_argument("--config", type=Path, help="Exporter settings YAML")
    send.add_argument("--provisioning", type=Path, help="Provisioning document JSON")
    send.set_defaults(func=_cmd_send)

    validate = sub.add_parser("validate", help="Check a provisioning document")
    validate.add_argument("document", type=Path)
    validate.set_defaults(func=_cmd_validate)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return int(args.func(args))
    except ConfigurationError as exc:
        print(f"configuration error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())

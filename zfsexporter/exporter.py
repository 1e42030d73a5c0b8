"""Command-line entry point: serves ZFS metrics over HTTP."""

from __future__ import annotations

import argparse
import html
import json
import logging
import platform
import re
import sys
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from importlib.metadata import PackageNotFoundError, version
from urllib.parse import urlsplit

from zfsexporter.metrics import Desc, Metric, render
from zfsexporter.properties import registered_collectors
from zfsexporter.scrape import ZFSCollector, ZFSConfig
from zfsexporter.zfs_client import Client, CommandError
from zfsexporter.zfs_status import zfs_version, zpool_status

try:
    _VERSION = version("zfsexporter")
except PackageNotFoundError:
    _VERSION = "unknown"

DEFAULT_LISTEN_ADDRESS = ":9134"
CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"

BUILD_INFO_DESC = Desc(
    "zfs_exporter_build_info",
    "A metric with a constant '1' value labeled by version and pythonversion "
    "from which zfs_exporter was built.",
    ("pythonversion", "version"),
)

_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def _parse_duration(text: str) -> float:
    """Parse a duration such as '8s' or '1m30s' into seconds."""
    rest = text
    sign = 1.0
    if rest[:1] in ("+", "-"):
        sign = -1.0 if rest[0] == "-" else 1.0
        rest = rest[1:]
    if rest == "0":
        return 0.0
    if not rest:
        raise argparse.ArgumentTypeError(f"invalid duration {text!r}")
    total = 0.0
    pos = 0
    while pos < len(rest):
        match = _DURATION_PART.match(rest, pos)
        if match is None:
            raise argparse.ArgumentTypeError(f"invalid duration {text!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    return sign * total


def build_parser() -> argparse.ArgumentParser:
    """The command-line parser, including a pair of flags per registered collector."""
    parser = argparse.ArgumentParser(prog="zfs_exporter", description="Prometheus ZFS Exporter")
    parser.add_argument(
        "--web.telemetry-path", dest="metrics_path", default="/metrics",
        help="Path under which to expose metrics.",
    )
    parser.add_argument(
        "--web.disable-exporter-metrics", dest="disable_exporter_metrics",
        action="store_true", default=False,
        help="Exclude metrics about the exporter itself.",
    )
    parser.add_argument(
        "--web.listen-address", dest="listen_addresses", action="append", default=None,
        help=f"Address on which to expose metrics, repeatable (default: {DEFAULT_LISTEN_ADDRESS}).",
    )
    parser.add_argument(
        "--deadline", type=_parse_duration, default="8s",
        help="Maximum duration that a collection should run before returning cached data. "
        "Should be set to a value shorter than your scrape timeout duration. The current "
        "collection run will continue and update the cache when complete (default: 8s)",
    )
    parser.add_argument(
        "--pool", dest="pools", action="append", default=[],
        help="Name of the pool(s) to collect, repeat for multiple pools (default: all pools).",
    )
    parser.add_argument(
        "--exclude", dest="excludes", action="append", default=[],
        help="Exclude datasets/snapshots/volumes that match the provided regex "
        "(e.g. '^rpool/docker/'), may be specified multiple times.",
    )
    parser.add_argument(
        "--log.level", dest="log_level", choices=sorted(_LOG_LEVELS), default="info",
        help="Only log messages with the given severity or above.",
    )
    parser.add_argument(
        "--log.format", dest="log_format", choices=("logfmt", "json"), default="logfmt",
        help="Output format of log messages.",
    )
    parser.add_argument("--version", action="version", version=f"zfs_exporter, version {_VERSION}")

    for name, state in registered_collectors().items():
        default_state = "enabled" if state.enabled else "disabled"
        parser.add_argument(
            f"--collector.{name}", dest=f"collector_{name}",
            action=argparse.BooleanOptionalAction, default=state.enabled,
            help=f"Enable the {name} collector (default: {default_state})",
        )
        parser.add_argument(
            f"--properties.{name}", dest=f"properties_{name}", default=state.properties,
            help=f"Properties to include for the {name} collector, comma-separated.",
        )
    return parser


def _apply_collector_flags(args: argparse.Namespace) -> None:
    for name, state in registered_collectors().items():
        state.enabled = getattr(args, f"collector_{name}", state.enabled)
        state.properties = getattr(args, f"properties_{name}", state.properties)


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return json.dumps({
            "time": self.formatTime(record),
            "level": record.levelname.lower(),
            "source": record.name,
            "msg": record.getMessage(),
        })


def _configure_logging(level: str, fmt: str) -> logging.Logger:
    logger = logging.getLogger("zfsexporter")
    for handler in [h for h in logger.handlers if getattr(h, "_zfsexporter", False)]:
        logger.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler._zfsexporter = True
    if fmt == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "time=%(asctime)s level=%(levelname)s source=%(name)s msg=%(message)r"
        ))
    logger.addHandler(handler)
    logger.setLevel(_LOG_LEVELS[level])
    return logger


def landing_page(metrics_path: str) -> str:
    """HTML landing page linking to the metrics endpoint."""
    return (
        "<!DOCTYPE html>\n"
        "<html>\n"
        "<head><title>ZFS Exporter</title></head>\n"
        "<body>\n"
        "<h1>ZFS Exporter</h1>\n"
        "<p>Prometheus ZFS Exporter</p>\n"
        f"<div>Version: {html.escape(_VERSION)}</div>\n"
        "<ul>\n"
        f'<li><a href="{html.escape(metrics_path, quote=True)}">Metrics</a></li>\n'
        "</ul>\n"
        "</body>\n"
        "</html>\n"
    )


def make_handler(collector, metrics_path: str) -> type[BaseHTTPRequestHandler]:
    """A request handler serving ``collector`` at ``metrics_path`` and a landing page at '/'."""
    landing = landing_page(metrics_path).encode("utf-8")
    build_info = Metric(BUILD_INFO_DESC, 1, (platform.python_version(), _VERSION))
    log = logging.getLogger("zfsexporter.http")

    class Handler(BaseHTTPRequestHandler):
        server_version = "zfs_exporter"

        def _send(self, status: int, content_type: str, body: bytes) -> None:
            self.send_response(status)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def do_GET(self) -> None:  # noqa: N802
            path = urlsplit(self.path).path
            if metrics_path == "/" or path == metrics_path:
                try:
                    body = render([*collector.collect(), build_info]).encode("utf-8")
                except Exception as exc:
                    log.error("Error gathering metrics: %s", exc)
                    self._send(500, "text/plain; charset=utf-8", f"{exc}\n".encode("utf-8"))
                    return
                self._send(200, CONTENT_TYPE, body)
            elif path == "/":
                self._send(200, "text/html; charset=utf-8", landing)
            else:
                self.send_error(404)

        def log_message(self, format: str, *args) -> None:  # noqa: A002
            log.debug("%s - %s", self.address_string(), format % args)

    return Handler


def _split_address(address: str) -> tuple[str, int]:
    host, _, port = address.rpartition(":")
    return host.strip("[]"), int(port)


def main(argv=None) -> int:
    """Run the exporter; returns the process exit status."""
    args = build_parser().parse_args(argv)
    logger = _configure_logging(args.log_level, args.log_format)
    _apply_collector_flags(args)

    logger.info("Starting zfs_exporter version=%s", _VERSION)
    logger.info("Build context python=%s", platform.python_version())

    try:
        zfs_release = zfs_version(logger)
    except CommandError as exc:
        logger.error("Error getting ZFS version: %s", exc)
        return 7
    logger.info("ZFS Version: %s", zfs_release)

    try:
        statuses = zpool_status(logger)
    except CommandError as exc:
        logger.error("Error getting pool status: %s", exc)
        return 8
    logger.debug("Num Pools: %d", len(statuses))
    for pool_name, status in statuses.items():
        logger.debug("Pool Name: %s", pool_name)
        logger.debug("Pool Vdevs: %d", len(status.vdevs))
        logger.debug("Pool Status: %s", status)
        logger.debug("Pool ScanStats: %s", status.scan_stats)
        for vdev_name, vdev in status.vdevs.items():
            logger.debug("Vdev Name: %s", vdev_name)
            logger.debug("Vdev Status: %s", vdev)

    try:
        collector = ZFSCollector(ZFSConfig(
            zfs_client=Client(),
            disable_metrics=args.disable_exporter_metrics,
            deadline=args.deadline,
            pools=args.pools,
            excludes=args.excludes,
            logger=logger,
        ))
    except re.error as exc:
        logger.error("Error creating an exporter: %s", exc)
        return 1

    logger.info("Enabling pools: %s", ", ".join(collector.pools) if collector.pools else "(all)")
    enabled = [name for name, state in collector.collectors.items() if state.enabled]
    logger.info("Enabling collectors: %s", ", ".join(enabled))

    handler = make_handler(collector, args.metrics_path)
    servers = []
    try:
        for address in args.listen_addresses or [DEFAULT_LISTEN_ADDRESS]:
            servers.append(ThreadingHTTPServer(_split_address(address), handler))
            logger.info("Listening on %s", address)
    except (OSError, ValueError) as exc:
        logger.error("Error starting HTTP server: %s", exc)
        for server in servers:
            server.server_close()
        return 1

    for server in servers[1:]:
        threading.Thread(target=server.serve_forever, daemon=True).start()
    try:
        servers[0].serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        for server in servers:
            server.shutdown() if server is not servers[0] else None
            server.server_close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
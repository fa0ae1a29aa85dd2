#!/usr/bin/env python3
import argparse
import signal
import sys
import threading
from collections import Counter

from staticlease.config import AUTOREFRESH_ARG, LOG_JSON, LOG_LEVEL, SETTLE_SECONDS, configure_logging, log
from staticlease.dhcp.lease_file import load_lease_file
from staticlease.errors import ConfigError, LoadError
from staticlease.services.file_plugin import FilePlugin


def cmd_check(args: argparse.Namespace) -> int:
    ip_version = 6 if args.ipv6 else 4
    try:
        records = load_lease_file(args.file, ip_version)
    except LoadError as e:
        log.error("lease_file_invalid", path=args.file, error=str(e))
        return 1

    by_kind = Counter(type(key).__name__ for key in records)
    log.info("lease_file_ok", path=args.file, ip_version=ip_version, records=len(records), **by_kind)
    return 0


def cmd_watch(args: argparse.Namespace) -> int:
    plugin = FilePlugin(settle_delay=args.settle)
    configure = plugin.configure6 if args.ipv6 else plugin.configure4
    try:
        configure(args.file, AUTOREFRESH_ARG)
    except (ConfigError, LoadError) as e:
        log.error("lease_watch_setup_failed", path=args.file, error=str(e))
        return 1

    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())
    stop.wait()

    plugin.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="staticlease", description="Static DHCP lease file tools")
    parser.add_argument("--json", action="store_true", default=LOG_JSON, help="Emit JSON log lines")
    parser.add_argument("--log-level", default=LOG_LEVEL)
    sub = parser.add_subparsers(dest="command", required=True)

    check = sub.add_parser("check", help="Validate a lease file")
    check.add_argument("file")
    check.add_argument("--ipv6", action="store_true", help="Validate as a DHCPv6 lease file")
    check.set_defaults(func=cmd_check)

    watch = sub.add_parser("watch", help="Load a lease file and follow changes until interrupted")
    watch.add_argument("file")
    watch.add_argument("--ipv6", action="store_true")
    watch.add_argument("--settle", type=float, default=SETTLE_SECONDS, help="Seconds to wait after a change before reloading")
    watch.set_defaults(func=cmd_watch)

    args = parser.parse_args(argv)
    configure_logging(level=args.log_level, json_output=args.json)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

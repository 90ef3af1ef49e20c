#!/usr/bin/env python3
"""aflogcat: AppsFlyer logcat capture and inspection, CLI entry point."""

import argparse
import logging
import os
import signal
import sys

from aflogcat.config import load_config, load_yaml_config
from aflogcat.devices import DeviceResolver, default_adb_path, validate_adb
from aflogcat.errors import AflogcatError
from aflogcat.tools import LogTools

logger = logging.getLogger(__name__)

QUERY_COMMANDS = {
    "logs": lambda tools, args: tools.fetch_logs(args.device),
    "conversion": lambda tools, args: tools.conversion_logs(args.device),
    "launch": lambda tools, args: tools.launch_logs(args.device),
    "inapp": lambda tools, args: tools.in_app_logs(args.device),
    "deeplink": lambda tools, args: tools.deep_link_logs(args.device),
    "errors": lambda tools, args: tools.errors(args.device),
    "keyword": lambda tools, args: tools.logs_by_keyword(args.keyword, args.lines, args.device),
    "verify-deeplink": lambda tools, args: tools.verify_deep_link(args.device),
    "verify-event": lambda tools, args: tools.verify_in_app_event(args.event_name, args.device),
    "verify-sdk": lambda tools, args: tools.verify_sdk(args.device),
}


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aflogcat",
        description="Capture and inspect AppsFlyer SDK logs from an Android device.",
    )
    parser.add_argument("--config", default=os.environ.get("AFLOGCAT_CONFIG"),
                        help="Path to YAML config file")
    parser.add_argument("--device", default=None,
                        help="Device serial (default: the single connected device)")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("devices", help="List connected devices")
    sub.add_parser("logs", help="Raw AppsFlyer log lines")
    sub.add_parser("conversion", help="Latest conversion (install) record")
    sub.add_parser("launch", help="Latest launch record")
    sub.add_parser("inapp", help="In-app event records")
    sub.add_parser("deeplink", help="Latest deep-link record")
    sub.add_parser("errors", help="Error, failure and exception records")

    kw = sub.add_parser("keyword", help="Raw lines containing a keyword")
    kw.add_argument("keyword")
    kw.add_argument("--lines", type=int, default=50, help="Max lines (default: 50)")

    sub.add_parser("verify-deeplink", help="Analyze UDL/DDL deep-link delivery")
    ev = sub.add_parser("verify-event", help="Verify an in-app event was logged")
    ev.add_argument("event_name")
    sub.add_parser("verify-sdk", help="Verify attribution via the install-data API")

    serve = sub.add_parser("serve", help="Run the HTTP query API")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.add_argument("--follow", action="store_true",
                       help="Start a continuous capture session before serving")
    return parser


def _serve(tools: LogTools, config, args) -> int:
    from aflogcat.web import create_app

    def _signal_handler(sig, frame):
        logger.info("Shutdown signal received, stopping...")
        tools.stop_session()
        sys.exit(0)

    signal.signal(signal.SIGTERM, _signal_handler)

    if args.follow:
        logger.info("Continuous capture: %s", tools.start_session(args.device))

    app = create_app(config, tools)
    try:
        app.run(host=args.host or config.host, port=args.port or config.port)
    finally:
        tools.stop_session()
    return 0


def main(argv=None) -> int:
    parser = build_cli_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [AFLOGCAT] %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    config = load_config(args, load_yaml_config(args.config))
    logger.debug("Config: %s", config)

    try:
        resolver = DeviceResolver(validate_adb(config.adb_path or default_adb_path()))
    except AflogcatError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.command == "devices":
        try:
            devices = resolver.list_devices()
        except AflogcatError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print("\n".join(devices) if devices else "No devices connected.")
        return 0

    tools = LogTools(config, resolver=resolver)
    if args.command == "serve":
        return _serve(tools, config, args)

    print(QUERY_COMMANDS[args.command](tools, args))
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(0)
    except BrokenPipeError:
        sys.exit(0)

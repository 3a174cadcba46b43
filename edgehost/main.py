"""Main entry point for the edgehost CLI"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from . import __version__
from .config import AppSpec, find_app_file, load_config
from .errors import EdgehostError
from .output import (
    bindings_table,
    console,
    print_conflicts,
    print_error,
    print_info,
    print_success,
    print_warning,
    rules_table,
    urls_table,
)
from .pipeline import ProxyPipeline
from .prober import probe_bindings
from .structured_logging import setup_logging

logger = logging.getLogger("edgehost.main")


def _load_app(path: str | None) -> AppSpec | None:
    app_file = Path(path) if path else find_app_file()
    if not app_file:
        print_error("No edgehost.yml found in this directory or its parents")
        return None
    return AppSpec.from_file(app_file)


async def handle_start(pipeline: ProxyPipeline, args) -> bool:
    """Handle edgehost start: reconcile the proxy and publish the app's routes"""
    app = _load_app(args.app)
    if app is None:
        return False

    result = await pipeline.start_app(app)
    if result is None:
        print_info(f"Proxy is off or {app.name} declares no routes")
        return True

    state = "rebuilt" if result.changed else "unchanged"
    print_success(f"Proxy running ({result.state.value}, definition {state})")
    console.print(bindings_table(result.binding.http, result.binding.https, pipeline.config.dashboard_port))
    console.print(rules_table(result.rules))
    print_conflicts(result.conflicts.conflicts, result.conflicts.services)
    print_info(f"Routing file: {result.artifact}")
    return True


async def handle_info(pipeline: ProxyPipeline, args) -> bool:
    """Handle edgehost info: show the proxy URLs of a running app"""
    app = _load_app(args.app)
    if app is None:
        return False

    if not await pipeline.refresh_running(app):
        print_info(f"{app.name} is not running")
        return True
    urls = await pipeline.app_info(app)
    if not urls:
        print_info(f"No proxy URLs for {app.name}")
        return True
    console.print(urls_table(urls, title=f"{app.name} URLs"))
    return True


async def handle_poweroff(pipeline: ProxyPipeline, args) -> bool:
    """Handle edgehost poweroff"""
    if await pipeline.poweroff():
        print_success("Proxy stopped")
    else:
        print_info("Proxy is off or not defined")
    return True


async def handle_probe(pipeline: ProxyPipeline, args) -> bool:
    """Handle edgehost probe: show which host ports a new proxy would bind"""
    config = pipeline.config
    binding = await probe_bindings(config)
    console.print(bindings_table(binding.http, binding.https, config.dashboard_port))
    if binding.http != config.http_port or binding.https != config.https_port:
        print_warning("Primary ports are in use; falling back")
    return True


HANDLERS = {
    "start": handle_start,
    "info": handle_info,
    "poweroff": handle_poweroff,
    "probe": handle_probe,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Edgehost - shared edge proxy for local development apps",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"edgehost {__version__}")
    parser.add_argument("--log-level", default=None, help="Log level (default: EDGEHOST_LOG_LEVEL or INFO)")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    start_parser = subparsers.add_parser("start", help="Reconcile the proxy and publish an app's routes")
    start_parser.add_argument("--app", help="Path to the app's edgehost.yml")

    info_parser = subparsers.add_parser("info", help="Show the proxy URLs of an app")
    info_parser.add_argument("--app", help="Path to the app's edgehost.yml")

    subparsers.add_parser("poweroff", help="Stop the proxy")
    subparsers.add_parser("probe", help="Show the host ports a new proxy would bind")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(level=args.log_level)

    try:
        pipeline = ProxyPipeline(load_config())
        ok = asyncio.run(HANDLERS[args.command](pipeline, args))
    except EdgehostError as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print_error(str(e))
        return 1

    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())

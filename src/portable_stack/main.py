"""Portable Stack entry point.

``portable-stack serve`` runs the HTTP API and ``portable-stack catalog``
prints the active catalog in the file format PORTABLE_STACK_CATALOG reads.
Every other sub-command runs one operation through the message handlers
and prints the JSON response.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, Optional

import uvicorn

from portable_stack import __version__
from portable_stack.api_server import create_app
from portable_stack.handlers import dispatch_message
from portable_stack.service import PortableService
from portable_stack.settings import Settings

logger = logging.getLogger("portable_stack")


def configure_logging(level: str) -> None:
    # stdout carries the JSON responses
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _add_instance_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("package_id", help="Catalog package id, e.g. mysql")
    parser.add_argument("version", help="Package version, e.g. 8.0.35")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="portable-stack",
        description="Install and run portable service bundles.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default=None, help="Override PORTABLE_STACK_LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    packages = sub.add_parser("packages", help="List catalog packages")
    packages.add_argument("--category", default="all")

    sub.add_parser("installed", help="List installed packages")
    sub.add_parser("system", help="Show platform and install root")
    sub.add_parser("catalog", help="Print the active catalog as a catalog file")

    for name, help_text in (
        ("preview", "Show download URL and install path"),
        ("uninstall", "Delete an installed package"),
        ("status", "Show process status"),
        ("start", "Start a service"),
        ("stop", "Stop a service"),
        ("restart", "Restart a service"),
        ("config", "Print the configuration file"),
    ):
        _add_instance_args(sub.add_parser(name, help=help_text))

    install = sub.add_parser("install", help="Download and install a package")
    _add_instance_args(install)
    install.add_argument("--force", action="store_true", help="Replace an existing install")

    save_config = sub.add_parser("save-config", help="Overwrite the configuration file")
    _add_instance_args(save_config)
    save_config.add_argument("file", type=argparse.FileType("r", encoding="utf-8"),
                             help="File with the new content ('-' for stdin)")

    log = sub.add_parser("log", help="Print the service log")
    _add_instance_args(log)
    log.add_argument("--lines", type=int, default=None, help="Only the last N lines")

    return parser


_MESSAGE_TYPES = {
    "packages": "list_packages",
    "installed": "list_installed",
    "system": "system_info",
    "preview": "preview_install",
    "install": "install",
    "uninstall": "uninstall",
    "status": "status",
    "start": "start",
    "stop": "stop",
    "restart": "restart",
    "config": "get_config",
    "save-config": "save_config",
    "log": "get_log",
}


def message_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    """Translate parsed CLI arguments into a handler message."""
    message: Dict[str, Any] = {"type": _MESSAGE_TYPES[args.command], "request_id": "cli"}
    if hasattr(args, "package_id"):
        message["package_id"] = args.package_id
        message["version"] = args.version
    if args.command == "packages":
        message["category"] = args.category
    elif args.command == "install":
        message["force"] = args.force
    elif args.command == "save-config":
        with args.file as f:
            message["content"] = f.read()
    elif args.command == "log":
        message["lines"] = args.lines
    return message


async def run_command(message: Dict[str, Any], service: Optional[PortableService] = None) -> Dict[str, Any]:
    service = service or PortableService()
    return await dispatch_message(message, service)


def serve(settings: Settings, host: Optional[str], port: Optional[int]) -> None:
    app = create_app(PortableService(settings))
    host = host or settings.api_host
    port = port or settings.api_port
    logger.info(f"Portable Stack API v{__version__} on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level=settings.log_level.lower())


def main(argv: Optional[list[str]] = None) -> None:
    """Entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    if args.log_level:
        settings.log_level = args.log_level.upper()
    configure_logging(settings.log_level)

    try:
        if args.command == "serve":
            serve(settings, args.host, args.port)
            return
        if args.command == "catalog":
            response = {"packages": PortableService(settings).catalog.to_list()}
            json.dump(response, sys.stdout, indent=2)
            sys.stdout.write("\n")
            return

        response = asyncio.run(run_command(message_from_args(args), PortableService(settings)))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)

    json.dump(response, sys.stdout, indent=2)
    sys.stdout.write("\n")
    if response.get("type") == "error":
        sys.exit(1)


if __name__ == "__main__":
    main()

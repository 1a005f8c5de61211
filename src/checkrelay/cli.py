#!/usr/bin/env python3
"""
Check Relay CLI

Usage:
    checkrelay server         - Run the relay until interrupted
    checkrelay config         - Show the effective configuration
    checkrelay version        - Show build information
"""

import argparse
import sys
from dataclasses import fields
from typing import List, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from .checks import SEVERITY_SCALES
from .config import ServerConfig, StatusCodes, load_config
from .errors import CheckRelayError
from .version import format_info

console = Console()

# Flag name -> (section, attribute). Flags left unset keep the configured value.
_FLAG_TARGETS = {
    "listen_address": (None, "listen_address"),
    "registry_address": (None, "registry_address"),
    "shutdown_timeout": (None, "shutdown_timeout"),
    "default_threshold": (None, "default_threshold"),
    "severity_scale": (None, "severity_scale"),
    "query_timeout": ("client", "query_timeout"),
    "query_max_idle_connection_count": ("client", "query_max_idle_connection_count"),
    "query_idle_connection_timeout": ("client", "query_idle_connection_timeout"),
    "cache_duration": ("cache", "registry_cache_duration"),
}
_FLAG_TARGETS.update({
    f"{f.name}_status_code": ("status_codes", f.name) for f in fields(StatusCodes)
})


def add_config_arguments(parser: argparse.ArgumentParser):
    """Flags shared by every command that needs a configuration."""
    parser.add_argument("--config", help="YAML config file (default: .checkrelay.yaml if present)")
    parser.add_argument("-l", "--listen-address", help="the listen address, e.g. :8080")
    parser.add_argument("-c", "--registry-address", help="the registry HTTP API address to query against")
    parser.add_argument("--shutdown-timeout", type=float,
                        help="seconds to wait for in-flight requests on shutdown")
    parser.add_argument("--default-threshold",
                        help="severity treated as passing when a request has no status parameter")
    parser.add_argument("--severity-scale", choices=sorted(SEVERITY_SCALES),
                        help="status vocabulary reported by the registry")
    parser.add_argument("--query-timeout", type=float,
                        help="seconds before a registry query times out")
    parser.add_argument("--query-max-idle-connection-count", type=int,
                        help="maximum idle keep-alive registry connections")
    parser.add_argument("--query-idle-connection-timeout", type=float,
                        help="seconds an idle registry connection stays open")
    parser.add_argument("--cache-duration", type=float,
                        help="seconds registry results are cached (0 disables caching)")
    for f in fields(StatusCodes):
        flag = f.name.replace("_", "-")
        parser.add_argument(f"--{flag}-status-code", type=int,
                            help=f"HTTP status code for the {flag} outcome")


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Load the configuration, then apply any flags given on the command line."""
    config = load_config(args.config)
    for arg_name, (section, attribute) in _FLAG_TARGETS.items():
        value = getattr(args, arg_name, None)
        if value is None:
            continue
        target = getattr(config, section) if section else config
        setattr(target, attribute, value)
    return config


def cmd_server(args):
    """Run the relay under uvicorn."""
    import uvicorn

    from .logging_config import get_uvicorn_log_config, setup_logging
    from .server import create_app

    config = config_from_args(args).validate()
    if args.verbose:
        config.log_level = "DEBUG"
    setup_logging(config.log_level, config.log_json)

    host, port = config.listen_host_port()
    app = create_app(config)

    console.print(f"[bold blue]Check relay[/bold blue] listening on {host}:{port}, "
                  f"registry {config.registry_checks_url}")
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_config=get_uvicorn_log_config(config.log_json),
        timeout_graceful_shutdown=config.shutdown_timeout,
    )


def cmd_config(args):
    """Show the effective configuration."""
    config = config_from_args(args).validate()

    table = Table(title="Check Relay Configuration", box=box.ROUNDED)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("listen address", config.listen_address)
    table.add_row("registry url", config.registry_checks_url)
    table.add_row("shutdown timeout", f"{config.shutdown_timeout}s")
    table.add_row("default threshold", config.default_threshold)
    table.add_row("severity scale", config.severity_scale)
    table.add_row("query timeout", f"{config.client.query_timeout}s")
    table.add_row("max idle connections", str(config.client.query_max_idle_connection_count))
    table.add_row("idle connection timeout", f"{config.client.query_idle_connection_timeout}s")
    duration = config.cache.registry_cache_duration
    table.add_row("cache duration", f"{duration}s" if duration > 0 else "[yellow]disabled[/yellow]")
    for f in fields(StatusCodes):
        table.add_row(f"{f.name.replace('_', ' ')} status", str(getattr(config.status_codes, f.name)))

    console.print(table)


def cmd_version(args):
    """Show build information."""
    console.print(format_info(), highlight=False)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="checkrelay",
        description="Registry check monitoring endpoint",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command")

    p_server = subparsers.add_parser("server", help="Run the relay server")
    add_config_arguments(p_server)
    p_server.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    p_server.set_defaults(func=cmd_server)

    p_config = subparsers.add_parser("config", help="Show the effective configuration")
    add_config_arguments(p_config)
    p_config.set_defaults(func=cmd_config)

    p_version = subparsers.add_parser("version", help="Show build information")
    p_version.set_defaults(func=cmd_version)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        args.func(args)
    except (FileNotFoundError, ValueError, CheckRelayError) as e:
        console.print(f"[red]{e}[/red]")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

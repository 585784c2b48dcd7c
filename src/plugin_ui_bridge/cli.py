"""plugin-ui-bridge CLI.

Runs a plugin UI server as a child process of its host. The host talks to it
over stdin/stdout; logs go to stderr.

Usage:
    plugin-ui-bridge serve myplugin.ui:setup        # setup(server) registers handlers
    plugin-ui-bridge serve myplugin.ui:MyServer     # PluginUiServer subclass
    plugin-ui-bridge env                            # show host environment metadata
"""

from __future__ import annotations

import asyncio
import importlib
import inspect
import json
import logging
import os
import sys
from collections.abc import Callable
from typing import Any

import click

from .config import BridgeConfig, ServerEnvironment
from .liveness import LivenessMonitor
from .server import PluginUiServer
from .transport import StdioTransport

logger = logging.getLogger(__name__)


def load_target(target: str) -> Any:
    """Import ``module:attribute``.

    Raises:
        click.BadParameter: If the target is malformed or cannot be imported
    """
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise click.BadParameter(f"expected MODULE:ATTR, got {target!r}", param_hint="TARGET")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"cannot import {module_name!r}: {e}", param_hint="TARGET") from e
    try:
        return getattr(module, attr)
    except AttributeError as e:
        raise click.BadParameter(
            f"{module_name!r} has no attribute {attr!r}", param_hint="TARGET"
        ) from e


def build_server(target: Any, transport: StdioTransport) -> PluginUiServer:
    """Create the server from a PluginUiServer subclass or a setup callable."""
    if inspect.isclass(target) and issubclass(target, PluginUiServer):
        return target(transport)
    if callable(target):
        server = PluginUiServer(transport)
        result = target(server)
        if inspect.isawaitable(result):
            raise click.BadParameter("setup callable must be synchronous", param_hint="TARGET")
        return server
    raise click.BadParameter(
        f"{target!r} is neither a PluginUiServer subclass nor a callable", param_hint="TARGET"
    )


async def run_server(
    target: Any,
    config: BridgeConfig,
    transport: StdioTransport | None = None,
    terminate: Callable[[], None] | None = None,
) -> None:
    """Serve requests over stdio until the host goes away."""
    transport = transport or StdioTransport(max_message_size=config.max_message_size)
    server = build_server(target, transport)
    server.attach()

    monitor_kwargs: dict[str, Any] = {"interval": config.liveness_interval}
    if terminate is not None:
        monitor_kwargs["terminate"] = terminate
    monitor = LivenessMonitor(transport, **monitor_kwargs)

    transport.start()
    monitor.start()
    try:
        await server.ready()
        logger.info(f"Serving {', '.join(server.registry.paths) or 'no paths'}")
        await transport.wait_closed()
        await server.drain()
    finally:
        await monitor.stop()
        await server.close()


def configure_logging(level: str) -> None:
    # stdout carries the protocol
    logging.basicConfig(
        level=level.upper(),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


@click.group()
@click.option(
    "--log-level",
    default=None,
    help="Log level (default: PLUGIN_UI_LOG_LEVEL or WARNING)",
)
@click.pass_context
def main(ctx: click.Context, log_level: str | None) -> None:
    """Plugin UI bridge - request/response and push events for plugin UIs."""
    try:
        config = BridgeConfig.from_env()
    except ValueError as e:
        raise click.UsageError(str(e)) from e
    configure_logging(log_level or config.log_level)
    ctx.obj = config


@main.command()
@click.argument("target")
@click.option(
    "--allow-tty",
    is_flag=True,
    hidden=True,
    help="Run even when stdin is a terminal (debugging)",
)
@click.pass_obj
def serve(config: BridgeConfig, target: str, allow_tty: bool) -> None:
    """Serve TARGET (MODULE:ATTR) over stdin/stdout."""
    if sys.stdin.isatty() and not allow_tty:
        click.echo("This script can only run as a child process.", err=True)
        sys.exit(1)

    # Let "module:attr" resolve relative to the working directory
    if os.getcwd() not in sys.path:
        sys.path.insert(0, os.getcwd())

    server_target = load_target(target)
    try:
        asyncio.run(run_server(server_target, config))
    except KeyboardInterrupt:
        pass


@main.command()
def env() -> None:
    """Print host environment metadata as JSON."""
    click.echo(json.dumps(ServerEnvironment.from_env().to_dict(), indent=2))


if __name__ == "__main__":
    main()

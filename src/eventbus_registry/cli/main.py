"""
EventBus Registry CLI

Commands:
- serve: host a registry on an in-process bus
- config: show the effective configuration
"""

import asyncio
import json
import logging
from typing import Optional

import click
import yaml
from rich import box
from rich.console import Console
from rich.table import Table

from eventbus_registry import __version__
from eventbus_registry.config import RegistryConfig, build_config, load_config
from eventbus_registry.events import InMemoryEventBus, Message
from eventbus_registry.exceptions import ConfigError
from eventbus_registry.observability import ManagementConsole, serve_metrics
from eventbus_registry.registry import EXPIRED_CHANNEL, PING_CHANNEL, Registry

logger = logging.getLogger(__name__)

console = Console()

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _resolve_config(config_path: Optional[str], **overrides) -> RegistryConfig:
    """Load the config file (if any) and apply CLI overrides on top."""
    try:
        base = load_config(config_path) if config_path else build_config()
        return base.with_overrides(**overrides)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc


async def _run(registry: Registry, duration: float) -> None:
    await registry.start()
    try:
        if duration > 0:
            await asyncio.sleep(duration)
        else:
            await asyncio.Event().wait()
    finally:
        await registry.stop()


@click.group()
@click.version_option(__version__, prog_name="eventbus-registry")
def app():
    """EventBus Registry - liveness tracking for bus addresses."""
    pass


@app.command()
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), default=None,
              help="YAML config file.")
@click.option("--expiration", type=click.IntRange(min=0), default=None,
              help="Expiration age in ms (0 disables).")
@click.option("--ping", type=click.IntRange(min=0), default=None,
              help="Heartbeat interval in ms (0 disables).")
@click.option("--sweep", type=click.IntRange(min=0), default=None,
              help="Sweep interval in ms (0 disables).")
@click.option("--metrics-port", type=click.IntRange(min=0, max=65535), default=None,
              help="Serve Prometheus metrics on this port (0 disables).")
@click.option("--duration", type=float, default=0.0, show_default=True,
              help="Stop after this many seconds (0 runs until interrupted).")
@click.option("--log-level",
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
              default="INFO", show_default=True)
def serve(
    config_path: Optional[str],
    expiration: Optional[int],
    ping: Optional[int],
    sweep: Optional[int],
    metrics_port: Optional[int],
    duration: float,
    log_level: str,
):
    """Host a registry on an in-process bus."""
    logging.basicConfig(level=log_level.upper(), format=LOG_FORMAT)

    config = _resolve_config(
        config_path,
        expiration=expiration,
        ping=ping,
        sweep=sweep,
        metrics_port=metrics_port,
    )

    bus = InMemoryEventBus()
    management = ManagementConsole()
    registry = Registry(bus, config, console=management)

    def on_ping(message: Message) -> None:
        logger.debug("Heartbeat %s", message.body)

    def on_expired(message: Message) -> None:
        logger.info("Address expired: %s", message.body)

    bus.subscribe(PING_CHANNEL, on_ping)
    bus.subscribe(EXPIRED_CHANNEL, on_expired)

    if config.metrics_port:
        serve_metrics(management, config.metrics_port)

    try:
        asyncio.run(_run(registry, duration))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


@app.command("config")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), default=None,
              help="YAML config file.")
@click.option(
    "--format", "fmt",
    type=click.Choice(["table", "json", "yaml"]),
    default="table",
    help="Output format (table, json, or yaml).",
)
def show_config(config_path: Optional[str], fmt: str):
    """Show the effective registry configuration."""
    config = _resolve_config(config_path)
    data = config.model_dump()

    if fmt == "json":
        click.echo(json.dumps(data, indent=2))
        return
    if fmt == "yaml":
        click.echo(yaml.dump(data, default_flow_style=False, sort_keys=False))
        return

    table = Table(title="EventBus Registry Configuration", box=box.ROUNDED)
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", justify="right")
    table.add_column("State")

    states = {
        "expiration": config.expiration_enabled,
        "ping": config.ping_enabled,
        "sweep": config.sweep_enabled,
        "metrics_port": bool(config.metrics_port),
    }
    for key, value in data.items():
        enabled = states.get(key)
        if enabled is None:
            state = ""
        else:
            state = "[green]enabled[/green]" if enabled else "[dim]disabled[/dim]"
        table.add_row(key, str(value), state)

    console.print(table)


def main():
    """Console script entry point."""
    app()


if __name__ == "__main__":
    main()

"""CLI for hmip-sync: run the bridge and inspect its accessory cache."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from pathlib import Path

import click

from hmip_sync import __version__
from hmip_sync.accessories import AccessoryRegistry, accessory_uuid
from hmip_sync.config import ConfigError, HmIPConfig, load_config
from hmip_sync.core.logging import configure_logging

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("hmip.toml")

_config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=DEFAULT_CONFIG_PATH,
    show_default=True,
    help="Path to hmip.toml (or the directory containing it)",
)


def _load(config_path: Path) -> HmIPConfig:
    try:
        return load_config(config_path)
    except ConfigError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """hmip-sync: mirror a HomematicIP installation as accessories."""


@cli.command()
@_config_option
def run(config_path: Path) -> None:
    """Start the bridge and follow the push feed until interrupted."""
    config = _load(config_path)
    configure_logging(
        level=config.logging.level,
        fmt=config.logging.format,
        log_root=Path(config.logging.log_root) if config.logging.log_root else None,
        secrets=[config.auth_token],
    )
    click.echo(f"Starting bridge for access point {config.access_point}")
    asyncio.run(_run_bridge(config))


@cli.command()
@_config_option
def accessories(config_path: Path) -> None:
    """List the accessories persisted in the cache."""
    config = _load(config_path)
    entries = AccessoryRegistry(config.storage_path).load()
    if not entries:
        click.echo(f"No accessories cached in {config.storage_path}/")
        return

    click.echo(f"{'UUID':<38} {'Type':<30} {'Name'}")
    click.echo("-" * 80)
    for accessory in sorted(entries, key=lambda acc: acc.display_name):
        device_type = accessory.context.get("device", {}).get("type", "?")
        click.echo(f"{accessory.uuid:<38} {device_type:<30} {accessory.display_name}")


@cli.command()
@click.argument("identity")
def uuid(identity: str) -> None:
    """Print the accessory uuid derived from a device IDENTITY."""
    click.echo(accessory_uuid(identity))


async def _run_bridge(config: HmIPConfig) -> None:
    from hmip_sync.bridge import HmIPBridge

    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def _signal_handler() -> None:
        click.echo("\nShutting down...")
        shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    bridge = HmIPBridge(config)
    try:
        if not await bridge.start():
            click.echo("Could not initialise the HomematicIP session; no devices bound.")
            return
        click.echo(f"Bridge running with {len(bridge.engine.devices)} device(s)")
        await shutdown_event.wait()
    finally:
        await bridge.shutdown()

#!/usr/bin/env python3
"""
hwdispatch command-line interface

Dispatch single operations, run item batches, watch for device events and
inspect the operation table and coin registry from a terminal.
"""

from __future__ import annotations

import json
import logging
import sys
import time
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click
import yaml
from rich import box
from rich.console import Console
from rich.table import Table

from hwdispatch.core import config as config_module
from hwdispatch.core.app_context import AppContext
from hwdispatch.core.coin_registry import DEFAULT_REGISTRY
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.event_watcher import DEVICE_CONNECT, EVENT_TYPES
from hwdispatch.core.exceptions import ConfigurationError, HardwareDispatchError
from hwdispatch.core.executor import execute_items
from hwdispatch.core.router import OperationRouter, default_handler_table
from hwdispatch.core.structured_logger import configure_logging

logger = logging.getLogger(__name__)

console = Console()


def _cli_fail(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging."""
    logger.error("CLI error: %s", exc, extra={"event": "cli.error"})
    console.print(f"[bold red]Error:[/] {exc}")
    sys.exit(exit_code)


def _parse_param(raw: str) -> Tuple[str, Any]:
    """Split ``key=value``; the value is read as JSON when it parses, else kept as text."""
    if "=" not in raw:
        raise click.BadParameter(f"Expected key=value, got '{raw}'", param_hint="-p")
    key, value = raw.split("=", 1)
    key = key.strip()
    if not key:
        raise click.BadParameter(f"Missing parameter name in '{raw}'", param_hint="-p")
    try:
        return key, json.loads(value)
    except json.JSONDecodeError:
        return key, value


def _collect_params(pairs: Tuple[str, ...], params_json: Optional[str]) -> Dict[str, Any]:
    params: Dict[str, Any] = {}
    if params_json:
        try:
            loaded = json.loads(params_json)
        except json.JSONDecodeError as exc:
            raise click.BadParameter(f"Invalid JSON: {exc.msg}", param_hint="--params-json") from exc
        if not isinstance(loaded, dict):
            raise click.BadParameter("Must be a JSON object", param_hint="--params-json")
        params.update(loaded)
    for raw in pairs:
        key, value = _parse_param(raw)
        params[key] = value
    return params


def _emit(payload: Any, output_format: str) -> None:
    if output_format == "yaml":
        click.echo(yaml.safe_dump(payload, sort_keys=False, allow_unicode=False))
    else:
        click.echo(json.dumps(payload, indent=2, default=str))


def _build_context(backend: Optional[str], allow_mock: bool) -> AppContext:
    overrides: Dict[str, Any] = {}
    if backend:
        overrides["backend"] = backend
    if allow_mock:
        overrides["allow_mock"] = True
    try:
        return AppContext.from_env(**overrides)
    except ConfigurationError as exc:
        raise click.ClickException(f"Configuration error: {exc}") from exc


def _no_device() -> DeviceSession:
    raise click.ClickException("This command cannot talk to a device")


_backend_option = click.option(
    "--backend",
    type=click.Choice(["trezor", "mock"]),
    default=None,
    help="Device backend (defaults to HWDISPATCH_DEVICE_BACKEND).",
)
_allow_mock_option = click.option(
    "--allow-mock",
    is_flag=True,
    help="Permit the mock backend (testing only).",
)
_output_option = click.option(
    "--output",
    "output_format",
    type=click.Choice(["json", "yaml"]),
    default="json",
    show_default=True,
)


# ============================================================================
# CLI Group
# ============================================================================


@click.group()
@click.option("--log-level", default=config_module.LOG_LEVEL, show_default=True, help="Log level for hwdispatch")
@click.option("--log-json/--no-log-json", default=config_module.LOG_JSON, help="Emit JSON log lines")
@click.pass_context
def cli(ctx: click.Context, log_level: str, log_json: bool):
    """
    hwdispatch - drive a hardware signing device by (resource, operation).
    """
    ctx.ensure_object(dict)
    configure_logging(log_level, json_output=log_json)


@cli.command()
@click.argument("resource")
@click.argument("operation")
@click.option("-p", "--param", "pairs", multiple=True, help="Operation parameter as key=value (repeatable)")
@click.option("--params-json", default=None, help="Operation parameters as a JSON object")
@_backend_option
@_allow_mock_option
@_output_option
def dispatch(
    resource: str,
    operation: str,
    pairs: Tuple[str, ...],
    params_json: Optional[str],
    backend: Optional[str],
    allow_mock: bool,
    output_format: str,
):
    """Run one OPERATION of RESOURCE and print the result."""
    params = _collect_params(pairs, params_json)
    context = _build_context(backend, allow_mock)
    try:
        result = context.dispatch(resource, operation, params)
    except (ConfigurationError, ImportError) as exc:
        raise click.ClickException(f"Configuration error: {exc}") from exc
    _emit(result.to_dict(), output_format)
    if not result.ok:
        sys.exit(1)


@cli.command()
@click.argument("items_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--continue-on-fail", is_flag=True, help="Record failed items and keep going")
@_backend_option
@_allow_mock_option
@_output_option
def batch(
    items_file: Path,
    continue_on_fail: bool,
    backend: Optional[str],
    allow_mock: bool,
    output_format: str,
):
    """Run a list of items from a JSON or YAML file."""
    with items_file.open("r", encoding="utf-8") as handle:
        items = yaml.safe_load(handle) or []
    if not isinstance(items, list):
        raise click.ClickException(f"{items_file} must contain a list of items")
    context = _build_context(backend, allow_mock)
    try:
        outputs = execute_items(context.router, items, continue_on_fail=continue_on_fail)
    except HardwareDispatchError as exc:
        raise click.ClickException(f"{exc.kind}: {exc.message}") from exc
    except (ConfigurationError, ImportError) as exc:
        raise click.ClickException(f"Configuration error: {exc}") from exc
    _emit(outputs, output_format)


@cli.command()
@click.option("--event-type", type=click.Choice(EVENT_TYPES), default=DEVICE_CONNECT, show_default=True)
@click.option(
    "--interval",
    type=click.FloatRange(min=0, min_open=True),
    default=5.0,
    show_default=True,
    help="Seconds between polls",
)
@click.option("--device-id", default="", help="Only report the device with this id")
@click.option("--device-info/--no-device-info", default=True, help="Attach a device summary to events")
@click.option("--once", is_flag=True, help="Poll a single time and exit")
@_backend_option
@_allow_mock_option
def watch(
    event_type: str,
    interval: float,
    device_id: str,
    device_info: bool,
    once: bool,
    backend: Optional[str],
    allow_mock: bool,
):
    """Print device events as JSON lines until interrupted."""
    context = _build_context(backend, allow_mock)
    watcher = context.watcher(
        lambda event: click.echo(json.dumps(event, default=str)),
        event_type=event_type,
        device_id=device_id,
        include_device_info=device_info,
        poll_interval=interval,
    )
    if once:
        try:
            watcher.poll_once()
        except (ConfigurationError, ImportError) as exc:
            raise click.ClickException(f"Configuration error: {exc}") from exc
        return
    watcher.start()
    try:
        while True:
            time.sleep(interval)
    except KeyboardInterrupt:
        console.print("\n[yellow]Watcher stopped[/]")
    finally:
        watcher.stop()


@cli.command()
def operations():
    """List every registered (resource, operation) pair."""
    table = Table(title="Registered operations", box=box.SIMPLE)
    table.add_column("Resource", style="cyan")
    table.add_column("Operation", style="green")
    router = OperationRouter(_no_device, default_handler_table())
    for resource, operation in router.operations():
        table.add_row(resource, operation)
    console.print(table)


@cli.group()
def path():
    """BIP32 path helpers."""


@path.command("parse")
@click.argument("derivation_path")
@_output_option
def path_parse(derivation_path: str, output_format: str):
    """Break DERIVATION_PATH into its components."""
    router = OperationRouter(_no_device, default_handler_table())
    result = router.dispatch("utility", "parsePath", {"path": derivation_path})
    _emit(result.to_dict(), output_format)
    if not result.ok:
        sys.exit(1)


@cli.command()
@click.option("--evm", is_flag=True, help="List EVM chains instead of coins")
def coins(evm: bool):
    """Show the coin registry."""
    if evm:
        table = Table(title="EVM chains", box=box.SIMPLE)
        table.add_column("Chain ID", justify="right")
        table.add_column("Name", style="cyan")
        table.add_column("Shortcut")
        for chain in DEFAULT_REGISTRY.list_evm_chains():
            table.add_row(str(chain.chain_id), chain.name, chain.shortcut)
    else:
        table = Table(title="Coins", box=box.SIMPLE)
        table.add_column("Symbol", style="cyan")
        table.add_column("Name")
        table.add_column("SLIP-44", justify="right")
        table.add_column("Family")
        table.add_column("Default path", style="green")
        for descriptor in DEFAULT_REGISTRY.list_coins():
            table.add_row(
                descriptor.symbol,
                descriptor.display_name,
                str(descriptor.slip44_type),
                descriptor.family,
                str(descriptor.default_path()),
            )
    console.print(table)


# ============================================================================
# Main Entry Point
# ============================================================================


def main():
    """Main CLI entry point"""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/]")
        sys.exit(130)
    except (HardwareDispatchError, ValueError) as exc:
        _cli_fail(exc)


if __name__ == "__main__":
    main()

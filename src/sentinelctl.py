#!/usr/bin/env python3
"""
CLI tool for sentinelctl
Provides a Terraform-like interface for managing Sentinel alert rules
"""

import asyncio
import json
import logging
import sys

import click
import yaml
from tabulate import tabulate

from config import Config, get_config
from controller import Controller, load_resource_specs
from errors import SentinelError
from plugins.base import ChangeAction
from plugins.reconcilers.base import ReconcilerContext
from plugins.registry import register_builtin_resources
from state import StateStore

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _run(config: Config, state: StateStore, action):
    """Run `action(controller)` in a fresh event loop."""

    async def runner():
        registry = register_builtin_resources()
        ctx = ReconcilerContext(config=config)
        controller = Controller(state, ctx, registry, config.controller)
        try:
            return await action(controller)
        finally:
            await ctx.close()

    return asyncio.run(runner())


def _load_state(config: Config) -> StateStore:
    return StateStore(config.controller.state_path).load()


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _echo_plan(changes) -> int:
    """Print a plan and return the number of pending changes."""
    pending = [c for c in changes if c.action != ChangeAction.NOOP]
    if not pending:
        click.echo("No changes. Resources match the configuration.")
        return 0

    rows = [
        [c.address, c.action.value, ", ".join(c.changed_attributes) or "-"]
        for c in pending
    ]
    click.echo(tabulate(rows, headers=["Address", "Action", "Changed"], tablefmt="grid"))

    to_add = sum(c.action in (ChangeAction.CREATE, ChangeAction.REPLACE) for c in pending)
    to_change = sum(c.action == ChangeAction.UPDATE for c in pending)
    to_destroy = sum(c.action in (ChangeAction.DELETE, ChangeAction.REPLACE) for c in pending)
    click.echo(
        f"\nPlan: {to_add} to add, {to_change} to change, {to_destroy} to destroy."
    )
    return len(pending)


def _echo_results(results) -> None:
    """Print results and exit non-zero if any failed."""
    if not results:
        return

    rows = [
        [r.address, r.action.value, "✓" if r.success else "✗", r.message]
        for r in results
    ]
    click.echo(
        tabulate(rows, headers=["Address", "Action", "Success", "Message"], tablefmt="grid")
    )
    if not all(r.success for r in results):
        sys.exit(1)


@click.group()
@click.option("--state", "state_path", default=None, help="Path to the state file")
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Log level (defaults to LOG_LEVEL or INFO)",
)
@click.pass_context
def cli(ctx, state_path, log_level):
    """sentinelctl - declarative management of Microsoft Sentinel alert rules"""
    config = get_config()
    if state_path:
        config.controller.state_path = state_path
    if log_level:
        config.logging.log_level = log_level.upper()

    logging.basicConfig(level=config.logging.log_level, format=LOG_FORMAT)
    ctx.obj = config


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
@click.pass_obj
def validate(config, filename):
    """Validate a configuration file"""
    try:
        specs = load_resource_specs(filename)
    except SentinelError as e:
        _fail(str(e))

    controller = Controller(
        StateStore(config.controller.state_path),
        ReconcilerContext(config=config),
        register_builtin_resources(),
        config.controller,
    )
    errors = controller.validate(specs)
    if errors:
        for error in errors:
            click.echo(f"Error: {error}", err=True)
        sys.exit(1)
    click.echo(f"Configuration is valid ({len(specs)} resources).")


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
@click.pass_obj
def plan(config, filename):
    """Show the changes needed to match a configuration file"""
    try:
        specs = load_resource_specs(filename)
        changes = _run(config, _load_state(config), lambda c: c.plan(specs))
    except SentinelError as e:
        _fail(str(e))

    _echo_plan(changes)


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
@click.option("--auto-approve", is_flag=True, help="Skip interactive approval")
@click.pass_obj
def apply(config, filename, auto_approve):
    """Create, update or delete resources to match a configuration file"""
    try:
        specs = load_resource_specs(filename)
        state = _load_state(config)
        changes = _run(config, state, lambda c: c.plan(specs))
    except SentinelError as e:
        _fail(str(e))

    if not _echo_plan(changes):
        return
    if not auto_approve:
        click.confirm("Do you want to perform these actions?", abort=True)

    results = _run(config, state, lambda c: c.apply(specs, changes))
    _echo_results(results)


@cli.command()
@click.pass_obj
def refresh(config):
    """Update the state file from the remote resources"""
    try:
        results = _run(config, _load_state(config), lambda c: c.refresh())
    except SentinelError as e:
        _fail(str(e))

    if not results:
        click.echo("No resources in state.")
    _echo_results(results)


@cli.command(name="import")
@click.argument("resource_type")
@click.argument("name")
@click.argument("resource_id")
@click.pass_obj
def import_(config, resource_type, name, resource_id):
    """Adopt an existing remote resource into state"""
    try:
        result = _run(
            config,
            _load_state(config),
            lambda c: c.import_resource(resource_type, name, resource_id),
        )
    except (SentinelError, ValueError) as e:
        _fail(str(e))

    click.echo(f"{result.address}: {result.message}")
    click.echo(f"ID: {result.resource_id}")


@cli.command()
@click.argument("addresses", nargs=-1)
@click.option("--auto-approve", is_flag=True, help="Skip interactive approval")
@click.pass_obj
def destroy(config, addresses, auto_approve):
    """Delete managed resources (all of them unless addresses are given)"""
    try:
        state = _load_state(config)
    except SentinelError as e:
        _fail(str(e))

    targets = list(addresses) or state.addresses()
    if not targets:
        click.echo("No resources in state.")
        return

    for address in targets:
        click.echo(f"  - {address}")
    if not auto_approve:
        click.confirm("Do you really want to destroy these resources?", abort=True)

    results = _run(config, state, lambda c: c.destroy(list(addresses) or None))
    _echo_results(results)


@cli.group(name="state")
def state_group():
    """Inspect the state file"""
    pass


@state_group.command(name="list")
@click.pass_obj
def state_list(config):
    """List managed resources"""
    try:
        state = _load_state(config)
    except SentinelError as e:
        _fail(str(e))

    rows = []
    for address in state.addresses():
        entry = state.get(address)
        rows.append([address, entry["id"]])
    click.echo(tabulate(rows, headers=["Address", "ID"], tablefmt="grid"))


@state_group.command(name="show")
@click.argument("address")
@click.option("--output", "-o", type=click.Choice(["json", "yaml"]), default="yaml")
@click.pass_obj
def state_show(config, address, output):
    """Show the state of a managed resource"""
    try:
        state = _load_state(config)
    except SentinelError as e:
        _fail(str(e))

    entry = state.get(address)
    if entry is None:
        _fail(f"Resource not in state: {address}")

    if output == "json":
        click.echo(json.dumps(entry, indent=2))
    else:
        click.echo(yaml.dump(entry, default_flow_style=False))


if __name__ == "__main__":
    cli()

# cli.py - Command line interface for Marvin
"""
# Marvin
# Copyright (c) 2026 Dale Chapman
# Licensed under the MIT License. See LICENSE in the project root.

Marvin CLI - Work with LMS account data from the shell

Usage:
    marvin init [--force]
    marvin sis-import accounts.csv [--add-sticky] [--override-sticky] [--clear-sticky]
    marvin sis-restore BATCH_ID
    marvin accounts [--json]
    marvin custom-data get|set|delete USER NAMESPACE [SCOPE] [VALUE]
    marvin media to-html5|from-html5 FILE
    marvin qti parse FILE [--type TYPE] [--vista-fib]
    marvin version

State (imported accounts, custom data) lives in the configured data_dir.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Optional, Tuple

import click
from click.core import ParameterSource

from marvin import __version__
from marvin.config_utils import MarvinConfig, create_config_template, get_config
from marvin.custom_data import CustomDataStore, InvalidScope, WriteConflict
from marvin.errors import MarvinError
from marvin import icons
from marvin.icons import fence, setup_logging, use_ascii_icons
from marvin.media_tag import MediaUrlHelper, rewrite_incoming, rewrite_outgoing
from marvin.qti import parse_question
from marvin.sis_import import AccountImporter, AccountRegistry, ImportResult, StickinessOptions


# ============================================================================
# Configuration & Utilities
# ============================================================================

class MarvinContext:
    """Shared context for CLI commands"""

    def __init__(self, base_dir: Optional[Path] = None):
        self.base_dir = base_dir or Path.cwd()
        self._config: Optional[MarvinConfig] = None

    @property
    def config(self) -> MarvinConfig:
        if self._config is None:
            self._config = get_config(self.base_dir)
        return self._config

    def load_registry(self) -> AccountRegistry:
        return AccountRegistry.load(self.config.accounts_path, root_name=self.config.root_account_name)

    def save_registry(self, registry: AccountRegistry) -> None:
        registry.save(self.config.accounts_path)

    def custom_data_store(self) -> CustomDataStore:
        return CustomDataStore(self.config.custom_data_path)


def fail(error: Exception) -> None:
    """Print an error and exit with status 1."""
    click.echo(str(error), err=True)
    sys.exit(1)


def read_input(path: str) -> str:
    if path == "-":
        return click.get_text_stream("stdin").read()
    return Path(path).read_text(encoding="utf-8")


def parse_value(raw: str) -> Any:
    """Values are JSON when they parse as JSON, plain strings otherwise."""
    try:
        return json.loads(raw)
    except ValueError:
        return raw


# ============================================================================
# Click Group Setup
# ============================================================================

@click.group()
@click.option("-v", "--verbose", count=True, help="More log output (-vv for debug)")
@click.option("-q", "--quiet", is_flag=True, help="Only show warnings and errors")
@click.option("--ascii", "ascii_icons", is_flag=True, help="Use ASCII instead of emoji icons")
@click.pass_context
def cli(ctx, verbose: int, quiet: bool, ascii_icons: bool):
    """
    Marvin - LMS account and content tools

    Import SIS accounts, manage custom data and convert course content.
    """
    if ascii_icons:
        use_ascii_icons()
    setup_logging(0 if quiet else 1 + verbose)
    ctx.obj = MarvinContext()


# ============================================================================
# Init
# ============================================================================

@cli.command()
@click.option("--force", is_flag=True, help="Overwrite an existing marvin.yaml")
@click.pass_obj
def init(ctx: MarvinContext, force: bool):
    """
    Create marvin.yaml and the data directory

    Examples:
        marvin init
        marvin init --force
    """
    yaml_path = ctx.base_dir / "marvin.yaml"
    if yaml_path.exists() and not force:
        click.echo(f"  {icons.SKIP} marvin.yaml exists (use --force to overwrite)")
    else:
        yaml_path.write_text(create_config_template(), encoding="utf-8")
        click.echo(f"  {icons.CREATE} Created marvin.yaml")

    data_dir = ctx.config.data_dir
    if data_dir.exists():
        click.echo(f"  {icons.SKIP} {data_dir} exists")
    else:
        data_dir.mkdir(parents=True)
        click.echo(f"  {icons.CREATE} Created {data_dir}")


# ============================================================================
# SIS Import
# ============================================================================

def _print_result(result: ImportResult) -> None:
    click.echo(
        f"{icons.ACCOUNT} {result.created} created, {result.updated} updated, "
        f"{result.unchanged} unchanged"
    )
    for filename, message in result.warnings:
        click.echo(f"  {icons.WARNING} {filename}: {message}")
    for filename, message in result.errors:
        click.echo(f"  {icons.ERROR} {filename}: {message}", err=True)


def _flag_or_default(name: str, value: bool, default: bool) -> bool:
    """A flag given on the command line wins over the configured default."""
    source = click.get_current_context().get_parameter_source(name)
    return value if source == ParameterSource.COMMANDLINE else default


@cli.command("sis-import")
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--add-sticky", is_flag=True, help="Make written fields sticky")
@click.option("--override-sticky", is_flag=True, help="Allow overwriting sticky fields")
@click.option("--clear-sticky", is_flag=True, help="Release sticky fields that get written")
@click.pass_obj
def sis_import(ctx: MarvinContext, files: Tuple[str, ...], add_sticky: bool,
               override_sticky: bool, clear_sticky: bool):
    """
    Import accounts.csv files

    Flags that are not given fall back to the `sis:` settings in marvin.yaml.

    Examples:
        marvin sis-import accounts.csv
        marvin sis-import accounts.csv --override-sticky
    """
    defaults = StickinessOptions.from_settings(ctx.config.sis)
    stickiness = StickinessOptions(
        add=_flag_or_default("add_sticky", add_sticky, defaults.add),
        override=_flag_or_default("override_sticky", override_sticky, defaults.override),
        clear=_flag_or_default("clear_sticky", clear_sticky, defaults.clear),
    )

    try:
        registry = ctx.load_registry()
        batch = registry.create_batch({
            "add_sis_stickiness": stickiness.add,
            "override_sis_stickiness": stickiness.override,
            "clear_sis_stickiness": stickiness.clear,
        })
        importer = AccountImporter(registry, batch=batch, stickiness=stickiness)

        total = ImportResult()
        for path in files:
            click.echo(fence(f"Importing {Path(path).name}"))
            result = importer.process_file(Path(path))
            _print_result(result)
            total.merge(result)

        ctx.save_registry(registry)
    except MarvinError as e:
        fail(e)

    click.echo(f"\n{icons.INFO} SIS batch {batch.id}: {batch.workflow_state}")
    if not total.ok:
        sys.exit(1)


@cli.command("sis-restore")
@click.argument("batch_id", type=int)
@click.pass_obj
def sis_restore(ctx: MarvinContext, batch_id: int):
    """Roll accounts touched by a SIS batch back to their earlier state"""
    try:
        registry = ctx.load_registry()
        batch = registry.get_batch(batch_id)
        count = registry.restore_states_for_batch(batch)
        ctx.save_registry(registry)
    except MarvinError as e:
        fail(e)
    click.echo(f"{icons.RESTORE} Restored {count} account state(s) from batch {batch_id}")


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--all", "show_all", is_flag=True, help="Include deleted accounts")
@click.pass_obj
def accounts(ctx: MarvinContext, as_json: bool, show_all: bool):
    """List accounts"""
    registry = ctx.load_registry()
    rows = [a for a in registry.all_accounts() if show_all or a.active]

    if as_json:
        click.echo(json.dumps([a.to_dict() for a in rows], indent=2, default=str))
        return

    if not rows:
        click.echo("No accounts found.")
        return

    click.echo(f"\n{icons.LIST} ACCOUNTS ({len(rows)}):")
    for account in rows:
        sis = f" [{account.sis_source_id}]" if account.sis_source_id else ""
        state = "" if account.active else f" ({account.workflow_state})"
        parent = f" <- {account.parent_account_id}" if account.parent_account_id else ""
        click.echo(f"  {account.id:>4} {account.name}{sis}{parent}{state}")


# ============================================================================
# Custom Data
# ============================================================================

@cli.group("custom-data")
def custom_data():
    """Read and write per-user custom data"""


@custom_data.command("get")
@click.argument("user_id")
@click.argument("namespace")
@click.argument("scope", default="")
@click.pass_obj
def custom_data_get(ctx: MarvinContext, user_id: str, namespace: str, scope: str):
    """Print the value stored at SCOPE (everything when omitted)"""
    record = ctx.custom_data_store().find(user_id, namespace)
    if record is None:
        fail(MarvinError("No custom data", context={"user": user_id, "namespace": namespace}))
    try:
        value = record.get_data(scope)
    except InvalidScope as e:
        fail(e)
    if value is None:
        fail(MarvinError("No data at scope", context={"scope": scope or "/"}))
    click.echo(json.dumps(value, indent=2))


@custom_data.command("set")
@click.argument("user_id")
@click.argument("namespace")
@click.argument("scope")
@click.argument("value")
@click.pass_obj
def custom_data_set(ctx: MarvinContext, user_id: str, namespace: str, scope: str, value: str):
    """Store VALUE (JSON or a plain string) at SCOPE"""
    store = ctx.custom_data_store()
    try:
        with store.lock_and_save(user_id, namespace) as record:
            overwrote = record.set_data(scope, parse_value(value))
    except WriteConflict as e:
        click.echo(json.dumps(e.as_json(), indent=2, default=str), err=True)
        fail(e)
    except MarvinError as e:
        fail(e)
    click.echo(f"{icons.EDIT if overwrote else icons.CREATE} {namespace}/{scope}")


@custom_data.command("delete")
@click.argument("user_id")
@click.argument("namespace")
@click.argument("scope", default="")
@click.pass_obj
def custom_data_delete(ctx: MarvinContext, user_id: str, namespace: str, scope: str):
    """Remove the value at SCOPE (everything when omitted)"""
    store = ctx.custom_data_store()
    try:
        with store.lock_and_save(user_id, namespace) as record:
            removed = record.delete_data(scope)
    except MarvinError as e:
        fail(e)
    click.echo(json.dumps(removed, indent=2))


# ============================================================================
# Media
# ============================================================================

@cli.group()
def media():
    """Convert media comments in HTML"""


@media.command("to-html5")
@click.argument("path", default="-")
@click.pass_obj
def media_to_html5(ctx: MarvinContext, path: str):
    """Rewrite media comment anchors as <audio>/<video> elements"""
    html = read_input(path)
    click.echo(rewrite_outgoing(html, MediaUrlHelper(ctx.config.media_host)))


@media.command("from-html5")
@click.argument("path", default="-")
def media_from_html5(path: str):
    """Rewrite <audio>/<video> media elements as anchors"""
    click.echo(rewrite_incoming(read_input(path)))


# ============================================================================
# QTI
# ============================================================================

@cli.group()
def qti():
    """Inspect QTI assessment items"""


@qti.command("parse")
@click.argument("path", default="-")
@click.option("--type", "question_type", help="Question type to assume, e.g. fill_in_multiple_blanks_question")
@click.option("--vista-fib", is_flag=True, help="Item is a Vista fill-in-the-blank export")
def qti_parse(path: str, question_type: Optional[str], vista_fib: bool):
    """Print the question parsed from a QTI item as JSON"""
    try:
        question = parse_question(read_input(path), question_type=question_type, is_vista_fib=vista_fib)
    except MarvinError as e:
        fail(e)
    click.echo(json.dumps(question, indent=2))


# ============================================================================
# Version
# ============================================================================

@cli.command()
def version():
    """Show Marvin version"""
    click.echo(f"Marvin CLI v{__version__}")
    click.echo("SIS import, custom data and content tools for Canvas-style LMS data")


# ============================================================================
# Entry Point
# ============================================================================

if __name__ == "__main__":
    cli()

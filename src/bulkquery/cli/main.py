#!/usr/bin/env python3
"""Command-line front end for running one script against many databases."""
import json
import pathlib
from typing import List, Optional

import typer
from typing_extensions import Annotated

from bulkquery.common.errors import BulkQueryError
from bulkquery.common.logger import configure_logging
from bulkquery.common.settings import settings
from bulkquery.execution.coordinator import run_bulk_query
from bulkquery.selection.tree import CheckState, build_selection_tree, selected_targets
from bulkquery.targets.config import (
    BulkQueryConfig,
    add_server,
    load_config,
    remove_server,
    resolve_targets,
    save_config,
    select_databases,
)
from bulkquery.targets.discovery import discover_servers, list_databases
from bulkquery.targets.models import ServerDefinition, Target
from bulkquery.cli.reporting import ConsolePresenter

app = typer.Typer(
    name="bulkquery",
    help="Run one SQL script against many databases and reconcile the results.",
    no_args_is_help=True,
    add_completion=False,
)
servers_app = typer.Typer(help="Manage registered servers and database selections.", no_args_is_help=True)
app.add_typer(servers_app, name="servers")

presenter = ConsolePresenter()

ConfigOption = Annotated[Optional[pathlib.Path], typer.Option("--config", help="Path to servers config YAML")]


def _config_path(config: Optional[pathlib.Path]) -> pathlib.Path:
    return config if config is not None else pathlib.Path(settings.config_path)


def _load(config: Optional[pathlib.Path]) -> BulkQueryConfig:
    try:
        return load_config(_config_path(config))
    except BulkQueryError as e:
        presenter.print_error(str(e))
        raise typer.Exit(code=2)


def _parse_target(cfg: BulkQueryConfig, spec: str) -> Target:
    server_name, sep, database = spec.partition("/")
    if not sep or not server_name or not database:
        presenter.print_error(f"Invalid target '{spec}', expected SERVER/DATABASE.")
        raise typer.Exit(code=2)
    try:
        return cfg.get_server(server_name).target(database)
    except BulkQueryError as e:
        presenter.print_error(str(e))
        raise typer.Exit(code=2)


@app.callback()
def global_callback(
    env: Annotated[Optional[str], typer.Option("--env", "-e", help="Environment name; loads .env.<name>.")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
):
    """
    BulkQuery CLI Entry Point.
    """
    if env:
        settings.configure_env(env)
    configure_logging(
        level="DEBUG" if verbose else settings.log_level,
        json_format=settings.log_json,
    )


@app.command()
def run(
    script_file: Annotated[pathlib.Path, typer.Argument(help="SQL script; GO lines separate batches", exists=True, dir_okay=False)],
    config: ConfigOption = None,
    target: Annotated[Optional[List[str]], typer.Option("--target", "-t", help="SERVER/DATABASE, repeatable. Defaults to the saved selection.")] = None,
    timeout: Annotated[Optional[int], typer.Option(help="Per-statement timeout in seconds (0 = none)")] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the aggregate as JSON")] = False,
):
    """
    Execute a script against every selected database.
    """
    cfg = _load(config)
    targets = [_parse_target(cfg, spec) for spec in target] if target else resolve_targets(cfg)
    if timeout is None:
        timeout = cfg.sql_timeout

    try:
        script = script_file.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        presenter.print_error(f"{script_file.name} is not valid UTF-8: {e.reason} at byte {e.start}.")
        raise typer.Exit(code=2)

    try:
        aggregate = run_bulk_query(targets, script, timeout)
    except BulkQueryError as e:
        presenter.print_error(str(e))
        raise typer.Exit(code=2)

    if as_json:
        typer.echo(aggregate.model_dump_json(indent=2))
    else:
        presenter.print_result(aggregate, title=script_file.name)

    if targets and aggregate.succeeded == 0:
        raise typer.Exit(code=1)


@servers_app.command("list")
def list_servers(config: ConfigOption = None):
    """List registered servers and their selected databases."""
    cfg = _load(config)
    if not cfg.servers:
        presenter.print_info("No servers registered.")
        return
    for server in cfg.servers:
        selected = ", ".join(server.selected_databases) or "-"
        presenter.console.print(f"{server.display_name}  {server.safe_url()}  [{selected}]", markup=False)


@servers_app.command("add")
def add(
    name: Annotated[str, typer.Argument(help="Unique display name")],
    url: Annotated[str, typer.Argument(help="SQLAlchemy connection URL of the server")],
    config: ConfigOption = None,
):
    """Register a server."""
    path = _config_path(config)
    cfg = _load(config)
    try:
        cfg = add_server(cfg, ServerDefinition(display_name=name, connection_url=url))
    except BulkQueryError as e:
        presenter.print_error(str(e))
        raise typer.Exit(code=1)
    save_config(path, cfg)
    presenter.print_success(f"Added server {name}.")


@servers_app.command("remove")
def remove(name: str, config: ConfigOption = None):
    """Forget a server and its selection."""
    path = _config_path(config)
    cfg = _load(config)
    try:
        cfg = remove_server(cfg, name)
    except BulkQueryError as e:
        presenter.print_error(str(e))
        raise typer.Exit(code=1)
    save_config(path, cfg)
    presenter.print_success(f"Removed server {name}.")


@servers_app.command("databases")
def databases(
    name: str,
    config: ConfigOption = None,
    show_system: Annotated[bool, typer.Option("--show-system", help="Include system databases")] = False,
):
    """List the databases on one server."""
    cfg = _load(config)
    try:
        server = cfg.get_server(name)
        names = list_databases(server, hide_system_databases=cfg.hide_system_databases and not show_system)
    except Exception as e:
        presenter.print_error(f"{name}: {e}")
        raise typer.Exit(code=1)
    for database in names:
        typer.echo(database)


@servers_app.command("tree")
def tree(config: ConfigOption = None):
    """Discover databases on every server and show the current selection."""
    cfg = _load(config)
    roots = build_selection_tree(discover_servers(cfg.servers, hide_system_databases=cfg.hide_system_databases))
    presenter.print_tree(roots)
    presenter.print_info(f"{len(selected_targets(roots))} database(s) selected.")


@servers_app.command("select")
def select(
    name: str,
    database: Annotated[Optional[List[str]], typer.Argument(help="Databases to toggle on")] = None,
    all_: Annotated[bool, typer.Option("--all", help="Select every database on the server")] = False,
    none: Annotated[bool, typer.Option("--none", help="Clear the server's selection")] = False,
    config: ConfigOption = None,
):
    """Change which databases of a server take part in bulk queries."""
    path = _config_path(config)
    cfg = _load(config)
    try:
        server = cfg.get_server(name)
    except BulkQueryError as e:
        presenter.print_error(str(e))
        raise typer.Exit(code=1)

    roots = build_selection_tree(discover_servers([server], hide_system_databases=cfg.hide_system_databases))
    node = roots[0]
    if not node.children and not none:
        presenter.print_error(f"{node.name}: no databases available to select.")
        raise typer.Exit(code=1)

    if all_ or none:
        node.set_state(CheckState.YES if all_ else CheckState.NO)
    for db_name in database or []:
        leaf = node.find(db_name)
        if leaf is None:
            presenter.print_error(f"{name}: database '{db_name}' not found.")
            raise typer.Exit(code=1)
        leaf.set_state(CheckState.YES)

    chosen = [t.database for t in selected_targets([node])]
    save_config(path, select_databases(cfg, name, chosen))
    presenter.print_tree([node])
    presenter.print_success(f"{len(chosen)} database(s) selected on {name}.")


def main():
    app()


if __name__ == "__main__":
    main()

"""CLI for Yearbird: manage categories and inspect a year of calendar events."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

import click

from yearbird import __version__
from yearbird.calendar import (
    CalendarClient,
    CalendarError,
    CalendarUnauthorizedError,
    CalendarVisibility,
)
from yearbird.calendar.loader import load_year
from yearbird.categories import CategoryInput, CategoryRegistry, CategoryResult, CategoryStore
from yearbird.categories.models import Category
from yearbird.config import ConfigError, YearbirdConfig, load_config
from yearbird.core.logging import configure_logging
from yearbird.storage import LocalFileKeyValueStore

logger = logging.getLogger(__name__)

EXIT_FAILURE = 1
EXIT_UNAUTHORIZED = 2
TOKEN_ENV_VAR = "YEARBIRD_ACCESS_TOKEN"


@dataclass
class AppContext:
    """Objects shared by every subcommand of one invocation."""

    config: YearbirdConfig
    store: CategoryStore
    registry: CategoryRegistry
    visibility: CalendarVisibility


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to yearbird.toml (or its directory)",
)
@click.option("--storage-dir", type=click.Path(path_type=Path), default=None)
@click.option("--log-level", default=None, help="Override the configured log level")
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Path | None,
    storage_dir: Path | None,
    log_level: str | None,
) -> None:
    """Yearbird: your calendar year at a glance."""
    try:
        config = load_config(config_path)
    except ConfigError as exc:
        click.echo(f"Config error: {exc}", err=True)
        sys.exit(EXIT_FAILURE)

    if storage_dir is not None:
        config.storage_dir = str(storage_dir)

    configure_logging(
        level=log_level or config.logging.level,
        fmt=config.logging.format,
        log_file=config.logging.log_file,
        command=ctx.invoked_subcommand,
    )

    storage = LocalFileKeyValueStore(config.storage_path)
    store = CategoryStore(storage)
    ctx.obj = AppContext(
        config=config,
        store=store,
        registry=CategoryRegistry(store),
        visibility=CalendarVisibility(storage),
    )


def _echo_result(result: CategoryResult, verb: str) -> None:
    if not result.ok:
        click.echo(result.error, err=True)
        sys.exit(EXIT_FAILURE)
    if result.category is None:
        sys.exit(EXIT_FAILURE)
    click.echo(f"{verb} {result.category.id}: {result.category.label}")


def _format_category(category: Category) -> str:
    keywords = ", ".join(category.keywords) or "-"
    return (
        f"{category.id:<44} {category.label:<20} {category.color:<8} "
        f"{category.match_mode:<4} {keywords}"
    )


# ---------------------------------------------------------------------------
# categories
# ---------------------------------------------------------------------------


@cli.group()
def categories() -> None:
    """Manage event categories."""


@categories.command("list")
@click.option("--json", "as_json", is_flag=True, help="Emit JSON instead of a table")
@click.pass_obj
def categories_list(app: AppContext, as_json: bool) -> None:
    """List active categories and removed defaults."""
    active = app.registry.all_categories
    removed = app.registry.removed_defaults
    if as_json:
        click.echo(
            json.dumps(
                {
                    "categories": [c.to_payload() for c in active],
                    "removedDefaults": [c.to_payload() for c in removed],
                },
                indent=2,
            )
        )
        return

    click.echo(f"{'ID':<44} {'Label':<20} {'Color':<8} {'Mode':<4} Keywords")
    click.echo("-" * 100)
    for category in active:
        click.echo(_format_category(category))
    if removed:
        click.echo("")
        click.echo("Removed defaults (restore with `yearbird categories restore ID`):")
        for category in removed:
            click.echo(f"  {category.id:<12} {category.label}")


@categories.command("add")
@click.argument("label")
@click.option("--color", required=True, help="Hex color, e.g. #22C55E")
@click.option("--keyword", "keywords", multiple=True, required=True, help="Repeatable")
@click.option("--match", "match_mode", type=click.Choice(["any", "all"]), default="any")
@click.pass_obj
def categories_add(
    app: AppContext,
    label: str,
    color: str,
    keywords: tuple[str, ...],
    match_mode: str,
) -> None:
    """Create a custom category."""
    data = CategoryInput(label=label, color=color, keywords=list(keywords), match_mode=match_mode)
    _echo_result(app.registry.add_category(data), "Added")


@categories.command("update")
@click.argument("category_id")
@click.option("--label", default=None)
@click.option("--color", default=None)
@click.option("--keyword", "keywords", multiple=True, help="Replaces all keywords")
@click.option("--match", "match_mode", type=click.Choice(["any", "all"]), default=None)
@click.pass_obj
def categories_update(
    app: AppContext,
    category_id: str,
    label: str | None,
    color: str | None,
    keywords: tuple[str, ...],
    match_mode: str | None,
) -> None:
    """Edit a custom category; omitted options keep their current value."""
    current = next(
        (c for c in app.store.get_custom_categories() if c.id == category_id),
        None,
    )
    if current is None:
        # Let the registry produce the canonical not-found message.
        data = CategoryInput(label=label or "", color=color or "", keywords=list(keywords))
    else:
        data = CategoryInput(
            label=current.label if label is None else label,
            color=current.color if color is None else color,
            keywords=list(keywords) if keywords else list(current.keywords),
            match_mode=current.match_mode.value if match_mode is None else match_mode,
        )
    _echo_result(app.registry.update_category(category_id, data), "Updated")


@categories.command("remove")
@click.argument("category_id")
@click.pass_obj
def categories_remove(app: AppContext, category_id: str) -> None:
    """Remove a category (defaults can be restored later)."""
    app.registry.remove_category(category_id)
    click.echo(f"Removed {category_id}")


@categories.command("restore")
@click.argument("category_id")
@click.pass_obj
def categories_restore(app: AppContext, category_id: str) -> None:
    """Restore a removed default category."""
    _echo_result(app.registry.restore_default(category_id), "Restored")


@categories.command("reset")
@click.confirmation_option(prompt="Discard all custom categories and restore every default?")
@click.pass_obj
def categories_reset(app: AppContext) -> None:
    """Return to the built-in default categories."""
    restored = app.registry.reset_to_defaults()
    click.echo(f"Reset to {len(restored)} default categories")


# ---------------------------------------------------------------------------
# calendars
# ---------------------------------------------------------------------------


token_option = click.option(
    "--token",
    envvar=TOKEN_ENV_VAR,
    required=True,
    help=f"OAuth access token (or set {TOKEN_ENV_VAR})",
)


def _run_calendar_call(coro_factory):
    """Run an async calendar call, mapping client errors to exit codes."""
    try:
        return asyncio.run(coro_factory())
    except CalendarUnauthorizedError:
        click.echo(
            "Access token rejected (UNAUTHORIZED). Sign in again for a fresh token.", err=True
        )
        sys.exit(EXIT_UNAUTHORIZED)
    except CalendarError as exc:
        click.echo(str(exc), err=True)
        sys.exit(EXIT_FAILURE)


@cli.group()
def calendars() -> None:
    """Inspect calendars and choose which ones are shown."""


@calendars.command("list")
@token_option
@click.pass_obj
def calendars_list(app: AppContext, token: str) -> None:
    """List readable calendars; hidden ones are marked."""

    async def _fetch():
        async with CalendarClient(app.config.calendar) as client:
            return await client.fetch_calendar_list(token)

    entries = _run_calendar_call(_fetch)
    disabled = set(app.visibility.get_disabled())
    for entry in entries:
        marker = "hidden" if entry.id in disabled else "shown"
        primary = " (primary)" if entry.primary else ""
        click.echo(f"[{marker:>6}] {entry.id}  {entry.display_name}{primary}")


@calendars.command("disable")
@click.argument("calendar_id")
@click.pass_obj
def calendars_disable(app: AppContext, calendar_id: str) -> None:
    """Hide a calendar from the year view."""
    app.visibility.disable(calendar_id)
    click.echo(f"Hidden {calendar_id}")


@calendars.command("enable")
@click.argument("calendar_id")
@click.pass_obj
def calendars_enable(app: AppContext, calendar_id: str) -> None:
    """Show a previously hidden calendar."""
    app.visibility.enable(calendar_id)
    click.echo(f"Shown {calendar_id}")


# ---------------------------------------------------------------------------
# events
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("year", type=click.IntRange(1, 9998))
@token_option
@click.option(
    "--calendar",
    "calendar_ids",
    multiple=True,
    help="Calendar id (repeatable). Defaults to every calendar not hidden.",
)
@click.option("--json", "as_json", is_flag=True, help="Emit one JSON object per line")
@click.pass_obj
def events(
    app: AppContext,
    year: int,
    token: str,
    calendar_ids: tuple[str, ...],
    as_json: bool,
) -> None:
    """Fetch and categorize every event in YEAR."""
    categories_for_matching = app.registry.categories

    async def _load():
        async with CalendarClient(app.config.calendar) as client:
            ids = list(calendar_ids)
            if not ids:
                entries = await client.fetch_calendar_list(token)
                ids = [entry.id for entry in app.visibility.filter_enabled(entries)]
            return await load_year(client, token, year, ids, categories_for_matching)

    tagged = _run_calendar_call(_load)
    for event in tagged:
        if as_json:
            click.echo(event.model_dump_json())
        else:
            span = f"{event.start_date}" if event.start_date == event.end_date else (
                f"{event.start_date}..{event.end_date}"
            )
            click.echo(f"{span:<22} {event.category:<44} {event.title}")
    if not as_json:
        click.echo(f"{len(tagged)} event(s)")

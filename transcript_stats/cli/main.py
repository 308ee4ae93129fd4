#!/usr/bin/env python3
"""
Command-line interface for transcript-stats.

Provides commands to list projects and sessions, page through normalized messages,
report token/usage statistics at session, project and global scope, and list
the latest recorded change to each edited file.
Every command prints indented JSON on stdout.
"""

from __future__ import annotations

import logging
import traceback
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, TypeGuard, cast

import orjson
import typer

from transcript_stats.cli.logger import configure_cli_logging
from transcript_stats.config.engine import EngineSettings, settings
from transcript_stats.exceptions import TranscriptStatsError
from transcript_stats.schemas.types import SearchFilterType
from transcript_stats.services.stats import TranscriptStatsService

logger = logging.getLogger(__name__)

app = typer.Typer(
    name='transcript-stats',
    help='Normalize assistant transcript logs and report usage statistics',
    add_completion=False,
)


def _is_filter_type(value: str) -> TypeGuard[SearchFilterType]:
    """Type guard for valid search filters."""
    return value in ('content', 'toolId')


def _validate_filter_type(value: str) -> SearchFilterType:
    """Validate and narrow search filter for typer callback."""
    if _is_filter_type(value):
        return value
    raise typer.BadParameter("Must be 'content' or 'toolId'")


def _service(ctx: typer.Context) -> TranscriptStatsService:
    projects_dir: Path | None = ctx.obj
    engine_settings: EngineSettings = settings
    if projects_dir is not None:
        engine_settings = settings.model_copy(update={'PROJECTS_DIR': projects_dir})
    return TranscriptStatsService.from_settings(engine_settings)


def _emit(payload: Any) -> None:
    typer.echo(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode())


@contextmanager
def _command(action: str, verbose: bool) -> Iterator[None]:
    """Configure logging and map failures to a red message and exit code 1."""
    configure_cli_logging(verbose)
    try:
        yield
    except (TranscriptStatsError, ValueError, FileNotFoundError) as e:
        typer.secho(f'Error: {e}', fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    except Exception as e:
        logger.error(f'Failed to {action}: {e}')
        if verbose:
            traceback.print_exc()
        raise typer.Exit(1)


@app.callback()
def main(
    ctx: typer.Context,
    projects_dir: Path | None = typer.Option(
        None, '--projects-dir', help='Projects root (default: PROJECTS_DIR setting, ~/.claude/projects)'
    ),
) -> None:
    """Normalize assistant transcript logs and report usage statistics."""
    ctx.obj = projects_dir


# ==============================================================================
# Listings
# ==============================================================================


@app.command()
def projects(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """List projects with session and message counts."""
    with _command('list projects', verbose):
        _emit([p.to_wire() for p in _service(ctx).list_projects()])


@app.command()
def sessions(
    ctx: typer.Context,
    project: str = typer.Argument(..., help='Project directory name'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """List a project's sessions, most recently modified first."""
    with _command('list sessions', verbose):
        _emit([s.to_wire() for s in _service(ctx).list_sessions(project)])


@app.command()
def messages(
    ctx: typer.Context,
    session_file: Path = typer.Argument(..., help='Session JSONL file'),
    offset: int = typer.Option(0, '--offset', help='Index of the first message'),
    limit: int | None = typer.Option(None, '--limit', help='Page size (default: DEFAULT_PAGE_SIZE setting)'),
    exclude_sidechain: bool | None = typer.Option(
        None, '--exclude-sidechain/--include-sidechain', help='Hide sidechain messages (default: EXCLUDE_SIDECHAIN)'
    ),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Print one page of normalized messages in file order."""
    with _command('read messages', verbose):
        page = _service(ctx).get_messages(session_file, offset=offset, limit=limit, exclude_sidechain=exclude_sidechain)
        _emit(page.to_wire())


@app.command()
def search(
    ctx: typer.Context,
    query: str = typer.Argument(..., help='Case-insensitive substring'),
    project: str | None = typer.Option(None, '--project', '-p', help='Restrict to one project'),
    filter_type: str = typer.Option(
        'content', '--filter', '-f', help="'content' or 'toolId'", callback=_validate_filter_type
    ),
    limit: int | None = typer.Option(None, '--limit', help='Maximum number of hits'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Search message text or tool ids."""
    with _command('search messages', verbose):
        hits = _service(ctx).search(
            query, filter_type=cast(SearchFilterType, filter_type), project_name=project, limit=limit
        )
        _emit([hit.to_wire() for hit in hits])


# ==============================================================================
# Statistics
# ==============================================================================


@app.command('session-stats')
def session_stats(
    ctx: typer.Context,
    session_file: Path = typer.Argument(..., help='Session JSONL file'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Token, cost and duration totals for one session."""
    with _command('compute session stats', verbose):
        _emit(_service(ctx).get_session_stats(session_file).to_wire())


@app.command('project-stats')
def project_stats(
    ctx: typer.Context,
    project: str = typer.Argument(..., help='Project directory name'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Aggregate statistics for one project."""
    with _command('compute project stats', verbose):
        _emit(_service(ctx).get_project_stats(project).to_wire())


@app.command('project-tokens')
def project_tokens(
    ctx: typer.Context,
    project: str = typer.Argument(..., help='Project directory name'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Per-session token stats for a project, highest total first."""
    with _command('compute project token stats', verbose):
        _emit([s.to_wire() for s in _service(ctx).get_project_token_stats(project)])


@app.command()
def compare(
    ctx: typer.Context,
    session_file: Path = typer.Argument(..., help='Session JSONL file'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Compare a session with the other sessions of its project."""
    with _command('compare session', verbose):
        _emit(_service(ctx).compare_session(session_file).to_wire())


@app.command('global-stats')
def global_stats(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Aggregate statistics across every project."""
    with _command('compute global stats', verbose):
        _emit(_service(ctx).get_global_stats().to_wire())


# ==============================================================================
# Edits
# ==============================================================================


@app.command('recent-edits')
def recent_edits(
    ctx: typer.Context,
    project: str = typer.Argument(..., help='Project directory name'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Latest recorded Edit/Write change per file in a project, most recent first."""
    with _command('collect recent edits', verbose):
        _emit(_service(ctx).get_recent_edits(project).to_wire())


if __name__ == '__main__':
    app()

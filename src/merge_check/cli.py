"""merge-check command line interface."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from merge_check.core.config import config_path, load_config, save_config
from merge_check.core.git import find_repo_root
from merge_check.errors import MergeCheckError
from merge_check.github import make_github_client
from merge_check.report import exit_code_for, format_report_json, format_report_markdown
from merge_check.runner import CheckMode, run_merge_checks

app = typer.Typer(help="Batch merge-readiness checks for feature branches", no_args_is_help=True)
console = Console(stderr=True)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _repo_root_or_exit(repo: Optional[Path]) -> Path:
    root = find_repo_root(repo)
    if root is None:
        console.print("[red]Error:[/red] Not in a git repository")
        raise typer.Exit(2)
    return root


def _select_mode(scan: bool, review: bool, run_all: bool) -> CheckMode:
    if run_all:
        return CheckMode.ALL
    if review:
        return CheckMode.REVIEW
    if scan:
        return CheckMode.SCAN
    return CheckMode.CHECK


@app.command("run")
def run_command(
    items: Optional[list[int]] = typer.Argument(None, help="Work item numbers (default: items of the most recent run log)"),
    scan: bool = typer.Option(False, "--scan", help="Add residual pattern detection"),
    review: bool = typer.Option(False, "--review", help="Scan plus AI briefing (briefing not yet available)"),
    run_all: bool = typer.Option(False, "--all", help="Run every phase"),
    post: bool = typer.Option(False, "--post", help="Post a per-item report on each item's pull request"),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON"),
    repo: Optional[Path] = typer.Option(None, "--repo", help="Repository path (default: current directory)"),
    jobs: int = typer.Option(1, "--jobs", min=1, help="Parallel workers for the read-only checks"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Check that a batch of feature branches will integrate cleanly."""
    _configure_logging(verbose)
    repo_root = _repo_root_or_exit(repo)
    mode = _select_mode(scan, review, run_all)
    item_ids = list(items or [])

    if not as_json:
        if item_ids:
            console.print(f"[dim]Checking items: {', '.join(f'#{i}' for i in item_ids)} (mode: {mode})[/dim]")
        else:
            console.print(f"[dim]Auto-detecting items from most recent run (mode: {mode})[/dim]")

    try:
        config = load_config(repo_root)
        github = make_github_client(repo_root, config.github_repo)
        report = run_merge_checks(
            item_ids,
            mode,
            repo_root,
            config,
            title_lookup=github.fetch_title,
            poster=github if post else None,
            jobs=jobs,
        )
    except MergeCheckError as exc:
        if as_json:
            typer.echo(json.dumps({"error": str(exc)}, indent=2))
        else:
            console.print(f"[red]Merge check failed:[/red] {exc}")
        raise typer.Exit(2) from exc

    if as_json:
        typer.echo(format_report_json(report))
    else:
        typer.echo(format_report_markdown(report))
        if mode in (CheckMode.REVIEW, CheckMode.ALL):
            console.print(
                "[dim]AI briefing is not yet implemented. Use --scan for deterministic checks.[/dim]"
            )

    code = exit_code_for(report.batch_verdict)
    if code:
        raise typer.Exit(code)


@app.command("config")
def config_command(
    init: bool = typer.Option(False, "--init", help="Write the effective configuration to .merge-check/config.yaml"),
    repo: Optional[Path] = typer.Option(None, "--repo", help="Repository path (default: current directory)"),
) -> None:
    """Show the effective merge-check configuration."""
    repo_root = _repo_root_or_exit(repo)
    try:
        config = load_config(repo_root)
    except MergeCheckError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(2) from exc

    if init:
        path = config_path(repo_root)
        if path.exists():
            console.print(f"[yellow]Config already exists:[/yellow] {path}")
            raise typer.Exit(1)
        save_config(repo_root, config)
        console.print(f"[green]✓[/green] Wrote {path}")
        return

    table = Table(title="merge-check configuration")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in config.to_dict().items():
        table.add_row(key, json.dumps(value))
    Console().print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()

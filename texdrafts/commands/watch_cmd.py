"""Watch and log commands - rebuild on save, and read back the run log."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from rich.console import Console

from ..audit_log import format_audit_entry, read_audit_log
from ..config import BuildConfig
from ..pipeline import compute_build_plan, execute_build_plan
from ..toolchain.compiler import Compiler, Runner
from ..toolchain.git import GitPublisher
from ..watcher import run_watch_loop
from .build_cmd import load_project


def make_rebuild(
    corpus_root: Path,
    config: BuildConfig,
    *,
    commit: bool = False,
    console: Console | None = None,
    runner: Runner | None = None,
):
    """Callback for the watcher: rescan, rebuild affected roots, report written sources."""
    console = console or Console(stderr=True)

    def rebuild(changes: list[str]) -> list[Path]:
        timestamp = datetime.now().strftime("%H:%M:%S")
        console.print(f"[dim]{timestamp}[/dim] changed: {', '.join(changes)}", highlight=False)

        corpus = load_project(corpus_root, config)
        plan = compute_build_plan(corpus, config, changes)
        if plan.is_empty:
            console.print("  nothing to build", style="dim")
            return []

        compiler = Compiler(corpus.path, config.compiler, biber=config.biber, runner=runner)
        publisher = GitPublisher() if commit else None
        result = execute_build_plan(plan, corpus, config, compiler=compiler, publisher=publisher)
        result.log_to_audit(
            corpus.path,
            "watch-build",
            {"roots": [t.identity for t in plan.targets], "failed": result.failed_roots},
        )

        for outcome in result.outcomes:
            if outcome.success:
                console.print(f"  [green]✓[/green] {outcome.target.identity} -> {outcome.artifact.name}", highlight=False)
            else:
                console.print(f"  [red]✗[/red] {outcome.target.identity}: {outcome.compile.error}", highlight=False)
        return result.wordcount_updated

    return rebuild


def run_watch(corpus_root: Path, config: BuildConfig, *, commit: bool = False) -> None:
    """
    Watch the corpus and rebuild affected roots on every settled save.

    This is a blocking command that runs until interrupted (Ctrl+C).
    """
    console = Console(stderr=True)
    console.print(f"[bold]Watching[/bold] {corpus_root}")
    console.print(f"  Compiler: {config.compiler}")
    console.print(f"  Drafts: {config.output_path(corpus_root)} (keep {config.max_drafts})")
    if config.exclude_files:
        console.print(f"  Excluded: {', '.join(config.exclude_files)}")
    console.print()
    console.print("[dim]Press Ctrl+C to stop watching[/dim]")
    console.print()

    run_watch_loop(
        corpus_root,
        make_rebuild(corpus_root, config, commit=commit, console=console),
        skip=[config.output_path(corpus_root)],
    )
    console.print()
    console.print("[bold]Stopped.[/bold]")


def run_log(corpus_root: Path, *, last_n: int | None = None) -> int:
    """Print run log entries. Returns the number of entries shown."""
    console = Console()
    entries = read_audit_log(corpus_root, last_n=last_n)
    if not entries:
        console.print("[dim]No runs recorded.[/dim]")
        return 0

    for entry in entries:
        console.print(format_audit_entry(entry), highlight=False, markup=False)
        console.print()
    return len(entries)

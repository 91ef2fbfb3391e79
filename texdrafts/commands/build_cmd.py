"""Build and affected commands - resolve changed documents to roots and compile them."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Sequence

from rich.console import Console
from rich.table import Table

from ..config import BuildConfig
from ..corpus.loader import Corpus, load_corpus
from ..models import Finding
from ..pipeline import compute_build_plan, execute_build_plan
from ..planning import BuildPlan, BuildResult
from ..toolchain.compiler import Compiler, Runner
from ..toolchain.git import GitError, GitPublisher, GitRunner, changed_files


def load_project(corpus_root: Path, config: BuildConfig) -> Corpus:
    """Scan the corpus, leaving the drafts directory out."""
    return load_corpus(corpus_root, workers=config.jobs, skip=[config.output_path(corpus_root)])


def collect_changes(
    corpus_root: Path,
    paths: Sequence[str],
    since: str | None,
    *,
    git_runner: GitRunner | None = None,
) -> list[str]:
    """Explicit paths plus, with `since`, everything git reports as changed."""
    changes = list(paths)
    if since:
        changes.extend(changed_files(corpus_root, since, runner=git_runner))
    return changes


def run_affected(
    corpus_root: Path,
    config: BuildConfig,
    paths: Sequence[str],
    *,
    since: str | None = None,
    all_roots: bool = False,
    output_json: bool = False,
    git_runner: GitRunner | None = None,
) -> int:
    """Print the build set for a change set without compiling anything.

    Returns:
        Exit code (0 = success, 1 = git failure)
    """
    console = Console(stderr=True)

    try:
        changes = collect_changes(corpus_root, paths, since, git_runner=git_runner)
    except GitError as e:
        console.print(f"Error: {e}", style="bold red")
        return 1

    corpus = load_project(corpus_root, config)
    plan = compute_build_plan(corpus, config, changes, all_roots=all_roots)

    if output_json:
        print(json.dumps(_plan_payload(plan), indent=2))
        return 0

    _print_findings(console, plan.findings)
    if not plan.targets:
        console.print("Nothing to build.", style="dim")
        return 0

    out = Console()
    for target in plan.targets:
        out.print(target.identity, highlight=False)
    return 0


def run_build(
    corpus_root: Path,
    config: BuildConfig,
    paths: Sequence[str],
    *,
    since: str | None = None,
    all_roots: bool = False,
    commit: bool = False,
    dry_run: bool = False,
    runner: Runner | None = None,
    git_runner: GitRunner | None = None,
) -> int:
    """Resolve, compile, publish drafts, enforce retention and optionally commit.

    Args:
        corpus_root: Project root containing the .tex sources
        config: Effective configuration (file + CLI overrides)
        paths: Changed documents named on the command line
        since: Git revision to diff against for additional changes
        all_roots: Build every root regardless of changes
        commit: Commit drafts and rewritten sources afterwards
        dry_run: Print the plan and stop
        runner: Subprocess runner for the compiler (tests inject fakes)
        git_runner: Runner for git commands

    Returns:
        Exit code (0 = every root built, 1 = at least one root failed)
    """
    console = Console(stderr=True)

    try:
        changes = collect_changes(corpus_root, paths, since, git_runner=git_runner)
    except GitError as e:
        console.print(f"Error: {e}", style="bold red")
        return 1

    console.print(f"Scanning {corpus_root}...", style="dim")
    corpus = load_project(corpus_root, config)
    plan = compute_build_plan(corpus, config, changes, all_roots=all_roots)

    if dry_run:
        console.print(plan.summary())
        _print_findings(console, plan.findings)
        return 0

    if plan.is_empty:
        _print_findings(console, plan.findings)
        console.print("Nothing to build.", style="dim")
        return 0

    compiler = Compiler(corpus.path, config.compiler, biber=config.biber, runner=runner)
    publisher = GitPublisher(runner=git_runner) if commit else None

    result = execute_build_plan(plan, corpus, config, compiler=compiler, publisher=publisher)
    result.log_to_audit(
        corpus.path,
        "build",
        {
            "roots": [t.identity for t in plan.targets],
            "failed": result.failed_roots,
            "excluded": plan.excluded,
            "committed": result.committed,
        },
    )

    _print_result(console, result)
    return 0 if result.success else 1


def _plan_payload(plan: BuildPlan) -> dict:
    return {
        "changes": plan.changes,
        "targets": [
            {
                "identity": t.identity,
                "path": str(t.path),
                "bibliography": t.bibliography,
            }
            for t in plan.targets
        ],
        "excluded": plan.excluded,
        "wordcount_targets": plan.wordcount_targets,
        "findings": [
            {"level": f.level, "code": f.code, "subject": f.subject, "message": f.message}
            for f in plan.findings
        ],
    }


def _print_findings(console: Console, findings: list[Finding]) -> None:
    styles = {"error": "red", "warning": "yellow", "info": "dim"}
    for finding in findings:
        console.print(str(finding), style=styles.get(finding.level, ""), highlight=False)


def _print_result(console: Console, result: BuildResult) -> None:
    table = Table(title="Build summary")
    table.add_column("Root")
    table.add_column("Status")
    table.add_column("Draft")
    table.add_column("Evicted", justify="right")

    for outcome in result.outcomes:
        status = "[green]ok[/green]" if outcome.success else "[red]failed[/red]"
        draft = outcome.artifact.name if outcome.artifact else "-"
        evicted = str(len(outcome.retention.deleted)) if outcome.retention else "-"
        table.add_row(outcome.target.identity, status, draft, evicted)

    console.print(table)

    for path in result.wordcount_updated:
        console.print(f"Updated word count in {path.name}", style="dim")

    _print_findings(console, result.findings)

    if result.committed:
        console.print("Committed drafts.", style="green")

    if result.success:
        console.print(f"\n✓ Built {len(result.outcomes)} root(s)", style="bold green")
    else:
        console.print(f"\n✗ {result.error}", style="bold red")

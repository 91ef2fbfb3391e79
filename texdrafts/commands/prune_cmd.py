"""Prune command - enforce draft retention without compiling."""

from __future__ import annotations

import json
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..audit_log import ErasureCost, log_operation
from ..config import BuildConfig
from ..corpus.exclusion import ExclusionFilter
from ..drafts.retention import RetentionResult, reconcile
from ..planning import draft_dir
from .build_cmd import load_project


def run_prune(corpus_root: Path, config: BuildConfig, *, output_json: bool = False) -> int:
    """Trim every root's draft history to `config.max_drafts`.

    Excluded roots are left alone.

    Returns:
        Exit code (0 = all excess drafts removed, 1 = some could not be deleted)
    """
    console = Console(stderr=True)

    corpus = load_project(corpus_root, config)
    exclusion = ExclusionFilter.from_entries(config.exclude_files)
    output_root = config.output_path(corpus.path)

    results: list[tuple[str, RetentionResult]] = []
    for root in corpus.roots:
        if exclusion.is_excluded(root.identity):
            continue
        drafts = draft_dir(output_root, root.identity)
        results.append((root.identity, reconcile(drafts, root.basename, config.max_drafts)))

    deleted = [a.path.name for _, r in results for a in r.deleted]
    failed = [a.path.name for _, r in results for a in r.failed]

    if deleted:
        log_operation(
            corpus.path,
            "prune",
            erased=ErasureCost(
                drafts=len(deleted),
                bytes_erased=sum(r.bytes_erased for _, r in results),
                details={"drafts": deleted},
            ),
            metadata={"max_drafts": config.max_drafts, "not_evicted": failed},
        )

    if output_json:
        payload = {
            identity: {
                "kept": [a.path.name for a in r.kept],
                "deleted": [a.path.name for a in r.deleted],
                "failed": [a.path.name for a in r.failed],
            }
            for identity, r in results
        }
        print(json.dumps(payload, indent=2))
    else:
        table = Table(title=f"Draft retention (keep {config.max_drafts})")
        table.add_column("Root")
        table.add_column("Kept", justify="right")
        table.add_column("Deleted", justify="right")
        table.add_column("Not evicted", justify="right")
        for identity, r in results:
            table.add_row(identity, str(len(r.kept)), str(len(r.deleted)), str(len(r.failed)))
        Console().print(table)

        for _, r in results:
            for finding in r.findings:
                console.print(str(finding), style="yellow", highlight=False)

    return 1 if failed else 0

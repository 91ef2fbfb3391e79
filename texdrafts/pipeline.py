"""Build pipeline: plan (pure) then execute (compile, publish, retain, commit)."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Iterable

from .audit_log import CreationSummary, ErasureCost
from .config import BuildConfig
from .corpus.exclusion import ExclusionFilter
from .corpus.loader import Corpus
from .drafts.naming import publish_artifact
from .drafts.retention import reconcile
from .models import Finding
from .planning import BuildPlan, BuildResult, RootOutcome, draft_dir
from .resolve import normalize_changes, resolve, targets_for
from .toolchain.compiler import Compiler
from .toolchain.git import GitError, GitPublisher
from .toolchain.wordcount import pending_wordcounts, update_wordcounts

logger = logging.getLogger(__name__)


def compute_build_plan(
    corpus: Corpus,
    config: BuildConfig,
    changes: Iterable[str] = (),
    *,
    all_roots: bool = False,
) -> BuildPlan:
    """Decide what a build run will do. Reads the corpus, writes nothing."""
    exclusion = ExclusionFilter.from_entries(config.exclude_files)
    wordcount_targets = exclusion.filter_paths(config.wordcount_files)

    changed = normalize_changes(changes, corpus)
    # A counter rewrite is a source change: its roots must be rebuilt to show it
    changed |= set(pending_wordcounts(corpus, wordcount_targets, config.wordcount_macro))

    if all_roots:
        roots = set(corpus.graph.roots)
    else:
        roots = resolve(corpus.graph, changed, workers=config.jobs)

    kept = exclusion.filter_roots(roots)
    excluded = sorted(roots - kept)
    for identity in excluded:
        logger.info("Skipping excluded root %s", identity)

    return BuildPlan(
        corpus_path=corpus.path,
        changes=sorted(changed),
        targets=targets_for(corpus, kept, bibliography=config.biber),
        excluded=excluded,
        wordcount_targets=wordcount_targets,
        output_dir=config.output_path(corpus.path),
        max_drafts=config.max_drafts,
        findings=list(corpus.findings),
    )


def execute_build_plan(
    plan: BuildPlan,
    corpus: Corpus,
    config: BuildConfig,
    *,
    compiler: Compiler,
    publisher: GitPublisher | None = None,
    now: datetime | None = None,
) -> BuildResult:
    """Run a build plan.

    Roots compile concurrently up to `config.jobs`; publishing and retention
    happen afterwards in target order. A failing root does not stop the others.
    """
    result = BuildResult(findings=list(plan.findings))

    if plan.wordcount_targets:
        result.wordcount_updated = update_wordcounts(corpus, plan.wordcount_targets, config.wordcount_macro)

    if plan.targets:
        with ThreadPoolExecutor(max_workers=max(1, config.jobs)) as executor:
            compiled = list(executor.map(compiler.compile, plan.targets))
    else:
        compiled = []

    for target, compile_result in zip(plan.targets, compiled):
        outcome = RootOutcome(target=target, compile=compile_result)
        result.outcomes.append(outcome)

        if not compile_result.success:
            logger.error("%s failed: %s", target.identity, compile_result.error)
            result.findings.append(
                Finding(
                    level="error",
                    code="compile-failed",
                    subject=target.identity,
                    message=(compile_result.error or "compilation failed").splitlines()[0],
                )
            )
            continue

        drafts = draft_dir(plan.output_dir, target.identity)
        try:
            outcome.artifact = publish_artifact(compile_result.output, drafts, target.basename, now)
        except OSError as e:
            logger.error("Could not write draft for %s: %s", target.identity, e)
            result.findings.append(
                Finding(level="error", code="publish-failed", subject=target.identity, message=str(e))
            )
            continue

        logger.info("%s -> %s", target.identity, outcome.artifact.name)
        outcome.retention = reconcile(drafts, target.basename, plan.max_drafts)
        result.findings.extend(outcome.retention.findings)

    result.created = CreationSummary(
        drafts=len(result.written),
        sources=len(result.wordcount_updated),
        bytes_written=sum(p.stat().st_size for p in result.written if p.exists()),
        details={"drafts": [p.name for p in result.written]},
    )
    result.erased = ErasureCost(
        drafts=len(result.evicted),
        bytes_erased=sum(o.retention.bytes_erased for o in result.outcomes if o.retention),
        details={"drafts": [p.name for p in result.evicted]},
    )

    if publisher is not None and result.touched_paths:
        try:
            result.committed = publisher.commit(corpus.path, result.touched_paths, message=config.commit_message)
        except GitError as e:
            logger.warning("Commit failed: %s", e)
            result.findings.append(Finding(level="warning", code="commit-failed", subject="git", message=str(e)))

    result.success = not result.failed_roots
    if not result.success:
        result.error = f"{len(result.failed_roots)} root(s) failed: {', '.join(result.failed_roots)}"
    return result

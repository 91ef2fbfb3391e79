"""Change set -> affected roots -> build set."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable

from .corpus.exclusion import ExclusionFilter
from .corpus.graph import InclusionGraph
from .corpus.loader import Corpus
from .corpus.paths import canonicalize
from .models import BuildTarget

logger = logging.getLogger(__name__)


def normalize_changes(changes: Iterable[str], corpus: Corpus | None = None) -> set[str]:
    """Canonicalize changed paths; entries that name nothing are dropped."""
    root = corpus.path if corpus is not None else None
    result = set()
    for change in changes:
        try:
            result.add(canonicalize(change, root))
        except ValueError:
            logger.debug("Ignoring change entry %r", change)
    return result


def resolve(graph: InclusionGraph, changes: Iterable[str], *, workers: int | None = None) -> set[str]:
    """Roots that must be rebuilt because of `changes`.

    Each changed identity is traversed independently against the same
    immutable graph; the per-change results are unioned here.
    """
    identities = sorted(normalize_changes(changes))
    if workers and workers > 1 and len(identities) > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            partials = list(executor.map(graph.affected_roots, identities))
    else:
        partials = [graph.affected_roots(identity) for identity in identities]

    affected: set[str] = set()
    for identity, roots in zip(identities, partials):
        if not roots:
            logger.info("%s affects no root", identity)
        affected |= roots
    return affected


def build_set(
    corpus: Corpus,
    changes: Iterable[str],
    exclusion: ExclusionFilter | None = None,
    *,
    bibliography: bool = True,
    workers: int | None = None,
) -> list[BuildTarget]:
    """Resolve, filter and describe the roots to compile, sorted by identity."""
    roots = resolve(corpus.graph, normalize_changes(changes, corpus), workers=workers)
    if exclusion:
        dropped = roots - exclusion.filter_roots(roots)
        for identity in sorted(dropped):
            logger.info("Skipping excluded root %s", identity)
        roots -= dropped
    return targets_for(corpus, roots, bibliography=bibliography)


def needs_bibliography(graph: InclusionGraph, identity: str) -> bool:
    """True if the root or anything it includes loads or prints a bibliography."""
    return any(graph.nodes[member].uses_bibliography for member in graph.transitive_closure(identity))


def targets_for(corpus: Corpus, roots: Iterable[str], *, bibliography: bool = True) -> list[BuildTarget]:
    targets = []
    for identity in sorted(roots):
        doc = corpus.graph.nodes[identity]
        targets.append(
            BuildTarget(
                identity=identity,
                path=doc.path,
                bibliography=bibliography and needs_bibliography(corpus.graph, identity),
            )
        )
    return targets

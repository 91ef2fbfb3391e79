"""Corpus discovery and parallel scanning."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from ..models import Document, Finding
from .graph import InclusionGraph
from .paths import SOURCE_SUFFIX, canonicalize
from .scanner import ScanResult, scan_document

logger = logging.getLogger(__name__)


@dataclass
class Corpus:
    """All scanned documents of one project, plus the graph built from them."""

    path: Path
    graph: InclusionGraph
    findings: list[Finding] = field(default_factory=list)

    @property
    def documents(self) -> list[Document]:
        return [self.graph.nodes[k] for k in sorted(self.graph.nodes)]

    @property
    def roots(self) -> list[Document]:
        return [doc for doc in self.documents if doc.is_root]

    def get(self, name: str | Path) -> Document | None:
        """Get a document by any spelling of its path."""
        try:
            identity = canonicalize(name, self.path)
        except ValueError:
            return None
        return self.graph.get(identity)


def discover_documents(corpus_root: Path, skip: Iterable[Path] = ()) -> list[Path]:
    """All .tex files under the corpus root, sorted.

    Hidden path components and anything under a `skip` directory are ignored.
    """
    skip_dirs = [p.resolve() for p in skip]
    found = []
    for tex_file in corpus_root.rglob(f"*{SOURCE_SUFFIX}"):
        rel_parts = tex_file.relative_to(corpus_root).parts
        if any(part.startswith(".") for part in rel_parts):
            continue
        resolved = tex_file.resolve()
        if any(resolved.is_relative_to(d) for d in skip_dirs):
            continue
        if tex_file.is_file():
            found.append(tex_file)
    return sorted(found)


def load_corpus(
    corpus_root: Path,
    *,
    workers: int | None = None,
    skip: Iterable[Path] = (),
) -> Corpus:
    """Scan every document in parallel and merge the results into a graph.

    Args:
        corpus_root: Project root; inclusion paths are relative to it
        workers: Thread pool size (None lets the executor decide)
        skip: Directories to leave out, e.g. the drafts output directory

    Returns:
        Corpus with the fully built inclusion graph
    """
    corpus_root = corpus_root.resolve()
    files = discover_documents(corpus_root, skip=skip)
    findings: list[Finding] = []

    def scan(path: Path) -> ScanResult | Finding:
        try:
            return scan_document(path, corpus_root)
        except OSError as e:
            return Finding(
                level="warning",
                code="unreadable",
                subject=path.relative_to(corpus_root).as_posix(),
                message=str(e),
            )

    with ThreadPoolExecutor(max_workers=workers) as executor:
        outcomes = list(executor.map(scan, files))

    scans = []
    for outcome in outcomes:
        if isinstance(outcome, Finding):
            logger.warning("Failed to read %s: %s", outcome.subject, outcome.message)
            findings.append(outcome)
        else:
            scans.append(outcome)

    graph = InclusionGraph.from_scans(scans)
    findings.extend(graph.findings)
    logger.debug(
        "Scanned %d documents (%d roots) under %s", len(graph.nodes), len(graph.roots), corpus_root
    )
    return Corpus(path=corpus_root, graph=graph, findings=findings)

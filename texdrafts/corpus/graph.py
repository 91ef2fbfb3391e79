"""Inclusion graph construction and reachability."""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable

from ..models import Document, Finding
from .paths import canonicalize
from .scanner import ScanResult

logger = logging.getLogger(__name__)


@dataclass
class InclusionGraph:
    """Graph of "document A includes document B" edges with a root tag per node."""

    nodes: dict[str, Document] = field(default_factory=dict)  # identity -> Document
    edges: dict[str, dict[str, None]] = field(default_factory=dict)  # includer -> included (ordered)
    reverse_edges: dict[str, set[str]] = field(default_factory=dict)  # included -> includers
    dangling: dict[str, list[str]] = field(default_factory=dict)  # missing target -> includers
    findings: list[Finding] = field(default_factory=list)

    @classmethod
    def from_scans(cls, scans: Iterable[ScanResult]) -> "InclusionGraph":
        """Merge per-document scan results into one graph.

        Called once by the coordinator after every scan has finished.
        """
        graph = cls()
        scans = list(scans)

        # Add all nodes first so dangling targets are known before edges go in
        for scan in scans:
            graph.nodes[scan.identity] = Document(
                identity=scan.identity,
                path=scan.path,
                is_root=scan.is_root,
                uses_bibliography=scan.uses_bibliography,
            )

        for scan in scans:
            src = scan.identity
            targets = graph.edges.setdefault(src, {})
            for raw in scan.references:
                try:
                    dst = canonicalize(raw)
                except ValueError:
                    graph._report_dangling(src, raw)
                    continue
                targets[dst] = None
                if dst not in graph.nodes:
                    # Kept for reporting; never reached by reverse traversal
                    graph.dangling.setdefault(dst, []).append(src)
                    graph._report_dangling(src, raw)
                    continue
                graph.reverse_edges.setdefault(dst, set()).add(src)
            graph.nodes[src].references = list(targets)

        return graph

    def _report_dangling(self, src: str, raw: str) -> None:
        logger.warning("%s references '%s', which is not in the corpus", src, raw)
        self.findings.append(
            Finding(
                level="warning",
                code="dangling-reference",
                subject=src,
                message=f"references '{raw}', which is not in the corpus",
            )
        )

    @property
    def roots(self) -> set[str]:
        return {identity for identity, doc in self.nodes.items() if doc.is_root}

    def is_root(self, identity: str) -> bool:
        doc = self.nodes.get(identity)
        return doc is not None and doc.is_root

    def get(self, identity: str) -> Document | None:
        return self.nodes.get(identity)

    def dependencies(self, identity: str) -> list[str]:
        """Documents directly included by this one."""
        return list(self.edges.get(identity, {}))

    def dependents(self, identity: str) -> set[str]:
        """Documents that directly include this one."""
        return set(self.reverse_edges.get(identity, set()))

    def affected_roots(self, identity: str) -> set[str]:
        """Roots whose output depends on `identity`.

        A changed root is affected itself; every root reached by walking
        reverse edges is affected too. Orphans and unknown identities
        yield an empty set.
        """
        result = set()
        if self.is_root(identity):
            result.add(identity)

        visited = {identity}
        queue = deque([identity])
        while queue:
            current = queue.popleft()
            for parent in self.reverse_edges.get(current, ()):
                if parent in visited:
                    continue
                visited.add(parent)
                if self.is_root(parent):
                    result.add(parent)
                queue.append(parent)

        return result

    def transitive_closure(self, start: str) -> set[str]:
        """All corpus documents reachable from start, including start."""
        visited = set()
        stack = [start]

        while stack:
            current = stack.pop()
            if current in visited or current not in self.nodes:
                continue
            visited.add(current)

            for dep in self.edges.get(current, {}):
                if dep not in visited:
                    stack.append(dep)

        return visited

    def find_cycles(self) -> list[list[str]]:
        """Find inclusion cycles using Tarjan's strongly connected components.

        Only returns components with more than one node, plus self-inclusions.
        """
        index_counter = [0]
        stack = []
        lowlinks = {}
        index = {}
        on_stack = {}
        sccs = []

        def strongconnect(node):
            index[node] = index_counter[0]
            lowlinks[node] = index_counter[0]
            index_counter[0] += 1
            stack.append(node)
            on_stack[node] = True

            for dep in self.edges.get(node, {}):
                if dep not in self.nodes:
                    continue  # dangling
                if dep not in index:
                    strongconnect(dep)
                    lowlinks[node] = min(lowlinks[node], lowlinks[dep])
                elif on_stack.get(dep, False):
                    lowlinks[node] = min(lowlinks[node], index[dep])

            if lowlinks[node] == index[node]:
                scc = []
                while True:
                    w = stack.pop()
                    on_stack[w] = False
                    scc.append(w)
                    if w == node:
                        break
                if len(scc) > 1 or node in self.edges.get(node, {}):
                    sccs.append(sorted(scc))

        for node in sorted(self.nodes):
            if node not in index:
                strongconnect(node)

        return sccs

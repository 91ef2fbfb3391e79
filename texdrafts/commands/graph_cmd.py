"""Graph command - inspect the inclusion structure of the corpus."""

from __future__ import annotations

import json
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..config import BuildConfig
from ..corpus.graph import InclusionGraph
from .build_cmd import load_project


def run_graph(
    corpus_root: Path,
    config: BuildConfig,
    *,
    fmt: str = "md",
    out: Path | None = None,
) -> int:
    """Output roots, inclusion edges, dangling references and cycles."""
    console = Console(stderr=True)

    corpus = load_project(corpus_root, config)
    graph = corpus.graph
    payload = _summarize_graph(graph)

    if fmt == "rich":
        _print_rich(payload, console=Console())
        return 0

    if fmt == "json":
        text = json.dumps(payload, indent=2, sort_keys=True) + "\n"
    elif fmt == "dot":
        text = _to_dot(graph)
    else:
        text = _to_markdown(payload)

    if out:
        out.write_text(text, encoding="utf-8")
        console.print(f"Wrote graph output to {out}", style="green")
    else:
        print(text, end="" if text.endswith("\n") else "\n")

    return 0


def _summarize_graph(graph: InclusionGraph) -> dict:
    documents = []
    for identity in sorted(graph.nodes):
        documents.append(
            {
                "name": identity,
                "root": graph.is_root(identity),
                "includes": graph.dependencies(identity),
                "included_by": sorted(graph.dependents(identity)),
                "affects": sorted(graph.affected_roots(identity)),
            }
        )

    return {
        "node_count": len(graph.nodes),
        "edge_count": sum(len(dsts) for dsts in graph.edges.values()),
        "roots": sorted(graph.roots),
        "orphans": sorted(
            d["name"] for d in documents if not d["root"] and not d["affects"]
        ),
        "dangling": {target: sorted(set(srcs)) for target, srcs in sorted(graph.dangling.items())},
        "cycles": graph.find_cycles(),
        "documents": documents,
    }


def _print_rich(payload: dict, *, console: Console) -> None:
    table = Table(title=f"Inclusion graph ({payload['node_count']} documents, {payload['edge_count']} edges)")
    table.add_column("Document")
    table.add_column("Root", justify="center")
    table.add_column("Includes", justify="right")
    table.add_column("Affects")
    for doc in payload["documents"]:
        table.add_row(
            doc["name"],
            "●" if doc["root"] else "",
            str(len(doc["includes"])),
            ", ".join(doc["affects"]) or "-",
        )
    console.print(table)

    for target, srcs in payload["dangling"].items():
        console.print(f"[yellow]dangling[/yellow] {target} <- {', '.join(srcs)}", highlight=False)
    for cycle in payload["cycles"]:
        console.print(f"[red]cycle[/red] {' -> '.join(cycle)}", highlight=False)


def _to_markdown(payload: dict) -> str:
    lines: list[str] = []
    lines.append("## Inclusion graph")
    lines.append("")
    lines.append(f"- Documents: {payload['node_count']}")
    lines.append(f"- Edges: {payload['edge_count']}")
    lines.append(f"- Roots: {', '.join(f'`{r}`' for r in payload['roots']) or '-'}")
    lines.append("")

    lines.append("### Documents")
    lines.append("")
    lines.append("| Document | Root | Includes | Affects |")
    lines.append("|---|:---:|---:|---|")
    for doc in payload["documents"]:
        root = "yes" if doc["root"] else ""
        affects = ", ".join(f"`{r}`" for r in doc["affects"]) or "-"
        lines.append(f"| `{doc['name']}` | {root} | {len(doc['includes'])} | {affects} |")
    lines.append("")

    if payload["orphans"]:
        lines.append("### Orphans")
        lines.append("")
        for name in payload["orphans"]:
            lines.append(f"- `{name}`")
        lines.append("")

    if payload["dangling"]:
        lines.append("### Dangling references")
        lines.append("")
        for target, srcs in payload["dangling"].items():
            lines.append(f"- `{target}` (from {', '.join(f'`{s}`' for s in srcs)})")
        lines.append("")

    if payload["cycles"]:
        lines.append("### Cycles")
        lines.append("")
        for cycle in payload["cycles"]:
            lines.append(f"- {' -> '.join(f'`{c}`' for c in cycle)}")
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"


def _to_dot(graph: InclusionGraph) -> str:
    def esc(s: str) -> str:
        return s.replace("\\", "\\\\").replace('"', '\\"')

    lines = [
        "digraph corpus {",
        "  rankdir=LR;",
        "  node [fontname=\"Helvetica\", fontsize=10, shape=box];",
    ]

    for name in sorted(graph.nodes):
        if graph.is_root(name):
            lines.append(f'  "{esc(name)}" [style="bold,filled", fillcolor="#f9d65c"];')
        else:
            lines.append(f'  "{esc(name)}";')

    for name in sorted(graph.dangling):
        lines.append(f'  "{esc(name)}" [style=dashed, color="#b0b0b0"];')

    for src, dsts in sorted(graph.edges.items()):
        for dst in sorted(dsts):
            lines.append(f'  "{esc(src)}" -> "{esc(dst)}";')

    lines.append("}")
    return "\n".join(lines) + "\n"

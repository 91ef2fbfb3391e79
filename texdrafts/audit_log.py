"""
Run log for build operations.

Each build appends one JSON Lines entry to `.texdrafts/runs.log` under the
corpus root, recording what was written and what was evicted.
"""

import json
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


@dataclass
class ErasureCost:
    """Summary of what was deleted in an operation."""
    drafts: int = 0
    bytes_erased: int = 0
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class CreationSummary:
    """Summary of what was written in an operation."""
    drafts: int = 0
    sources: int = 0  # sources rewritten by the word counter
    bytes_written: int = 0
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class AuditEntry:
    """A single run log entry."""
    timestamp: str
    operation: str
    erased: ErasureCost
    created: CreationSummary
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "operation": self.operation,
            "erased": asdict(self.erased),
            "created": asdict(self.created),
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AuditEntry":
        return cls(
            timestamp=data["timestamp"],
            operation=data["operation"],
            erased=ErasureCost(**data.get("erased", {})),
            created=CreationSummary(**data.get("created", {})),
            metadata=data.get("metadata", {}),
        )


def get_audit_log_path(corpus_path: Path) -> Path:
    return corpus_path / ".texdrafts" / "runs.log"


def log_operation(
    corpus_path: Path,
    operation: str,
    erased: ErasureCost | None = None,
    created: CreationSummary | None = None,
    metadata: dict[str, Any] | None = None,
) -> AuditEntry:
    """
    Append an operation to the run log.

    Args:
        corpus_path: Corpus root directory
        operation: Name of the operation (e.g., "build", "prune")
        erased: Summary of what was deleted
        created: Summary of what was written
        metadata: Additional context (roots built, failures, commit)

    Returns:
        The created entry
    """
    entry = AuditEntry(
        timestamp=datetime.now(timezone.utc).isoformat(),
        operation=operation,
        erased=erased or ErasureCost(),
        created=created or CreationSummary(),
        metadata=metadata or {},
    )

    log_path = get_audit_log_path(corpus_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    with log_path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(entry.to_dict(), default=str) + "\n")

    return entry


def read_audit_log(corpus_path: Path, last_n: int | None = None) -> list[AuditEntry]:
    """Read run log entries, oldest first."""
    log_path = get_audit_log_path(corpus_path)
    if not log_path.exists():
        return []

    entries = []
    with log_path.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                try:
                    entries.append(AuditEntry.from_dict(json.loads(line)))
                except (json.JSONDecodeError, KeyError, TypeError):
                    continue  # Skip malformed lines

    if last_n is not None:
        return entries[-last_n:]
    return entries


def format_audit_entry(entry: AuditEntry) -> str:
    lines = [f"[{entry.timestamp}] {entry.operation}"]

    if entry.created.drafts or entry.created.sources:
        parts = []
        if entry.created.drafts:
            parts.append(f"{entry.created.drafts} drafts")
        if entry.created.sources:
            parts.append(f"{entry.created.sources} sources")
        lines.append(f"  Written: {', '.join(parts)}")

    if entry.erased.drafts:
        lines.append(f"  Evicted: {entry.erased.drafts} drafts ({entry.erased.bytes_erased} bytes)")

    for key, value in entry.metadata.items():
        if isinstance(value, list):
            value = ", ".join(str(v) for v in value) or "-"
        lines.append(f"  {key}: {value}")

    return "\n".join(lines)

"""
Plan/result separation for the build pipeline.

A plan is computed without side effects (which roots, which word-count
targets, where drafts go); a result records what executing it did.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .audit_log import CreationSummary, ErasureCost, log_operation
from .drafts.retention import RetentionResult
from .models import BuildTarget, Finding
from .toolchain.compiler import CompileResult


@dataclass
class BasePlan(ABC):
    """Base class for operation plans."""
    corpus_path: Path

    @abstractmethod
    def summary(self) -> str:
        """Human-readable summary of what would be done."""
        ...


@dataclass
class BaseResult:
    """Base class for operation results."""
    erased: ErasureCost = field(default_factory=ErasureCost)
    created: CreationSummary = field(default_factory=CreationSummary)
    success: bool = True
    error: str | None = None

    def log_to_audit(self, corpus_path: Path, operation: str, metadata: dict[str, Any] | None = None) -> None:
        log_operation(corpus_path, operation, self.erased, self.created, metadata or {})


def draft_dir(output_root: Path, identity: str) -> Path:
    """Drafts of `chapters/main` live in `<output>/chapters`, so equal basenames never share a history."""
    parent = identity.rpartition("/")[0]
    return output_root / parent if parent else output_root


@dataclass
class BuildPlan(BasePlan):
    """Plan for one build run."""
    changes: list[str] = field(default_factory=list)
    targets: list[BuildTarget] = field(default_factory=list)
    excluded: list[str] = field(default_factory=list)  # affected roots dropped by the exclusion list
    wordcount_targets: list[str] = field(default_factory=list)
    output_dir: Path = Path("drafts")
    max_drafts: int = 3
    findings: list[Finding] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.targets and not self.wordcount_targets

    def summary(self) -> str:
        lines = [
            "Build Plan",
            f"  Changed documents: {len(self.changes)}",
            f"  Roots to compile: {len(self.targets)}",
        ]
        for target in self.targets:
            bib = " (+bibliography)" if target.bibliography else ""
            lines.append(f"    - {target.identity}{bib}")
        if self.excluded:
            lines.append(f"  Excluded roots: {', '.join(self.excluded)}")
        if self.wordcount_targets:
            lines.append(f"  Word-count targets: {', '.join(self.wordcount_targets)}")
        lines.append(f"  Drafts: {self.output_dir} (keep {self.max_drafts} per root)")
        return "\n".join(lines)


@dataclass
class RootOutcome:
    """What happened to one root during a build."""
    target: BuildTarget
    compile: CompileResult
    artifact: Path | None = None
    retention: RetentionResult | None = None

    @property
    def success(self) -> bool:
        return self.compile.success and self.artifact is not None


@dataclass
class BuildResult(BaseResult):
    """Result of executing a build plan."""
    outcomes: list[RootOutcome] = field(default_factory=list)
    wordcount_updated: list[Path] = field(default_factory=list)
    findings: list[Finding] = field(default_factory=list)
    committed: bool = False

    @property
    def failed_roots(self) -> list[str]:
        return [o.target.identity for o in self.outcomes if not o.success]

    @property
    def written(self) -> list[Path]:
        return [o.artifact for o in self.outcomes if o.artifact is not None]

    @property
    def evicted(self) -> list[Path]:
        return [a.path for o in self.outcomes if o.retention for a in o.retention.deleted]

    @property
    def touched_paths(self) -> list[Path]:
        """Everything the versioning step should stage."""
        return [*self.written, *self.evicted, *self.wordcount_updated]

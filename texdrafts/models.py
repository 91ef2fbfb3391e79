"""Data models for corpus documents, build targets and drafts."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Literal

Level = Literal["error", "warning", "info"]


@dataclass
class Document:
    """A single .tex file in the corpus."""

    identity: str  # canonical path relative to the corpus root, no extension
    path: Path  # absolute file path
    is_root: bool = False  # contains \begin{document}
    references: list[str] = field(default_factory=list)  # canonical targets, deduplicated
    uses_bibliography: bool = False
    _text: str | None = field(default=None, repr=False, compare=False)

    @property
    def text(self) -> str:
        """Raw file content, read on first access."""
        if self._text is None:
            self._text = self.path.read_text(encoding="utf-8", errors="replace")
        return self._text

    @text.setter
    def text(self, value: str) -> None:
        self._text = value

    @property
    def basename(self) -> str:
        return self.identity.rsplit("/", 1)[-1]


@dataclass(frozen=True)
class BuildTarget:
    """A root selected for compilation."""

    identity: str
    path: Path
    bibliography: bool = False

    @property
    def basename(self) -> str:
        return self.identity.rsplit("/", 1)[-1]


@dataclass(frozen=True)
class Artifact:
    """One timestamped draft produced by compiling a root."""

    path: Path
    basename: str
    timestamp: datetime


@dataclass
class Finding:
    """A structured, non-fatal observation surfaced in the run summary."""

    level: Level
    code: str
    subject: str
    message: str

    def __str__(self) -> str:
        return f"{self.level.upper()}: [{self.code}] {self.subject} - {self.message}"

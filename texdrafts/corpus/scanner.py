"""LaTeX scanning utilities for inclusion directives and root markers."""

import re
from dataclasses import dataclass, field
from pathlib import Path

from .paths import identity_for

# Match \input{path} and \include{path}; \includegraphics and friends are not inclusions
INCLUDE_PATTERN = re.compile(r"\\(?:input|include)\s*\{([^{}]+)\}")
BEGIN_DOCUMENT_PATTERN = re.compile(r"\\begin\s*\{document\}")
BIBLIOGRAPHY_PATTERN = re.compile(r"\\(?:addbibresource|bibliography|printbibliography)\b")


@dataclass
class ScanResult:
    """What one document says about itself. Produced without shared state."""

    identity: str
    path: Path
    is_root: bool
    references: list[str] = field(default_factory=list)  # as written
    uses_bibliography: bool = False


def strip_comment(line: str) -> str:
    """Drop everything from the first unescaped % on the line."""
    for idx, char in enumerate(line):
        if char != "%":
            continue
        backslashes = 0
        j = idx - 1
        while j >= 0 and line[j] == "\\":
            backslashes += 1
            j -= 1
        if backslashes % 2 == 0:
            return line[:idx]
    return line


def uncommented_lines(text: str):
    for line in text.splitlines():
        stripped = strip_comment(line)
        if stripped.strip():
            yield stripped


def extract_references(text: str) -> list[str]:
    """Extract \\input and \\include targets in order of appearance.

    Paths are returned as written (trimmed). Directives inside comments are ignored.
    """
    result = []
    for line in uncommented_lines(text):
        for match in INCLUDE_PATTERN.findall(line):
            target = match.strip()
            if target:
                result.append(target)
    return result


def is_root_document(text: str) -> bool:
    """A root is any document that opens \\begin{document} outside a comment."""
    return any(BEGIN_DOCUMENT_PATTERN.search(line) for line in uncommented_lines(text))


def uses_bibliography(text: str) -> bool:
    return any(BIBLIOGRAPHY_PATTERN.search(line) for line in uncommented_lines(text))


def scan_text(identity: str, path: Path, text: str) -> ScanResult:
    return ScanResult(
        identity=identity,
        path=path,
        is_root=is_root_document(text),
        references=extract_references(text),
        uses_bibliography=uses_bibliography(text),
    )


def scan_document(path: Path, corpus_root: Path) -> ScanResult:
    """Read and scan a single .tex file.

    Raises:
        OSError: if the file cannot be read
    """
    text = path.read_text(encoding="utf-8", errors="replace")
    return scan_text(identity_for(path, corpus_root), path, text)

"""Canonical document identities."""

import posixpath
from pathlib import Path, PurePosixPath

SOURCE_SUFFIX = ".tex"


def canonicalize(path: str | Path, root: Path | None = None) -> str:
    """Normalize a document path to its canonical identity.

    `chapters/ch1`, `./chapters/ch1.tex` and `chapters\\ch1.tex` all map to
    `chapters/ch1`. Absolute paths are made relative to `root` when given.

    Raises:
        ValueError: if the path is empty or reduces to the corpus root itself
    """
    raw = str(path).strip()
    if not raw:
        raise ValueError("empty document path")

    raw = raw.replace("\\", "/")

    if root is not None and PurePosixPath(raw).is_absolute():
        try:
            raw = Path(raw).resolve().relative_to(root.resolve()).as_posix()
        except ValueError:
            pass

    normalized = posixpath.normpath(raw)
    if normalized.endswith(SOURCE_SUFFIX) and normalized != SOURCE_SUFFIX:
        normalized = normalized[: -len(SOURCE_SUFFIX)]

    if normalized in (".", "", "/"):
        raise ValueError(f"'{path}' does not name a document")

    return normalized


def identity_for(path: Path, root: Path) -> str:
    """Identity of a file discovered under `root`."""
    return canonicalize(path.relative_to(root).as_posix())


def source_path(identity: str, root: Path) -> Path:
    """Filesystem path of the .tex file for an identity."""
    return root / f"{identity}{SOURCE_SUFFIX}"

"""Bounded draft history per root."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from ..models import Artifact, Finding
from .naming import parse_artifact_name

logger = logging.getLogger(__name__)


@dataclass
class RetentionResult:
    """Outcome of reconciling one root's drafts."""

    basename: str
    kept: list[Artifact] = field(default_factory=list)  # newest first
    deleted: list[Artifact] = field(default_factory=list)
    failed: list[Artifact] = field(default_factory=list)  # should have been evicted, still on disk
    bytes_erased: int = 0
    findings: list[Finding] = field(default_factory=list)


def list_artifacts(output_dir: Path, basename: str) -> list[Artifact]:
    """All drafts of one root, newest first by parsed timestamp."""
    if not output_dir.is_dir():
        return []

    artifacts = []
    for entry in output_dir.iterdir():
        if not entry.is_file():
            continue
        timestamp = parse_artifact_name(entry.name, basename)
        if timestamp is None:
            continue
        artifacts.append(Artifact(path=entry, basename=basename, timestamp=timestamp))

    # Name breaks ties between equal timestamps with different extensions
    artifacts.sort(key=lambda a: (a.timestamp, a.path.name), reverse=True)
    return artifacts


def reconcile(output_dir: Path, basename: str, max_drafts: int) -> RetentionResult:
    """Keep the newest `max_drafts` drafts of a root and delete the rest.

    Deletion is best effort: a file that cannot be removed is reported in
    `failed` and the remaining excess drafts are still deleted.

    Raises:
        ValueError: if max_drafts is not positive
    """
    if max_drafts <= 0:
        raise ValueError(f"max_drafts must be a positive integer, got {max_drafts}")

    history = list_artifacts(output_dir, basename)
    result = RetentionResult(basename=basename, kept=history[:max_drafts])

    for artifact in history[max_drafts:]:
        try:
            size = artifact.path.stat().st_size
            artifact.path.unlink()
        except FileNotFoundError:
            result.deleted.append(artifact)
        except OSError as e:
            logger.warning("Could not delete %s: %s", artifact.path, e)
            result.failed.append(artifact)
            result.findings.append(
                Finding(
                    level="warning",
                    code="not-evicted",
                    subject=artifact.path.name,
                    message=f"deletion failed ({e}); will retry on the next run",
                )
            )
        else:
            logger.debug("Evicted %s", artifact.path.name)
            result.deleted.append(artifact)
            result.bytes_erased += size

    return result

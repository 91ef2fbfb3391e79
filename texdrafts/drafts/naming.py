"""Draft file naming and atomic publication.

Drafts are named `{basename}_{YYYYMMDDHHMMSS}.{ext}`. The timestamp is fixed
width and UTC, so lexical order equals chronological order within one format.
"""

from __future__ import annotations

import os
import re
import shutil
from datetime import datetime, timedelta, timezone
from pathlib import Path

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"
TIMESTAMP_WIDTH = 14
PARTIAL_SUFFIX = ".part"
DEFAULT_EXT = "pdf"


def format_timestamp(when: datetime) -> str:
    if when.tzinfo is not None:
        when = when.astimezone(timezone.utc)
    return when.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime | None:
    if len(value) != TIMESTAMP_WIDTH or not value.isdigit():
        return None
    try:
        return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def artifact_name(basename: str, when: datetime, ext: str = DEFAULT_EXT) -> str:
    return f"{basename}_{format_timestamp(when)}.{ext}"


def artifact_pattern(basename: str) -> re.Pattern[str]:
    """Pattern matching exactly this root's drafts, never `{basename}_v2_...`."""
    return re.compile(rf"^{re.escape(basename)}_(\d{{{TIMESTAMP_WIDTH}}})\.([A-Za-z0-9]+)$")


def parse_artifact_name(name: str, basename: str) -> datetime | None:
    """Timestamp encoded in a draft file name, or None if it is not one of ours."""
    match = artifact_pattern(basename).match(name)
    if not match:
        return None
    return parse_timestamp(match.group(1))


def latest_timestamp(output_dir: Path, basename: str) -> datetime | None:
    """Newest timestamp among this root's drafts in output_dir, any extension."""
    if not output_dir.is_dir():
        return None
    stamps = [parse_artifact_name(entry.name, basename) for entry in output_dir.iterdir()]
    return max((s for s in stamps if s is not None), default=None)


def publish_artifact(
    source: Path,
    output_dir: Path,
    basename: str,
    when: datetime | None = None,
) -> Path:
    """Copy a compiled file into the drafts directory under its timestamped name.

    The copy goes to a `.part` file first and is renamed into place, so an
    interrupted run never leaves a half-written draft under a final name.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    when = when or datetime.now(timezone.utc)
    when = when.astimezone(timezone.utc) if when.tzinfo else when.replace(tzinfo=timezone.utc)
    ext = source.suffix.lstrip(".") or DEFAULT_EXT

    # The new draft must sort first even if the clock went backwards
    latest = latest_timestamp(output_dir, basename)
    if latest is not None and when.replace(microsecond=0) <= latest:
        when = latest + timedelta(seconds=1)

    target = output_dir / artifact_name(basename, when, ext)
    while target.exists():
        when = when + timedelta(seconds=1)
        target = output_dir / artifact_name(basename, when, ext)

    partial = target.with_name(target.name + PARTIAL_SUFFIX)
    try:
        shutil.copyfile(source, partial)
        os.replace(partial, target)
    finally:
        if partial.exists():
            partial.unlink()
    return target

"""Git adapters: change detection and committing drafts."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Callable, Sequence

from ..corpus.paths import SOURCE_SUFFIX

logger = logging.getLogger(__name__)

GitRunner = Callable[[Sequence[str], Path], str]


class GitError(RuntimeError):
    """Raised when a git command fails."""


def _default_runner(cmd: Sequence[str], cwd: Path) -> str:
    proc = subprocess.run(list(cmd), cwd=cwd, capture_output=True, text=True)
    if proc.returncode != 0:
        raise GitError(f"{' '.join(cmd)} failed: {proc.stderr.strip() or proc.stdout.strip()}")
    return proc.stdout


def repo_toplevel(path: Path, runner: GitRunner | None = None) -> Path:
    run = runner or _default_runner
    return Path(run(["git", "rev-parse", "--show-toplevel"], path).strip())


def changed_files(corpus_root: Path, since: str, runner: GitRunner | None = None) -> list[str]:
    """.tex files changed between `since` and HEAD, relative to the corpus root.

    Raises:
        GitError: if git cannot compute the diff
    """
    run = runner or _default_runner
    output = run(["git", "diff", "--name-only", "--relative", since, "HEAD", "--"], corpus_root)
    return [
        line.strip()
        for line in output.splitlines()
        if line.strip().endswith(SOURCE_SUFFIX)
    ]


class GitPublisher:
    """Stages written/deleted drafts and rewritten sources, then commits."""

    def __init__(self, runner: GitRunner | None = None) -> None:
        self._runner = runner or _default_runner

    def commit(self, repo_path: Path, files: Sequence[Path], *, message: str) -> bool:
        """Commit the given paths if anything is staged.

        Deleted paths are staged as removals. Returns False when the corpus is
        not inside a git work tree or nothing changed.
        """
        try:
            top = repo_toplevel(repo_path, self._runner)
        except GitError:
            logger.warning("%s is not inside a git repository; skipping commit", repo_path)
            return False

        relative = sorted({self._to_relative(top, Path(f)) for f in files})
        missing = [rel for rel in relative if not (top / rel).exists()]
        if missing:
            # A removed path can only be staged if git was tracking it
            tracked = set(self._runner(["git", "ls-files", "--", *missing], top).splitlines())
            relative = [rel for rel in relative if rel not in missing or rel in tracked]
        if not relative:
            return False

        self._runner(["git", "add", "--all", "--", *relative], top)

        status = self._runner(["git", "diff", "--cached", "--name-only"], top)
        if not status.strip():
            logger.info("Nothing to commit")
            return False

        self._runner(["git", "commit", "-m", message], top)
        logger.info("Committed %d path(s)", len(status.splitlines()))
        return True

    @staticmethod
    def _to_relative(top: Path, path: Path) -> str:
        try:
            return path.resolve().relative_to(top.resolve()).as_posix()
        except ValueError:
            return path.as_posix()

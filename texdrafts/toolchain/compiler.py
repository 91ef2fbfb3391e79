"""TeX compiler adapter.

The compiler string from configuration is passed through as the command
(`pdflatex`, `xelatex`, `lualatex`, `latexmk -pdf`, ...). Passes for one root
run strictly in sequence; distinct roots may be compiled concurrently by the
caller.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence

from ..models import BuildTarget

logger = logging.getLogger(__name__)

Runner = Callable[[Sequence[str], Path], subprocess.CompletedProcess]

BUILD_DIRNAME = ".texdrafts/build"
LOG_TAIL_LINES = 20


def _default_runner(cmd: Sequence[str], cwd: Path) -> subprocess.CompletedProcess:
    return subprocess.run(
        list(cmd),
        cwd=cwd,
        capture_output=True,
        text=True,
        errors="replace",
        stdin=subprocess.DEVNULL,
    )


@dataclass
class CompileResult:
    """Outcome of compiling one root."""

    target: BuildTarget
    success: bool
    output: Path | None = None  # compiled file inside the build directory
    passes: list[str] = field(default_factory=list)  # commands that ran, in order
    error: str | None = None


class Compiler:
    """Runs the configured toolchain for one root at a time."""

    def __init__(
        self,
        corpus_root: Path,
        command: str = "pdflatex",
        *,
        biber: bool = True,
        runner: Runner | None = None,
    ) -> None:
        self.corpus_root = corpus_root
        self.base_command = shlex.split(command) or ["pdflatex"]
        self.biber = biber
        self._runner = runner or _default_runner

    @property
    def is_latexmk(self) -> bool:
        return Path(self.base_command[0]).name == "latexmk"

    def build_dir(self, target: BuildTarget) -> Path:
        return self.corpus_root / BUILD_DIRNAME / target.identity

    def passes_for(self, target: BuildTarget) -> list[list[str]]:
        """Commands for one root, in the order they must run."""
        build_dir = self.build_dir(target)
        source = target.path.relative_to(self.corpus_root).as_posix()
        jobname = target.basename

        if self.is_latexmk:
            # latexmk iterates to convergence and runs biber on its own
            return [
                [
                    *self.base_command,
                    "-interaction=nonstopmode",
                    "-halt-on-error",
                    f"-outdir={build_dir}",
                    f"-jobname={jobname}",
                    source,
                ]
            ]

        tex = [
            *self.base_command,
            "-interaction=nonstopmode",
            "-halt-on-error",
            f"-output-directory={build_dir}",
            f"-jobname={jobname}",
            source,
        ]
        if target.bibliography and self.biber:
            bib = ["biber", f"--input-directory={build_dir}", f"--output-directory={build_dir}", jobname]
            return [tex, bib, tex, tex]
        return [tex, tex]

    def compile(self, target: BuildTarget) -> CompileResult:
        build_dir = self.build_dir(target)
        build_dir.mkdir(parents=True, exist_ok=True)
        result = CompileResult(target=target, success=False)

        for cmd in self.passes_for(target):
            label = shlex.join(cmd)
            result.passes.append(label)
            logger.debug("[%s] %s", target.identity, label)
            try:
                proc = self._runner(cmd, self.corpus_root)
            except FileNotFoundError:
                result.error = f"command not found: {cmd[0]}"
                return result
            except OSError as e:
                result.error = f"{cmd[0]} failed to start: {e}"
                return result

            if proc.returncode != 0:
                result.error = f"{cmd[0]} exited with status {proc.returncode}\n{_tail(proc.stdout)}"
                return result

        output = build_dir / f"{target.basename}.pdf"
        if not output.exists():
            result.error = f"compiler reported success but {output.name} was not produced"
            return result

        result.success = True
        result.output = output
        return result


def _tail(text: str | None, lines: int = LOG_TAIL_LINES) -> str:
    if not text:
        return ""
    return "\n".join(text.splitlines()[-lines:])

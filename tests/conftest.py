"""Pytest configuration and fixtures."""

import subprocess
from pathlib import Path
from typing import Sequence

import pytest

from texdrafts.corpus.loader import Corpus, load_corpus

ROOT_TEMPLATE = "\\documentclass{{article}}\n{preamble}\\begin{{document}}\n{body}\n\\end{{document}}\n"


def _root_doc(*includes: str, preamble: str = "", body: str = "") -> str:
    """Source of a compilable root that \\input's each of `includes`."""
    lines = [f"\\input{{{inc}}}" for inc in includes]
    if body:
        lines.append(body)
    return ROOT_TEMPLATE.format(preamble=preamble, body="\n".join(lines))


def _write_corpus(base: Path, files: dict[str, str]) -> Path:
    """Write {relative path: content} under base and return base."""
    for rel, content in files.items():
        path = base / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return base


class FakeTex:
    """Stands in for pdflatex/biber: records commands and writes the output PDF."""

    def __init__(self, fail_on: set[str] | None = None):
        self.fail_on = fail_on or set()
        self.calls: list[list[str]] = []

    def __call__(self, cmd: Sequence[str], cwd: Path) -> subprocess.CompletedProcess:
        cmd = list(cmd)
        self.calls.append(cmd)
        jobname = next((c.split("=", 1)[1] for c in cmd if c.startswith("-jobname=")), None)
        outdir = next(
            (c.split("=", 1)[1] for c in cmd if c.startswith(("-output-directory=", "-outdir="))),
            None,
        )
        if jobname in self.fail_on:
            return subprocess.CompletedProcess(cmd, 1, stdout="! Undefined control sequence.\n", stderr="")
        if jobname and outdir:
            (Path(outdir) / f"{jobname}.pdf").write_bytes(b"%PDF-1.5 " + jobname.encode())
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    def jobs(self) -> list[str]:
        return [c.split("=", 1)[1] for cmd in self.calls for c in cmd if c.startswith("-jobname=")]


@pytest.fixture
def thesis_path(tmp_path: Path) -> Path:
    """main includes chapters/ch1 and shared/preamble; notes is orphaned; archived/old is a separate root."""
    return _write_corpus(
        tmp_path / "thesis",
        {
            "main.tex": _root_doc("chapters/ch1", "shared/preamble.tex"),
            "chapters/ch1.tex": "\\section{One}\nSome words here.\n\\input{chapters/figures}\n",
            "chapters/figures.tex": "% figures\nA figure.\n",
            "shared/preamble.tex": "\\usepackage{amsmath}\n",
            "notes.tex": "Loose notes, included by nothing.\n",
            "archived/old.tex": _root_doc("shared/preamble"),
        },
    )


@pytest.fixture
def thesis(thesis_path: Path) -> Corpus:
    return load_corpus(thesis_path)


@pytest.fixture
def fake_tex() -> FakeTex:
    return FakeTex()


@pytest.fixture
def make_fake_tex():
    """Factory for runners that fail the given jobnames."""
    return FakeTex


@pytest.fixture
def root_doc():
    """Builder for root sources: root_doc(*includes, preamble="", body="")."""
    return _root_doc


@pytest.fixture
def write_corpus():
    """Writer for {relative path: content} trees under a base directory."""
    return _write_corpus

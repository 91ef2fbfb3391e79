import subprocess
from pathlib import Path

import pytest

from texdrafts.corpus.loader import load_corpus
from texdrafts.models import BuildTarget
from texdrafts.toolchain.compiler import Compiler
from texdrafts.toolchain.git import GitError, GitPublisher, changed_files
from texdrafts.toolchain.wordcount import (
    count_document,
    count_words,
    pending_wordcounts,
    rewrite_counter,
    update_wordcounts,
)

# -- compiler --


def _target(root: Path, identity: str = "main", bibliography: bool = False) -> BuildTarget:
    return BuildTarget(identity=identity, path=root / f"{identity}.tex", bibliography=bibliography)


def test_plain_root_runs_two_tex_passes(tmp_path: Path, fake_tex) -> None:
    compiler = Compiler(tmp_path, "pdflatex", runner=fake_tex)
    result = compiler.compile(_target(tmp_path))

    assert result.success
    assert result.output == tmp_path / ".texdrafts/build/main/main.pdf"
    assert [c[0] for c in fake_tex.calls] == ["pdflatex", "pdflatex"]
    assert fake_tex.calls[0][-1] == "main.tex"


def test_bibliography_pass_order(tmp_path: Path, fake_tex) -> None:
    compiler = Compiler(tmp_path, "xelatex", runner=fake_tex)
    compiler.compile(_target(tmp_path, bibliography=True))

    assert [c[0] for c in fake_tex.calls] == ["xelatex", "biber", "xelatex", "xelatex"]


def test_biber_can_be_disabled(tmp_path: Path, fake_tex) -> None:
    compiler = Compiler(tmp_path, biber=False, runner=fake_tex)
    compiler.compile(_target(tmp_path, bibliography=True))

    assert "biber" not in [c[0] for c in fake_tex.calls]


def test_latexmk_runs_once(tmp_path: Path, fake_tex) -> None:
    compiler = Compiler(tmp_path, "latexmk -pdf", runner=fake_tex)
    result = compiler.compile(_target(tmp_path, "chapters/paper", bibliography=True))

    assert result.success
    assert len(fake_tex.calls) == 1
    assert fake_tex.calls[0][:2] == ["latexmk", "-pdf"]
    assert fake_tex.calls[0][-1] == "chapters/paper.tex"


def test_failing_pass_stops_the_root(tmp_path: Path, make_fake_tex) -> None:
    fake = make_fake_tex(fail_on={"main"})
    result = Compiler(tmp_path, runner=fake).compile(_target(tmp_path))

    assert not result.success
    assert len(fake.calls) == 1
    assert "exited with status 1" in result.error
    assert "Undefined control sequence" in result.error


def test_missing_output_is_a_failure(tmp_path: Path) -> None:
    def silent(cmd, cwd):
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    result = Compiler(tmp_path, runner=silent).compile(_target(tmp_path))

    assert not result.success
    assert "was not produced" in result.error


def test_missing_compiler_is_reported(tmp_path: Path) -> None:
    def absent(cmd, cwd):
        raise FileNotFoundError(cmd[0])

    result = Compiler(tmp_path, "notatex", runner=absent).compile(_target(tmp_path))

    assert not result.success
    assert result.error == "command not found: notatex"


# -- word count --


def test_count_words_skips_markup() -> None:
    text = (
        "\\documentclass{article}\n"
        "\\usepackage{amsmath}\n"
        "\\begin{document}\n"
        "\\section{Intro} Hello brave world. % not counted\n"
        "Math $x + y$ and \\[ a = b \\] here \\cite{knuth}.\n"
        "\\end{document}\n"
        "after end\n"
    )
    # Intro Hello brave world Math and here
    assert count_words(text) == 7


def test_rewrite_counter_forms() -> None:
    text = "\\newcommand{\\wordcount}{0}\n\\def\\wordcount{12}\n"
    new_text, changed = rewrite_counter(text, "wordcount", 42)

    assert changed
    assert new_text == "\\newcommand{\\wordcount}{42}\n\\def\\wordcount{42}\n"
    assert rewrite_counter(new_text, "\\wordcount", 42) == (new_text, False)


@pytest.fixture
def wordcount_corpus(tmp_path: Path, root_doc, write_corpus):
    return load_corpus(
        write_corpus(
            tmp_path,
            {
                "thesis.tex": root_doc(
                    "part",
                    preamble="\\newcommand{\\wordcount}{0}\n",
                    body="Hello brave new world.",
                ),
                "part.tex": "Two more.\n",
            },
        )
    )


def test_count_document_includes_dependencies(wordcount_corpus) -> None:
    assert count_document(wordcount_corpus.graph, "thesis") == 6


def test_update_wordcounts_writes_once(tmp_path: Path, wordcount_corpus) -> None:
    corpus = wordcount_corpus

    assert pending_wordcounts(corpus, ["thesis.tex"], "wordcount") == {"thesis": 6}
    written = update_wordcounts(corpus, ["thesis.tex"], "wordcount")

    assert written == [tmp_path.resolve() / "thesis.tex"]
    assert "\\newcommand{\\wordcount}{6}" in (tmp_path / "thesis.tex").read_text()
    assert update_wordcounts(corpus, ["thesis"], "wordcount") == []


def test_wordcount_skips_unknown_and_undefined(wordcount_corpus) -> None:
    corpus = wordcount_corpus
    assert pending_wordcounts(corpus, ["missing", "part"], "wordcount") == {}


# -- git --


class FakeGit:
    def __init__(self, responses: dict[str, str] | None = None, fail: set[str] | None = None):
        self.responses = responses or {}
        self.fail = fail or set()
        self.calls: list[list[str]] = []

    def __call__(self, cmd, cwd):
        cmd = list(cmd)
        self.calls.append(cmd)
        if cmd[1] in self.fail:
            raise GitError(f"git {cmd[1]} failed")
        return self.responses.get(cmd[1], "")


def test_changed_files_keeps_tex_sources(tmp_path: Path) -> None:
    git = FakeGit({"diff": "chapters/ch1.tex\nrefs.bib\n\nmain.tex\n"})

    assert changed_files(tmp_path, "HEAD~1", runner=git) == ["chapters/ch1.tex", "main.tex"]
    assert git.calls[0] == ["git", "diff", "--name-only", "--relative", "HEAD~1", "HEAD", "--"]


def test_commit_stages_and_commits(tmp_path: Path) -> None:
    draft = tmp_path / "drafts" / "main_20240301120000.pdf"
    draft.parent.mkdir()
    draft.write_bytes(b"%PDF")
    git = FakeGit({"rev-parse": f"{tmp_path}\n", "diff": "drafts/main_20240301120000.pdf\n"})

    assert GitPublisher(runner=git).commit(tmp_path, [draft], message="Update drafts")

    verbs = [c[1] for c in git.calls]
    assert verbs == ["rev-parse", "add", "diff", "commit"]
    assert git.calls[1][-1] == "drafts/main_20240301120000.pdf"
    assert git.calls[3] == ["git", "commit", "-m", "Update drafts"]


def test_commit_stages_only_tracked_deletions(tmp_path: Path) -> None:
    git = FakeGit(
        {
            "rev-parse": f"{tmp_path}\n",
            "ls-files": "drafts/old_20240101000000.pdf\n",
            "diff": "drafts/old_20240101000000.pdf\n",
        }
    )
    gone = [tmp_path / "drafts/old_20240101000000.pdf", tmp_path / "drafts/never_20240101000000.pdf"]

    assert GitPublisher(runner=git).commit(tmp_path, gone, message="m")

    add = next(c for c in git.calls if c[1] == "add")
    assert add[-1] == "drafts/old_20240101000000.pdf"
    assert "drafts/never_20240101000000.pdf" not in add


def test_commit_nothing_staged(tmp_path: Path) -> None:
    (tmp_path / "a.pdf").write_bytes(b"")
    git = FakeGit({"rev-parse": f"{tmp_path}\n"})

    assert not GitPublisher(runner=git).commit(tmp_path, [tmp_path / "a.pdf"], message="m")
    assert "commit" not in [c[1] for c in git.calls]


def test_commit_outside_repository(tmp_path: Path) -> None:
    git = FakeGit(fail={"rev-parse"})
    assert not GitPublisher(runner=git).commit(tmp_path, [tmp_path / "a.pdf"], message="m")
    assert len(git.calls) == 1

from datetime import datetime, timezone
from pathlib import Path

from texdrafts.config import BuildConfig
from texdrafts.corpus.loader import Corpus, load_corpus
from texdrafts.drafts.naming import artifact_name
from texdrafts.pipeline import compute_build_plan, execute_build_plan
from texdrafts.planning import draft_dir
from texdrafts.toolchain.compiler import Compiler

NOW = datetime(2024, 5, 1, 9, 30, 0, tzinfo=timezone.utc)


def _run(corpus: Corpus, config: BuildConfig, changes, runner, **kwargs):
    plan = compute_build_plan(corpus, config, changes, **kwargs)
    compiler = Compiler(corpus.path, config.compiler, biber=config.biber, runner=runner)
    return plan, execute_build_plan(plan, corpus, config, compiler=compiler, now=NOW)


def test_plan_is_side_effect_free(thesis: Corpus) -> None:
    plan = compute_build_plan(thesis, BuildConfig(), ["shared/preamble.tex"])

    assert [t.identity for t in plan.targets] == ["archived/old", "main"]
    assert plan.output_dir == thesis.path / "drafts"
    assert not (thesis.path / "drafts").exists()
    assert "Roots to compile: 2" in plan.summary()


def test_plan_records_excluded_roots(thesis: Corpus) -> None:
    config = BuildConfig(exclude_files=("archived/old",))
    plan = compute_build_plan(thesis, config, ["shared/preamble"])

    assert [t.identity for t in plan.targets] == ["main"]
    assert plan.excluded == ["archived/old"]


def test_all_roots(thesis: Corpus) -> None:
    plan = compute_build_plan(thesis, BuildConfig(), [], all_roots=True)
    assert [t.identity for t in plan.targets] == ["archived/old", "main"]


def test_build_publishes_one_draft_per_root(thesis: Corpus, fake_tex) -> None:
    _, result = _run(thesis, BuildConfig(), ["shared/preamble"], fake_tex)

    assert result.success
    assert sorted(fake_tex.jobs()) == ["main", "main", "old", "old"]
    drafts = thesis.path / "drafts"
    assert (drafts / "main_20240501093000.pdf").read_bytes() == b"%PDF-1.5 main"
    assert (drafts / "archived" / "old_20240501093000.pdf").exists()
    assert result.created.drafts == 2


def test_failing_root_does_not_stop_others(thesis: Corpus, make_fake_tex) -> None:
    _, result = _run(thesis, BuildConfig(jobs=2), ["shared/preamble"], make_fake_tex(fail_on={"old"}))

    assert not result.success
    assert result.failed_roots == ["archived/old"]
    assert [p.name for p in result.written] == ["main_20240501093000.pdf"]
    assert [f.code for f in result.findings] == ["compile-failed"]
    assert not (thesis.path / "drafts" / "archived").exists()


def test_build_enforces_retention(thesis: Corpus, fake_tex) -> None:
    drafts = thesis.path / "drafts"
    drafts.mkdir()
    for hour in (1, 2, 3):
        (drafts / artifact_name("main", datetime(2024, 4, 1, hour, tzinfo=timezone.utc))).write_bytes(b"old")

    _, result = _run(thesis, BuildConfig(), ["main"], fake_tex)

    assert [p.name for p in result.evicted] == ["main_20240401010000.pdf"]
    assert result.erased.drafts == 1
    assert result.erased.bytes_erased == 3
    assert sorted(p.name for p in drafts.iterdir()) == [
        "main_20240401020000.pdf",
        "main_20240401030000.pdf",
        "main_20240501093000.pdf",
    ]


def test_orphan_change_builds_nothing(thesis: Corpus, fake_tex) -> None:
    plan, result = _run(thesis, BuildConfig(), ["notes.tex"], fake_tex)

    assert plan.is_empty
    assert result.outcomes == []
    assert fake_tex.calls == []


def test_wordcount_rewrite_triggers_rebuild(tmp_path: Path, fake_tex, root_doc, write_corpus) -> None:
    corpus = load_corpus(
        write_corpus(
            tmp_path,
            {
                "thesis.tex": root_doc(preamble="\\newcommand{\\wordcount}{0}\n", body="Three little words."),
                "other.tex": root_doc(),
            },
        )
    )
    config = BuildConfig(wordcount_files=("thesis",))

    plan, result = _run(corpus, config, [], fake_tex)

    assert plan.changes == ["thesis"]
    assert [t.identity for t in plan.targets] == ["thesis"]
    assert result.wordcount_updated == [corpus.path / "thesis.tex"]
    assert "\\newcommand{\\wordcount}{3}" in (tmp_path / "thesis.tex").read_text()
    assert result.created.sources == 1


def test_excluded_wordcount_target_is_left_alone(tmp_path: Path, fake_tex, root_doc, write_corpus) -> None:
    source = root_doc(preamble="\\newcommand{\\wordcount}{0}\n", body="Words.")
    corpus = load_corpus(write_corpus(tmp_path, {"thesis.tex": source}))
    config = BuildConfig(wordcount_files=("thesis",), exclude_files=("thesis",))

    plan, result = _run(corpus, config, [], fake_tex)

    assert plan.wordcount_targets == []
    assert result.wordcount_updated == []
    assert (tmp_path / "thesis.tex").read_text() == source


def test_commit_receives_touched_paths(thesis: Corpus, fake_tex) -> None:
    class RecordingPublisher:
        def __init__(self):
            self.files = None

        def commit(self, repo_path, files, *, message):
            self.files = list(files)
            self.message = message
            return True

    publisher = RecordingPublisher()
    config = BuildConfig(commit_message="drafts: nightly")
    plan = compute_build_plan(thesis, config, ["main"])
    compiler = Compiler(thesis.path, runner=fake_tex)

    result = execute_build_plan(plan, thesis, config, compiler=compiler, publisher=publisher, now=NOW)

    assert result.committed
    assert publisher.message == "drafts: nightly"
    assert [p.name for p in publisher.files] == ["main_20240501093000.pdf"]


def test_draft_dir_mirrors_identity(tmp_path: Path) -> None:
    assert draft_dir(tmp_path, "main") == tmp_path
    assert draft_dir(tmp_path, "a/b/main") == tmp_path / "a" / "b"


def test_new_draft_survives_retention_after_clock_skew(thesis: Corpus, fake_tex) -> None:
    drafts = thesis.path / "drafts"
    drafts.mkdir()
    (drafts / artifact_name("main", datetime(2024, 6, 1, 12, tzinfo=timezone.utc))).write_bytes(b"ahead")

    _, result = _run(thesis, BuildConfig(max_drafts=1), ["main"], fake_tex)

    assert [p.name for p in result.written] == ["main_20240601120001.pdf"]
    assert [p.name for p in result.evicted] == ["main_20240601120000.pdf"]
    assert [p.name for p in drafts.iterdir()] == ["main_20240601120001.pdf"]

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from texdrafts.drafts.naming import (
    artifact_name,
    latest_timestamp,
    parse_artifact_name,
    publish_artifact,
)
from texdrafts.drafts.retention import list_artifacts, reconcile


def _ts(minute: int) -> datetime:
    return datetime(2024, 3, 1, 12, minute, 0, tzinfo=timezone.utc)


def _make_drafts(directory: Path, basename: str, minutes: list[int], ext: str = "pdf") -> list[Path]:
    directory.mkdir(parents=True, exist_ok=True)
    paths = []
    for minute in minutes:
        path = directory / artifact_name(basename, _ts(minute), ext)
        path.write_bytes(b"x" * 10)
        paths.append(path)
    return paths


def test_artifact_name_format() -> None:
    assert artifact_name("main", _ts(5)) == "main_20240301120500.pdf"


def test_artifact_name_uses_utc() -> None:
    local = datetime(2024, 3, 1, 14, 5, 0, tzinfo=timezone(timedelta(hours=2)))
    assert artifact_name("main", local) == "main_20240301120500.pdf"


def test_parse_artifact_name() -> None:
    assert parse_artifact_name("main_20240301120500.pdf", "main") == _ts(5)
    assert parse_artifact_name("main_v2_20240301120500.pdf", "main") is None
    assert parse_artifact_name("main_2024030112050.pdf", "main") is None
    assert parse_artifact_name("main_20240301120500.pdf.part", "main") is None
    assert parse_artifact_name("main_20241301120500.pdf", "main") is None


def test_publish_copies_under_timestamped_name(tmp_path: Path) -> None:
    source = tmp_path / "build" / "main.pdf"
    source.parent.mkdir()
    source.write_bytes(b"%PDF")

    target = publish_artifact(source, tmp_path / "drafts", "main", _ts(1))

    assert target == tmp_path / "drafts" / "main_20240301120100.pdf"
    assert target.read_bytes() == b"%PDF"
    assert not list((tmp_path / "drafts").glob("*.part"))


def test_publish_collision_moves_forward(tmp_path: Path) -> None:
    source = tmp_path / "main.pdf"
    source.write_bytes(b"%PDF")

    first = publish_artifact(source, tmp_path / "drafts", "main", _ts(1))
    second = publish_artifact(source, tmp_path / "drafts", "main", _ts(1))

    assert first.name == "main_20240301120100.pdf"
    assert second.name == "main_20240301120101.pdf"


def test_latest_timestamp_spans_extensions(tmp_path: Path) -> None:
    drafts = tmp_path / "drafts"
    _make_drafts(drafts, "main", [2], ext="pdf")
    _make_drafts(drafts, "main", [7], ext="dvi")
    _make_drafts(drafts, "main_v2", [9])

    assert latest_timestamp(drafts, "main") == _ts(7)
    assert latest_timestamp(tmp_path / "missing", "main") is None


def test_publish_is_newest_even_if_clock_went_back(tmp_path: Path) -> None:
    drafts = tmp_path / "drafts"
    _make_drafts(drafts, "main", [10, 30])
    source = tmp_path / "main.pdf"
    source.write_bytes(b"%PDF")

    target = publish_artifact(source, drafts, "main", _ts(20))

    assert target.name == "main_20240301123001.pdf"
    result = reconcile(drafts, "main", 1)
    assert [a.path for a in result.kept] == [target]


def test_retention_keeps_newest(tmp_path: Path) -> None:
    drafts = tmp_path / "drafts"
    _make_drafts(drafts, "main", [1, 2, 3, 4, 5])

    result = reconcile(drafts, "main", 3)

    assert [a.timestamp for a in result.kept] == [_ts(5), _ts(4), _ts(3)]
    assert sorted(a.timestamp for a in result.deleted) == [_ts(1), _ts(2)]
    assert result.bytes_erased == 20
    assert sorted(p.name for p in drafts.iterdir()) == [
        "main_20240301120300.pdf",
        "main_20240301120400.pdf",
        "main_20240301120500.pdf",
    ]


def test_retention_under_limit_deletes_nothing(tmp_path: Path) -> None:
    drafts = tmp_path / "drafts"
    _make_drafts(drafts, "main", [1, 2])

    result = reconcile(drafts, "main", 3)

    assert len(result.kept) == 2
    assert result.deleted == []


def test_retention_leaves_other_files_alone(tmp_path: Path) -> None:
    drafts = tmp_path / "drafts"
    _make_drafts(drafts, "main", [1, 2, 3])
    _make_drafts(drafts, "main_v2", [0])
    (drafts / "main_20240301115900.pdf.part").write_bytes(b"partial")
    (drafts / "README.txt").write_text("hello")

    result = reconcile(drafts, "main", 1)

    assert len(result.deleted) == 2
    remaining = sorted(p.name for p in drafts.iterdir())
    assert remaining == [
        "README.txt",
        "main_20240301115900.pdf.part",
        "main_20240301120300.pdf",
        "main_v2_20240301120000.pdf",
    ]


def test_retention_orders_by_timestamp_across_extensions(tmp_path: Path) -> None:
    drafts = tmp_path / "drafts"
    _make_drafts(drafts, "main", [1], ext="ps")
    _make_drafts(drafts, "main", [2], ext="pdf")

    assert [a.path.name for a in list_artifacts(drafts, "main")] == [
        "main_20240301120200.pdf",
        "main_20240301120100.ps",
    ]


def test_retention_missing_directory(tmp_path: Path) -> None:
    result = reconcile(tmp_path / "nowhere", "main", 3)
    assert result.kept == [] and result.deleted == []


def test_failed_deletion_is_reported_and_others_continue(tmp_path: Path, monkeypatch) -> None:
    drafts = tmp_path / "drafts"
    oldest, older, *_ = _make_drafts(drafts, "main", [1, 2, 3, 4])
    real_unlink = Path.unlink

    def flaky_unlink(self, *args, **kwargs):
        if self.name == oldest.name:
            raise PermissionError("locked")
        return real_unlink(self, *args, **kwargs)

    monkeypatch.setattr(Path, "unlink", flaky_unlink)

    result = reconcile(drafts, "main", 2)

    assert [a.path.name for a in result.failed] == [oldest.name]
    assert [a.path.name for a in result.deleted] == [older.name]
    assert [f.code for f in result.findings] == ["not-evicted"]
    assert oldest.exists()
    assert not older.exists()


@pytest.mark.parametrize("max_drafts", [0, -1])
def test_retention_rejects_non_positive_limit(tmp_path: Path, max_drafts: int) -> None:
    with pytest.raises(ValueError):
        reconcile(tmp_path, "main", max_drafts)

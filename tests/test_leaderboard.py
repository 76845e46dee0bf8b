from __future__ import annotations

import json
import sqlite3
from pathlib import Path

import pytest

from math_recall.leaderboard import LeaderboardEntry, make_entry, sort_and_trim
from math_recall.persistence import (
    LEADERBOARD_BACKEND_ENV,
    LEADERBOARD_KEY,
    LEADERBOARD_PATH_ENV,
    JsonFileLeaderboardStore,
    KeyValueLeaderboardStore,
    kv_set,
    open_db,
    open_leaderboard_store,
)


def _entry(name: str, score: int, total_time: float) -> LeaderboardEntry:
    return make_entry(name=name, score=score, total_time=total_time, created_at="2024-01-01T00:00:00Z")


@pytest.fixture(params=["kv", "file"])
def store(request, tmp_path: Path):
    if request.param == "kv":
        return KeyValueLeaderboardStore(tmp_path / "board.db")
    return JsonFileLeaderboardStore(tmp_path / "board.json")


def test_empty_store_reads_as_empty(store) -> None:
    assert store.read_all() == []


def test_entries_sort_by_score_then_time(store) -> None:
    store.add(_entry("B", 20, 100))
    store.add(_entry("A", 25, 120))
    result = store.add(_entry("C", 20, 90))

    assert [e.name for e in result] == ["A", "C", "B"]
    assert [e.name for e in store.read_all()] == ["A", "C", "B"]


def test_equal_scores_rank_faster_time_first(store) -> None:
    store.add(_entry("A", 10, 20))
    store.add(_entry("B", 10, 15))
    store.add(_entry("C", 9, 5))

    assert [e.name for e in store.read_all()] == ["B", "A", "C"]


def test_store_keeps_top_hundred(store) -> None:
    store.write_all(_entry(f"p{i}", i, 60) for i in range(100))

    result = store.add(_entry("late", 0, 30))

    assert len(result) == 100
    assert result[0].name == "p99"
    assert result[-1].name == "late"
    assert "p0" not in {e.name for e in result}


def test_entry_round_trips_camel_case_fields(store) -> None:
    store.add(_entry("Ada", 27, 95.5))

    (entry,) = store.read_all()
    assert entry == _entry("Ada", 27, 95.5)
    assert entry.to_dict() == {
        "name": "Ada",
        "score": 27,
        "totalTime": 95.5,
        "createdAt": "2024-01-01T00:00:00Z",
    }


def test_corrupted_file_reads_as_empty(tmp_path: Path) -> None:
    path = tmp_path / "board.json"
    path.write_text("{not json", encoding="utf-8")

    assert JsonFileLeaderboardStore(path).read_all() == []


def test_corrupted_kv_value_reads_as_empty(tmp_path: Path) -> None:
    path = tmp_path / "board.db"
    conn = open_db(path)
    try:
        kv_set(conn, LEADERBOARD_KEY, "[{broken")
    finally:
        conn.close()

    assert KeyValueLeaderboardStore(path).read_all() == []


def test_invalid_items_are_dropped(tmp_path: Path) -> None:
    path = tmp_path / "board.json"
    path.write_text(
        json.dumps(
            [
                {"name": "ok", "score": 3, "totalTime": 10, "createdAt": "x"},
                {"name": "bad", "score": "3", "totalTime": 10},
                {"name": "flag", "score": True, "totalTime": 10},
                "nope",
            ]
        ),
        encoding="utf-8",
    )

    assert [e.name for e in JsonFileLeaderboardStore(path).read_all()] == ["ok"]


def test_non_finite_stored_numbers_are_dropped(tmp_path: Path) -> None:
    path = tmp_path / "board.json"
    path.write_text(
        '[{"name": "nan", "score": NaN, "totalTime": 1, "createdAt": "x"},'
        ' {"name": "inf", "score": 2, "totalTime": Infinity, "createdAt": "x"},'
        ' {"name": "ok", "score": 1, "totalTime": 1, "createdAt": "x"}]',
        encoding="utf-8",
    )

    assert [e.name for e in JsonFileLeaderboardStore(path).read_all()] == ["ok"]


def test_kv_store_uses_named_key(tmp_path: Path) -> None:
    path = tmp_path / "board.db"
    KeyValueLeaderboardStore(path).add(_entry("Ada", 1, 1))

    conn = sqlite3.connect(path)
    try:
        keys = [row[0] for row in conn.execute("SELECT key FROM kv")]
    finally:
        conn.close()
    assert keys == [LEADERBOARD_KEY]


def test_write_failure_is_logged_not_raised(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")

    for store in (
        JsonFileLeaderboardStore(blocker / "board.json"),
        KeyValueLeaderboardStore(blocker / "board.db"),
    ):
        result = store.add(_entry("Ada", 1, 1))
        assert [e.name for e in result] == ["Ada"]

    assert "could not write leaderboard" in caplog.text


def test_make_entry_truncates_long_names() -> None:
    entry = make_entry(name="x" * 80, score=1, total_time=1)

    assert len(entry.name) == 50
    assert entry.created_at.endswith("Z")


def test_sort_and_trim_honours_limit() -> None:
    entries = [_entry("a", 1, 5), _entry("b", 2, 9), _entry("c", 2, 3)]

    assert [e.name for e in sort_and_trim(entries, limit=2)] == ["c", "b"]


def test_backend_selected_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(LEADERBOARD_PATH_ENV, str(tmp_path / "board.json"))

    monkeypatch.setenv(LEADERBOARD_BACKEND_ENV, "file")
    file_store = open_leaderboard_store()
    assert isinstance(file_store, JsonFileLeaderboardStore)
    assert file_store.path == tmp_path / "board.json"

    monkeypatch.setenv(LEADERBOARD_BACKEND_ENV, "kv")
    assert isinstance(open_leaderboard_store(), KeyValueLeaderboardStore)

    monkeypatch.setenv(LEADERBOARD_BACKEND_ENV, "bogus")
    assert isinstance(open_leaderboard_store(), KeyValueLeaderboardStore)

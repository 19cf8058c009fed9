from __future__ import annotations

import sqlite3

import pytest

from local_repo import LocalRepo
from persistence import BackendFailure, NotFound, ValidationFailure
from tests.conftest import TODAY


def test_schema_created_idempotently(tmp_path) -> None:
    path = str(tmp_path / "nested" / "store.sqlite")
    LocalRepo(path).close()
    LocalRepo(path).close()
    with sqlite3.connect(path) as conn:
        tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
    assert {"tasks", "ideas", "moods", "reflections"} <= tables


def test_add_task_shows_up_today(local_repo: LocalRepo) -> None:
    task = local_repo.add_task(None, "  write tests  ")
    assert task.text == "write tests"
    assert task.completed is False
    assert task.date == TODAY.isoformat()

    bundle = local_repo.get_today(None, TODAY.isoformat())
    assert [(t.text, t.completed) for t in bundle.tasks] == [("write tests", False)]
    assert bundle.mood is None
    assert bundle.reflection is None


def test_tasks_newest_first_and_scoped_to_day(local_repo: LocalRepo) -> None:
    local_repo.add_task(None, "first")
    local_repo.add_task(None, "second")
    bundle = local_repo.get_today(None, TODAY.isoformat())
    assert [t.text for t in bundle.tasks] == ["second", "first"]
    assert local_repo.get_today(None, "2024-03-14").tasks == []


@pytest.mark.parametrize("text", ["", "   ", None])
def test_empty_task_rejected_without_storing(local_repo: LocalRepo, text) -> None:
    with pytest.raises(ValidationFailure):
        local_repo.add_task(None, text)
    assert local_repo.get_today(None, TODAY.isoformat()).tasks == []


def test_toggle_twice_restores_value(local_repo: LocalRepo) -> None:
    task = local_repo.add_task(None, "flip me")
    assert local_repo.toggle_task(None, task.id) is True
    assert local_repo.get_today(None, TODAY.isoformat()).tasks[0].completed is True
    assert local_repo.toggle_task(None, task.id) is False


def test_completed_stored_as_integer(local_repo: LocalRepo) -> None:
    task = local_repo.add_task(None, "flip me")
    local_repo.toggle_task(None, task.id)
    with local_repo.engine.connect() as conn:
        raw = conn.exec_driver_sql("SELECT completed FROM tasks WHERE id = ?", (task.id,)).scalar()
    assert raw == 1


def test_missing_task_is_not_found(local_repo: LocalRepo) -> None:
    with pytest.raises(NotFound):
        local_repo.toggle_task(None, 999)
    with pytest.raises(NotFound):
        local_repo.delete_task(None, 999)


def test_delete_task(local_repo: LocalRepo) -> None:
    task = local_repo.add_task(None, "gone soon")
    local_repo.delete_task(None, task.id)
    assert local_repo.get_today(None, TODAY.isoformat()).tasks == []
    with pytest.raises(NotFound):
        local_repo.delete_task(None, task.id)


def test_ideas_listing(local_repo: LocalRepo) -> None:
    local_repo.add_idea(None, "ship v1")
    local_repo.add_idea(None, "ship v2")
    ideas = local_repo.list_ideas(None)
    assert [i.text for i in ideas] == ["ship v2", "ship v1"]
    assert all(i.created_at is not None for i in ideas)


def test_ideas_capped_at_fifty(local_repo: LocalRepo) -> None:
    for n in range(55):
        local_repo.add_idea(None, f"idea {n}")
    ideas = local_repo.list_ideas(None)
    assert len(ideas) == 50
    assert ideas[0].text == "idea 54"


def test_empty_idea_rejected(local_repo: LocalRepo) -> None:
    with pytest.raises(ValidationFailure):
        local_repo.add_idea(None, " ")
    assert local_repo.list_ideas(None) == []


def test_delete_idea(local_repo: LocalRepo) -> None:
    idea = local_repo.add_idea(None, "temporary")
    local_repo.delete_idea(None, idea.id)
    assert local_repo.list_ideas(None) == []
    with pytest.raises(NotFound):
        local_repo.delete_idea(None, idea.id)


def test_mood_last_write_wins(local_repo: LocalRepo) -> None:
    day = TODAY.isoformat()
    local_repo.set_mood(None, day, 2)
    row = local_repo.set_mood(None, day, 5)
    assert row.mood == 5
    assert local_repo.get_today(None, day).mood == 5
    with local_repo.engine.connect() as conn:
        assert conn.exec_driver_sql("SELECT COUNT(*) FROM moods").scalar() == 1


@pytest.mark.parametrize("value", [0, 6, None, True])
def test_mood_out_of_range_rejected(local_repo: LocalRepo, value) -> None:
    with pytest.raises(ValidationFailure):
        local_repo.set_mood(None, TODAY.isoformat(), value)


def test_reflection_trimmed_and_empty_allowed(local_repo: LocalRepo) -> None:
    day = TODAY.isoformat()
    assert local_repo.set_reflection(None, day, "  good day ").text == "good day"
    assert local_repo.get_today(None, day).reflection == "good day"
    assert local_repo.set_reflection(None, day, None).text == ""
    assert local_repo.get_today(None, day).reflection == ""


def test_history_pads_window_and_drops_reflection_only_days(local_repo: LocalRepo) -> None:
    local_repo.set_mood(None, "2024-03-15", 4)
    local_repo.set_reflection(None, "2024-03-15", "shipped")
    local_repo.set_mood(None, "2024-03-12", 2)
    local_repo.set_reflection(None, "2024-03-13", "only a note")
    local_repo.set_mood(None, "2024-03-01", 5)

    history = local_repo.get_history(None)
    assert [h.date for h in history] == [
        "2024-03-09",
        "2024-03-10",
        "2024-03-11",
        "2024-03-12",
        "2024-03-13",
        "2024-03-14",
        "2024-03-15",
    ]
    by_day = {h.date: (h.mood, h.highlight) for h in history}
    assert by_day["2024-03-15"] == (4, "shipped")
    assert by_day["2024-03-12"] == (2, "")
    assert by_day["2024-03-13"] == (None, "")
    assert by_day["2024-03-09"] == (None, "")


def test_store_errors_become_backend_failures(local_repo: LocalRepo) -> None:
    with local_repo.engine.begin() as conn:
        conn.exec_driver_sql("DROP TABLE tasks")
    with pytest.raises(BackendFailure):
        local_repo.get_today(None, TODAY.isoformat())


@pytest.mark.parametrize("record_id", [2**63, 2**70, -(2**63) - 1])
def test_out_of_range_ids_are_not_found(local_repo: LocalRepo, record_id: int) -> None:
    with pytest.raises(NotFound):
        local_repo.toggle_task(None, record_id)
    with pytest.raises(NotFound):
        local_repo.delete_task(None, record_id)
    with pytest.raises(NotFound):
        local_repo.delete_idea(None, record_id)

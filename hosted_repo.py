"""
Multi-tenant store over a hosted Supabase (PostgREST) project.

Every read is scoped to the caller, and every change to a task or idea first
checks that the caller owns it.
"""

import logging
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

import httpx
from postgrest.exceptions import APIError
from pydantic import BaseModel, ValidationError

from history import build_window, index_by_day
from identity import Caller
from persistence import (
    IDEAS_LIMIT,
    BackendFailure,
    BaseRepo,
    Forbidden,
    NotFound,
    Unauthorized,
    check_mood,
    clean_text,
    window_days,
)
from schemas import HistoryEntry, Idea, Mood, Reflection, Task, TodayBundle

logger = logging.getLogger(__name__)

LOOKBACK_DAYS = 30
LOOKBACK_ROWS = 500

M = TypeVar("M", bound=BaseModel)


class HostedRepo(BaseRepo):
    mode = "supabase"

    def __init__(self, client: Any, today: Optional[Callable[[], date]] = None):
        super().__init__(today)
        self.client = client

    def _run(self, query, what: str) -> List[Dict[str, Any]]:
        try:
            res = query.execute()
        except (APIError, httpx.HTTPError) as exc:
            logger.error("Supabase %s failed: %s", what, exc)
            raise BackendFailure() from exc
        return list(res.data or [])

    @staticmethod
    def _record(model: Type[M], row: Any) -> M:
        try:
            return model.model_validate(row)
        except ValidationError as exc:
            logger.error("Supabase returned a malformed %s row: %s", model.__name__, exc)
            raise BackendFailure() from exc

    @staticmethod
    def _require(caller: Optional[Caller]) -> int:
        if caller is None or not caller.id:
            raise Unauthorized()
        return int(caller.id)

    def ensure_user(self, caller: Caller) -> None:
        payload = {
            "id": int(caller.id),
            "username": caller.username,
            "first_name": caller.first_name,
            "last_name": caller.last_name,
        }
        self._run(self.client.table("users").upsert(payload, on_conflict="id"), "user upsert")

    def _owned(self, table: str, caller: Optional[Caller], record_id: int, columns: str) -> Dict[str, Any]:
        """Fetch one row and check it belongs to ``caller``."""
        tg_id = self._require(caller)
        rows = self._run(
            self.client.table(table).select(columns).eq("id", record_id).limit(1),
            f"{table} lookup",
        )
        if not rows:
            raise NotFound()
        if rows[0].get("telegram_id") is None or int(rows[0]["telegram_id"]) != tg_id:
            raise Forbidden()
        return rows[0]

    # ---------- Today ----------
    def get_today(self, caller: Optional[Caller], day: str) -> TodayBundle:
        tg_id = self._require(caller)
        tasks = self._run(
            self.client.table("tasks")
            .select("id,text,completed,created_at,telegram_id")
            .eq("telegram_id", tg_id)
            .eq("date", day)
            .order("created_at", desc=True),
            "tasks select",
        )
        moods = self._run(
            self.client.table("moods").select("mood").eq("telegram_id", tg_id).eq("date", day).limit(1),
            "moods select",
        )
        refls = self._run(
            self.client.table("reflections").select("text").eq("telegram_id", tg_id).eq("date", day).limit(1),
            "reflections select",
        )
        return self._record(TodayBundle, {
            "tasks": tasks,
            "mood": moods[0].get("mood") if moods else None,
            "reflection": refls[0].get("text") if refls else None,
        })

    # ---------- Tasks ----------
    def add_task(self, caller: Optional[Caller], text: Optional[str]) -> Task:
        body = clean_text(text, "task")
        tg_id = self._require(caller)
        self.ensure_user(caller)
        rows = self._run(
            self.client.table("tasks").insert(
                {"telegram_id": tg_id, "date": self.current_day(), "text": body, "completed": False}
            ),
            "tasks insert",
        )
        if not rows:
            raise BackendFailure("Task insert returned no row")
        return self._record(Task, rows[0])

    def toggle_task(self, caller: Optional[Caller], task_id: int) -> bool:
        row = self._owned("tasks", caller, task_id, "id,completed,telegram_id")
        new_val = not row.get("completed")
        self._run(self.client.table("tasks").update({"completed": new_val}).eq("id", task_id), "tasks update")
        return new_val

    def delete_task(self, caller: Optional[Caller], task_id: int) -> None:
        self._owned("tasks", caller, task_id, "id,telegram_id")
        self._run(self.client.table("tasks").delete().eq("id", task_id), "tasks delete")

    # ---------- Ideas ----------
    def list_ideas(self, caller: Optional[Caller]) -> List[Idea]:
        tg_id = self._require(caller)
        rows = self._run(
            self.client.table("ideas")
            .select("id,text,created_at")
            .eq("telegram_id", tg_id)
            .order("created_at", desc=True)
            .limit(IDEAS_LIMIT),
            "ideas select",
        )
        return [self._record(Idea, r) for r in rows]

    def add_idea(self, caller: Optional[Caller], text: Optional[str]) -> Idea:
        body = clean_text(text, "idea")
        tg_id = self._require(caller)
        self.ensure_user(caller)
        rows = self._run(
            self.client.table("ideas").insert({"telegram_id": tg_id, "text": body}),
            "ideas insert",
        )
        if not rows:
            raise BackendFailure("Idea insert returned no row")
        return self._record(Idea, rows[0])

    def delete_idea(self, caller: Optional[Caller], idea_id: int) -> None:
        self._owned("ideas", caller, idea_id, "id,telegram_id")
        self._run(self.client.table("ideas").delete().eq("id", idea_id), "ideas delete")

    # ---------- Mood / reflection ----------
    def _update_then_insert(self, table: str, tg_id: int, day: str, values: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update the (caller, day) row, inserting only when nothing was updated.

        Not atomic: two writers racing on the same key can both miss the
        update, and the losing insert surfaces as a BackendFailure.
        """
        key = {"telegram_id": tg_id, "date": day}
        updated = self._run(self.client.table(table).update(values).match(key), f"{table} update")
        logger.debug("Supabase %s update result: %s", table, updated)
        if updated:
            return updated[0]
        inserted = self._run(self.client.table(table).insert({**key, **values}), f"{table} insert")
        logger.debug("Supabase %s insert result: %s", table, inserted)
        if not inserted:
            raise BackendFailure(f"{table} insert returned no row")
        return inserted[0]

    def set_mood(self, caller: Optional[Caller], day: str, value: Optional[int]) -> Mood:
        value = check_mood(value)
        tg_id = self._require(caller)
        self.ensure_user(caller)
        row = self._update_then_insert("moods", tg_id, day, {"mood": value})
        return self._record(Mood, row)

    def set_reflection(self, caller: Optional[Caller], day: str, text: Optional[str]) -> Reflection:
        tg_id = self._require(caller)
        self.ensure_user(caller)
        row = self._update_then_insert("reflections", tg_id, day, {"text": (text or "").strip()})
        return self._record(Reflection, row)

    # ---------- History ----------
    def get_history(self, caller: Optional[Caller]) -> List[HistoryEntry]:
        tg_id = self._require(caller)
        today = self.today()
        since = (today - timedelta(days=LOOKBACK_DAYS)).isoformat()
        moods = self._run(
            self.client.table("moods")
            .select("*")
            .eq("telegram_id", tg_id)
            .gte("date", since)
            .order("date", desc=True)
            .limit(LOOKBACK_ROWS),
            "moods history",
        )
        refls = self._run(
            self.client.table("reflections")
            .select("*")
            .eq("telegram_id", tg_id)
            .gte("date", since)
            .order("date", desc=True)
            .limit(LOOKBACK_ROWS),
            "reflections history",
        )
        try:
            return build_window(
                window_days(today),
                index_by_day(moods, "mood"),
                index_by_day(refls, "text"),
            )
        except ValidationError as exc:
            logger.error("Supabase returned malformed history rows: %s", exc)
            raise BackendFailure() from exc

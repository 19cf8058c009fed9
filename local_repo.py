"""
Single-tenant store over an embedded SQLite file.

No caller scoping and no ownership checks: every record is visible to
whoever calls. The schema is created on startup if missing.
"""

import logging
import os
from contextlib import contextmanager
from datetime import date
from typing import Callable, Iterator, List, Optional

from sqlalchemy import Column, DateTime, Integer, String, Text, create_engine, func
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from identity import Caller
from persistence import (
    HISTORY_DAYS,
    IDEAS_LIMIT,
    MAX_RECORD_ID,
    BackendFailure,
    BaseRepo,
    NotFound,
    check_mood,
    clean_text,
    window_days,
)
from schemas import HistoryEntry, Idea, Mood, Reflection, Task, TodayBundle

logger = logging.getLogger(__name__)

Base = declarative_base()


class TaskRow(Base):
    __tablename__ = "tasks"
    id        = Column(Integer, primary_key=True, autoincrement=True)
    day       = Column(String, index=True)
    text      = Column(Text)
    # 0/1 on disk, bool on the wire
    completed = Column(Integer, default=0)


class IdeaRow(Base):
    __tablename__ = "ideas"
    id         = Column(Integer, primary_key=True, autoincrement=True)
    text       = Column(Text)
    created_at = Column(DateTime, server_default=func.current_timestamp())


class MoodRow(Base):
    __tablename__ = "moods"
    day  = Column(String, primary_key=True)
    mood = Column(Integer)


class ReflectionRow(Base):
    __tablename__ = "reflections"
    day  = Column(String, primary_key=True)
    text = Column(Text)


def _task(row: TaskRow) -> Task:
    return Task(id=row.id, text=row.text, completed=bool(row.completed), date=row.day)


def _idea(row: IdeaRow) -> Idea:
    return Idea(id=row.id, text=row.text, created_at=row.created_at)


class LocalRepo(BaseRepo):
    mode = "sqlite"

    def __init__(self, path: str, today: Optional[Callable[[], date]] = None):
        super().__init__(today)
        folder = os.path.dirname(os.path.abspath(path))
        os.makedirs(folder, exist_ok=True)
        # one engine shared by every request thread
        self.engine = create_engine(
            f"sqlite:///{path}",
            echo=False,
            connect_args={"check_same_thread": False},
        )
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(bind=self.engine, expire_on_commit=False)
        logger.info("SQLite store ready at %s", path)

    def close(self) -> None:
        self.engine.dispose()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self.Session() as s:
                yield s
        except SQLAlchemyError as exc:
            raise BackendFailure() from exc

    @staticmethod
    def _find(s: Session, model, record_id: int):
        # out-of-range ids overflow the sqlite3 bind, and cannot exist anyway
        if not -MAX_RECORD_ID - 1 <= record_id <= MAX_RECORD_ID:
            raise NotFound()
        row = s.get(model, record_id)
        if row is None:
            raise NotFound()
        return row

    # ---------- Today ----------
    def get_today(self, caller: Optional[Caller], day: str) -> TodayBundle:
        with self._session() as s:
            tasks = (
                s.query(TaskRow)
                .filter(TaskRow.day == day)
                .order_by(TaskRow.id.desc())
                .all()
            )
            mood = s.get(MoodRow, day)
            reflection = s.get(ReflectionRow, day)
            return TodayBundle(
                tasks=[_task(t) for t in tasks],
                mood=mood.mood if mood else None,
                reflection=reflection.text if reflection else None,
            )

    # ---------- Tasks ----------
    def add_task(self, caller: Optional[Caller], text: Optional[str]) -> Task:
        body = clean_text(text, "task")
        with self._session() as s:
            row = TaskRow(day=self.current_day(), text=body, completed=0)
            s.add(row)
            s.commit()
            return _task(row)

    def toggle_task(self, caller: Optional[Caller], task_id: int) -> bool:
        with self._session() as s:
            row = self._find(s, TaskRow, task_id)
            row.completed = 0 if row.completed else 1
            s.commit()
            return bool(row.completed)

    def delete_task(self, caller: Optional[Caller], task_id: int) -> None:
        with self._session() as s:
            row = self._find(s, TaskRow, task_id)
            s.delete(row)
            s.commit()

    # ---------- Ideas ----------
    def list_ideas(self, caller: Optional[Caller]) -> List[Idea]:
        with self._session() as s:
            rows = (
                s.query(IdeaRow)
                .order_by(IdeaRow.created_at.desc(), IdeaRow.id.desc())
                .limit(IDEAS_LIMIT)
                .all()
            )
            return [_idea(r) for r in rows]

    def add_idea(self, caller: Optional[Caller], text: Optional[str]) -> Idea:
        body = clean_text(text, "idea")
        with self._session() as s:
            row = IdeaRow(text=body)
            s.add(row)
            s.commit()
            s.refresh(row)
            return _idea(row)

    def delete_idea(self, caller: Optional[Caller], idea_id: int) -> None:
        with self._session() as s:
            row = self._find(s, IdeaRow, idea_id)
            s.delete(row)
            s.commit()

    # ---------- Mood / reflection ----------
    # the day is the whole key here, so a single upsert is enough
    def set_mood(self, caller: Optional[Caller], day: str, value: Optional[int]) -> Mood:
        value = check_mood(value)
        stmt = sqlite_insert(MoodRow).values(day=day, mood=value)
        stmt = stmt.on_conflict_do_update(index_elements=[MoodRow.day], set_={"mood": value})
        with self._session() as s:
            s.execute(stmt)
            s.commit()
        return Mood(date=day, mood=value)

    def set_reflection(self, caller: Optional[Caller], day: str, text: Optional[str]) -> Reflection:
        body = (text or "").strip()
        stmt = sqlite_insert(ReflectionRow).values(day=day, text=body)
        stmt = stmt.on_conflict_do_update(index_elements=[ReflectionRow.day], set_={"text": body})
        with self._session() as s:
            s.execute(stmt)
            s.commit()
        return Reflection(date=day, text=body)

    # ---------- History ----------
    def get_history(self, caller: Optional[Caller]) -> List[HistoryEntry]:
        days = window_days(self.today())
        # mood-driven join: a day with only a reflection contributes nothing
        with self._session() as s:
            rows = (
                s.query(MoodRow.day, MoodRow.mood, ReflectionRow.text)
                .outerjoin(ReflectionRow, ReflectionRow.day == MoodRow.day)
                .filter(MoodRow.day >= days[0], MoodRow.day <= days[-1])
                .order_by(MoodRow.day.desc())
                .limit(HISTORY_DAYS)
                .all()
            )
        joined = {day: (mood, text) for day, mood, text in rows}
        out = []
        for day in days:
            mood, text = joined.get(day, (None, None))
            out.append(HistoryEntry(date=day, mood=mood, highlight=text or ""))
        return out

"""
The repository interface both stores implement, and the errors they raise.

Each error class carries the HTTP status the API layer answers with.
"""

from abc import ABC, abstractmethod
from datetime import date, timedelta
from typing import Callable, List, Optional

from identity import Caller
from schemas import HistoryEntry, Idea, Mood, Reflection, Task, TodayBundle

HISTORY_DAYS = 7
IDEAS_LIMIT = 50
# SQLite INTEGER and Postgres bigint
MAX_RECORD_ID = 2**63 - 1


class RepoError(Exception):
    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class ValidationFailure(RepoError):
    status_code = 400
    default_message = "Invalid input"


class Unauthorized(RepoError):
    status_code = 401
    default_message = "Unauthorized (no telegram user)"


class Forbidden(RepoError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(RepoError):
    status_code = 404
    default_message = "Not found"


class BackendFailure(RepoError):
    status_code = 500
    default_message = "Storage backend failure"


def clean_text(text: Optional[str], what: str) -> str:
    cleaned = (text or "").strip()
    if not cleaned:
        raise ValidationFailure(f"Empty {what}")
    return cleaned


def check_mood(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 5:
        raise ValidationFailure("Mood must be an integer between 1 and 5")
    return value


def window_days(today: date, days: int = HISTORY_DAYS) -> List[str]:
    """``days`` calendar days ending with ``today``, oldest first."""
    return [(today - timedelta(days=i)).isoformat() for i in range(days - 1, -1, -1)]


class BaseRepo(ABC):
    mode = ""

    def __init__(self, today: Optional[Callable[[], date]] = None):
        self.today = today or date.today

    def current_day(self) -> str:
        return self.today().isoformat()

    def close(self) -> None:
        pass

    # ---------- Today ----------
    @abstractmethod
    def get_today(self, caller: Optional[Caller], day: str) -> TodayBundle:
        ...

    # ---------- Tasks ----------
    @abstractmethod
    def add_task(self, caller: Optional[Caller], text: Optional[str]) -> Task:
        ...

    @abstractmethod
    def toggle_task(self, caller: Optional[Caller], task_id: int) -> bool:
        ...

    @abstractmethod
    def delete_task(self, caller: Optional[Caller], task_id: int) -> None:
        ...

    # ---------- Ideas ----------
    @abstractmethod
    def list_ideas(self, caller: Optional[Caller]) -> List[Idea]:
        ...

    @abstractmethod
    def add_idea(self, caller: Optional[Caller], text: Optional[str]) -> Idea:
        ...

    @abstractmethod
    def delete_idea(self, caller: Optional[Caller], idea_id: int) -> None:
        ...

    # ---------- Mood / reflection ----------
    @abstractmethod
    def set_mood(self, caller: Optional[Caller], day: str, value: Optional[int]) -> Mood:
        ...

    @abstractmethod
    def set_reflection(self, caller: Optional[Caller], day: str, text: Optional[str]) -> Reflection:
        ...

    # ---------- History ----------
    @abstractmethod
    def get_history(self, caller: Optional[Caller]) -> List[HistoryEntry]:
        ...

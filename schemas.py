"""
Record and request schemas for the Daybook API

Each record model below is what a repository hands back to the HTTP layer,
whichever store produced it. Hosted rows carry ``telegram_id`` (the owning
user); local rows leave it empty. Unknown columns coming back from the hosted
store are ignored.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Record(BaseModel):
    model_config = ConfigDict(extra="ignore")


class User(Record):
    id: int = Field(..., description="Caller's external numeric id")
    username: Optional[str] = Field(None, description="Advisory handle")
    first_name: Optional[str] = Field(None, description="Advisory first name")
    last_name: Optional[str] = Field(None, description="Advisory last name")


class Task(Record):
    id: int = Field(..., description="Store-assigned id")
    text: str = Field(..., description="Task body")
    completed: bool = Field(False, description="Completion status")
    date: Optional[str] = Field(None, description="Day the task belongs to (YYYY-MM-DD)")
    created_at: Optional[datetime] = Field(None, description="Creation time (hosted store)")
    telegram_id: Optional[int] = Field(None, description="Owner id (hosted store)")


class Idea(Record):
    id: int = Field(..., description="Store-assigned id")
    text: str = Field(..., description="Idea body")
    created_at: Optional[datetime] = Field(None, description="Creation time")
    telegram_id: Optional[int] = Field(None, description="Owner id (hosted store)")


class Mood(Record):
    date: str = Field(..., description="Day (YYYY-MM-DD)")
    mood: int = Field(..., description="Mood value 1..5")
    telegram_id: Optional[int] = Field(None, description="Owner id (hosted store)")


class Reflection(Record):
    date: str = Field(..., description="Day (YYYY-MM-DD)")
    text: str = Field("", description="Reflection body, trimmed")
    telegram_id: Optional[int] = Field(None, description="Owner id (hosted store)")


class TodayBundle(BaseModel):
    tasks: List[Task] = Field(default_factory=list)
    mood: Optional[int] = None
    reflection: Optional[str] = None


class HistoryEntry(BaseModel):
    date: str
    mood: Optional[int] = None
    highlight: Optional[str] = ""


# ---------- Request bodies ----------
class TextBody(BaseModel):
    text: Optional[str] = None


class MoodBody(BaseModel):
    mood: Optional[int] = None

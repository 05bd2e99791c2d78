from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Status(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"

    @property
    def label(self) -> str:
        return {"todo": "To Do", "in_progress": "In Progress", "done": "Done"}[self.value]


class ActivityType(str, Enum):
    TASK_CREATE = "task_create"
    TASK_UPDATE = "task_update"
    TASK_DELETE = "task_delete"
    PROJECT_UPDATE = "project_update"


def now_iso() -> str:
    """UTC timestamp in the format PocketBase stores ("2024-05-01 10:00:00.000Z")."""
    return dt.datetime.now(dt.timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3] + "Z"


def reminder_from_due(due_date: str, days_before: int) -> str:
    """Reminder date = due date minus N days (YYYY-MM-DD)."""
    d = dt.date.fromisoformat(str(due_date)[:10])
    return (d - dt.timedelta(days=days_before)).isoformat()


def reminder_days(due_date: Optional[str], reminder_date: Optional[str]) -> Optional[int]:
    """Inverse of reminder_from_due: how many days before the due date the reminder is."""
    if not due_date or not reminder_date:
        return None
    due = dt.date.fromisoformat(str(due_date)[:10])
    return (due - dt.date.fromisoformat(str(reminder_date)[:10])).days


def _opt(value: Any) -> Optional[str]:
    # PocketBase devuelve "" para fechas/relaciones vacías
    return value or None


@dataclass
class Task:
    id: str
    title: str
    description: str
    status: Status
    project: str  # project id
    created: Optional[str] = None
    due_date: Optional[str] = None
    completed_at: Optional[str] = None
    reminder_date: Optional[str] = None
    position: Optional[float] = None

    @classmethod
    def from_record(cls, rec: Dict[str, Any]) -> "Task":
        return cls(
            id=rec["id"],
            title=rec.get("title") or "",
            description=rec.get("description") or "",
            status=Status(rec.get("status") or "todo"),
            project=rec.get("project") or "",
            created=_opt(rec.get("created")),
            due_date=_opt(rec.get("due_date")),
            completed_at=_opt(rec.get("completed_at")),
            reminder_date=_opt(rec.get("reminder_date")),
            position=rec.get("position"),
        )

    def to_record(self) -> Dict[str, Any]:
        rec: Dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "project": self.project,
            "due_date": self.due_date or "",
            "completed_at": self.completed_at or "",
            "reminder_date": self.reminder_date or "",
        }
        if self.position is not None:
            rec["position"] = self.position
        return rec

    @property
    def done(self) -> bool:
        return self.status is Status.DONE


@dataclass
class Project:
    id: str
    title: str
    owner: str  # user id
    description: Optional[str] = None
    created: Optional[str] = None
    tasks: List[Task] = field(default_factory=list)

    @classmethod
    def from_record(cls, rec: Dict[str, Any]) -> "Project":
        # tasks llegan por expand de la back-relation (tasks.project)
        expanded = (rec.get("expand") or {}).get("tasks_via_project") or []
        return cls(
            id=rec["id"],
            title=rec.get("title") or "",
            owner=rec.get("owner") or "",
            description=_opt(rec.get("description")),
            created=_opt(rec.get("created")),
            tasks=[Task.from_record(t) for t in expanded],
        )


@dataclass
class Activity:
    type: ActivityType
    project: str
    project_title: str
    owner: str
    task: Optional[str] = None
    task_title: Optional[str] = None
    old_status: Optional[str] = None
    new_status: Optional[str] = None
    id: Optional[str] = None
    created: Optional[str] = None

    @classmethod
    def from_record(cls, rec: Dict[str, Any]) -> "Activity":
        return cls(
            id=rec.get("id"),
            type=ActivityType(rec["type"]),
            project=rec.get("project") or "",
            project_title=rec.get("project_title") or "",
            owner=rec.get("owner") or "",
            task=_opt(rec.get("task")),
            task_title=_opt(rec.get("task_title")),
            old_status=_opt(rec.get("old_status")),
            new_status=_opt(rec.get("new_status")),
            created=_opt(rec.get("created")),
        )

    def to_record(self) -> Dict[str, Any]:
        rec = {
            "type": self.type.value,
            "project": self.project,
            "project_title": self.project_title,
            "owner": self.owner,
        }
        for key in ("task", "task_title", "old_status", "new_status"):
            value = getattr(self, key)
            if value:
                rec[key] = value
        return rec

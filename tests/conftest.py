# tests/conftest.py

from __future__ import annotations

import pytest

from controller.task_controller import TaskListController
from core.session import Session
from services.activity_service import ActivityLog

from .fakes import FakePocketBase


@pytest.fixture()
def session() -> Session:
    return Session(user_id="u1", token="tok")


@pytest.fixture()
def store() -> FakePocketBase:
    return FakePocketBase()


@pytest.fixture()
def activities(store: FakePocketBase) -> ActivityLog:
    return ActivityLog(store)


@pytest.fixture()
def project(store: FakePocketBase) -> dict:
    return store.add_project("u1", "Website")


@pytest.fixture()
def ctrl(store: FakePocketBase, activities: ActivityLog, project: dict, session: Session) -> TaskListController:
    """Controller for the user's project, already loaded (empty)."""
    c = TaskListController(store, activities, project["id"])
    assert c.load(session)
    return c

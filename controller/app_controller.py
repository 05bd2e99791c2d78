import logging
from typing import List, Optional

from controller.task_controller import TaskListController
from core.exceptions import AuthError, PBError, ValidationError
from core.models import Activity, ActivityType, Project, Task
from core.session import Session
from core.stats import ProjectStats, project_stats
from services.activity_service import ActivityLog
from storage.pocketbase import PocketBaseClient

log = logging.getLogger(__name__)


class AppController:
    """Coordina la UI con el backend (PocketBase) y servicios de dominio."""
    def __init__(self, client: PocketBaseClient, activities: Optional[ActivityLog] = None):
        self.client = client
        self.activities = activities or ActivityLog(client)
        self.session: Optional[Session] = None
        self.current: Optional[TaskListController] = None
        self.error: Optional[str] = None

    def _fail(self, what: str, exc: Exception) -> None:
        log.error("%s: %s", what, exc)
        self.error = f"{what}: {exc}"

    def _require_session(self) -> Session:
        if self.session is None or not self.session.is_valid():
            raise AuthError("Not authenticated")
        return self.session

    # ---- auth ----
    def login(self, identity: str, password: str) -> Session:
        """Propaga AuthError: sin sesión no hay app."""
        self.session = self.client.login(identity, password)
        self.error = None
        return self.session

    # ---- projects ----
    def list_projects(self) -> List[Project]:
        try:
            items = self.client.list_projects(self._require_session())
            projects = [Project.from_record(p) for p in items]
        except (PBError, ValueError) as e:
            self._fail("Failed to load projects", e)
            return []
        self.error = None
        return projects

    def create_project(self, title: str, description: Optional[str] = None) -> Optional[Project]:
        try:
            title = (title or "").strip()
            if not title:
                raise ValidationError("Please enter a project title")
            session = self._require_session()
            rec = self.client.create_project(session, title=title, description=(description or "").strip() or None)
            project = Project.from_record(rec)
        except ValidationError as e:
            log.info("Rejected project: %s", e)
            self.error = str(e)
            return None
        except PBError as e:
            self._fail("Failed to add project", e)
            return None
        self.error = None
        self.activities.record(session, ActivityType.PROJECT_UPDATE, project_id=project.id,
                               project_title=project.title)
        return project

    @staticmethod
    def project_stats(project: Project) -> ProjectStats:
        return project_stats(project.tasks)

    def open_project(self, project_id: str) -> TaskListController:
        """Crea y carga el controller de la lista de tareas; cierra el anterior."""
        if self.current is not None:
            self.current.close()
        ctrl = TaskListController(self.client, self.activities, project_id)
        ctrl.load(self.session)
        self.current = ctrl
        return ctrl

    # ---- dashboards ----
    def completed_tasks(self) -> List[Task]:
        try:
            items = self.client.list_done_tasks(self._require_session())
            tasks = [Task.from_record(t) for t in items]
        except (PBError, ValueError) as e:
            self._fail("Failed to load completed tasks", e)
            return []
        self.error = None
        return tasks

    def recent_activity(self, limit: int = 50) -> List[Activity]:
        try:
            return self.activities.recent(self._require_session(), limit=limit)
        except (PBError, ValueError) as e:
            self._fail("Failed to load recent activity", e)
            return []

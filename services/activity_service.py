import logging
from typing import List, Optional

from core.exceptions import PBError
from core.models import Activity, ActivityType, Status
from core.session import Session
from storage.pocketbase import PocketBaseClient

log = logging.getLogger(__name__)


def _status_text(status) -> Optional[str]:
    if status is None:
        return None
    return Status(status).label


class ActivityLog:
    """Registro de auditoría (colección activities). Solo agrega, nunca edita."""
    def __init__(self, client: PocketBaseClient):
        self.client = client

    def record(self, session: Optional[Session], type_: ActivityType, *, project_id: str, project_title: str,
               task_id: Optional[str] = None, task_title: Optional[str] = None,
               old_status=None, new_status=None) -> Optional[Activity]:
        """Best-effort: cualquier fallo se loguea y se traga."""
        if session is None or not session.is_valid():
            log.error("No session when logging activity %s", type_.value)
            return None
        activity = Activity(
            type=type_,
            project=project_id,
            project_title=project_title,
            owner=session.user_id,
            task=task_id,
            task_title=task_title,
            old_status=_status_text(old_status),
            new_status=_status_text(new_status),
        )
        try:
            rec = self.client.create_activity(session, activity.to_record())
            return Activity.from_record(rec)
        except Exception:
            log.exception("Error logging activity %s", type_.value)
            return None

    def recent(self, session: Session, limit: int = 50) -> List[Activity]:
        return [Activity.from_record(a) for a in self.client.list_activities(session, limit=limit)]

    def purge_task(self, session: Session, task_id: str) -> int:
        """Borra las actividades de una tarea. Propaga PBError (el borrado de la tarea debe abortar)."""
        try:
            n = self.client.delete_task_activities(session, task_id)
        except PBError:
            log.error("Activity cleanup failed for task %s", task_id)
            raise
        log.debug("Removed %d activities of task %s", n, task_id)
        return n

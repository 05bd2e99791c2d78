from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Tuple

from core.exceptions import AccessDenied, AuthError, NotFound, PBError, ValidationError
from core.models import ActivityType, Project, Status, Task, now_iso
from core.reorder import assign_positions, move_item
from core.session import Session
from core.stats import ProjectStats, project_stats
from services.activity_service import ActivityLog
from storage.pocketbase import PocketBaseClient

log = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "description", "status", "due_date", "reminder_date")

# errores que ya traen un mensaje apto para mostrar tal cual
_PLAIN_ERRORS = (AuthError, AccessDenied, NotFound, ValidationError)


def parse_status(value) -> Status:
    try:
        return Status(value)
    except ValueError:
        raise ValidationError(f"Invalid status: {value!r}") from None


class TaskListController:
    """Lista de tareas de UN proyecto, sincronizada con PocketBase.

    - `tasks` es la lista local ordenada (sin ids repetidos).
    - Tras cada mutación exitosa se guarda el registro que devolvió el
      servidor, no el borrador local.
    - Los errores nunca se propagan: se loguean y quedan en `error`.
    - Cada escritura de una tarea lleva un número de secuencia; una respuesta
      se aplica solo si sigue siendo la última emitida para esa tarea.
    """

    def __init__(self, client: PocketBaseClient, activities: ActivityLog, project_id: str):
        self.client = client
        self.activities = activities
        self.project_id = project_id
        self.project: Optional[Project] = None
        self.tasks: List[Task] = []
        self.error: Optional[str] = None
        self.closed = False
        self._lock = threading.RLock()
        self._seq: Dict[str, int] = {}
        self._load_seq = 0
        self._reorder_seq = 0
        self._confirmed_order: List[str] = []
        # (orden, rseq) del reorder que todavía se está guardando
        self._pending_order: Optional[Tuple[List[str], int]] = None

    # ---- helpers ----
    def _fail(self, what: str, exc: Exception) -> None:
        log.error("%s (project %s): %s", what, self.project_id, exc)
        with self._lock:
            if self.closed:
                return
            self.error = str(exc) if isinstance(exc, _PLAIN_ERRORS) else f"{what}: {exc}"

    def _issue(self, task_id: str) -> int:
        with self._lock:
            seq = self._seq.get(task_id, 0) + 1
            self._seq[task_id] = seq
            return seq

    def _is_current(self, task_id: str, seq: int) -> bool:
        return self._seq.get(task_id, 0) == seq

    def _index(self, task_id: str) -> Optional[int]:
        for i, t in enumerate(self.tasks):
            if t.id == task_id:
                return i
        return None

    def _upsert_local(self, task: Task) -> None:
        i = self._index(task.id)
        if i is None:
            self.tasks.append(task)
            self._confirmed_order.append(task.id)
        else:
            self.tasks[i] = task

    def _verify_project(self, session: Optional[Session], missing=AccessDenied) -> Project:
        if session is None or not session.is_valid():
            raise AuthError("Not authenticated")
        rec = self.client.get_project(session, self.project_id)
        if rec is None:
            if missing is AccessDenied:
                raise AccessDenied("Project not found or access denied")
            raise missing("Project not found")
        return Project.from_record(rec)

    def _project_title(self) -> str:
        return self.project.title if self.project else ""

    # ---- queries ----
    def get(self, task_id: str) -> Optional[Task]:
        with self._lock:
            i = self._index(task_id)
            return self.tasks[i] if i is not None else None

    def filtered(self, status: Optional[Status] = None) -> List[Task]:
        with self._lock:
            if status is None:
                return list(self.tasks)
            status = parse_status(status)
            return [t for t in self.tasks if t.status is status]

    def stats(self) -> ProjectStats:
        with self._lock:
            return project_stats(self.tasks)

    def close(self) -> None:
        """Las respuestas que lleguen después se descartan."""
        with self._lock:
            self.closed = True

    @staticmethod
    def _arrange(tasks: List[Task], order: List[str]) -> List[Task]:
        """Ordena `tasks` según `order`; las que no figuran van al final, en su orden."""
        by_id = {t.id: t for t in tasks}
        placed = [by_id[i] for i in order if i in by_id]
        wanted = set(order)
        return placed + [t for t in tasks if t.id not in wanted]

    # ---- load ----
    def load(self, session: Optional[Session]) -> bool:
        with self._lock:
            self._load_seq += 1
            seq = self._load_seq
        try:
            project = self._verify_project(session, missing=NotFound)
            items = self.client.list_tasks(session, self.project_id)
            tasks: List[Task] = []
            seen = set()
            for rec in items:
                task = Task.from_record(rec)
                if task.id not in seen:
                    seen.add(task.id)
                    tasks.append(task)
        except (PBError, ValueError) as e:
            with self._lock:
                if self.closed or seq != self._load_seq:
                    return False
                self.tasks = []
                self._confirmed_order = []
            self._fail("Failed to load tasks", e)
            return False

        with self._lock:
            if self.closed or seq != self._load_seq:
                return False
            project.tasks = tasks
            self.project = project
            self._confirmed_order = [t.id for t in tasks]
            if self._pending_order is not None:
                # el servidor todavía no tiene el orden nuevo
                tasks = self._arrange(tasks, self._pending_order[0])
            self.tasks = list(tasks)
            self.error = None
        log.info("Loaded %d tasks for project %s", len(tasks), self.project_id)
        return True

    def fetch(self, session: Optional[Session], task_id: str) -> Optional[Task]:
        """Trae una tarea del servidor (vista detalle) y reconcilia el estado local.

        Es una lectura: no emite número de secuencia, así que una escritura en
        curso sobre la misma tarea gana.
        """
        with self._lock:
            seq = self._seq.get(task_id, 0)
        try:
            task = Task.from_record(self.client.get_task(session, task_id))
            if task.project != self.project_id:
                raise AccessDenied("Task not found or access denied")
        except NotFound:
            self._fail("Failed to load task", NotFound("Task not found"))
            return None
        except (PBError, ValueError) as e:
            self._fail("Failed to load task", e)
            return None
        with self._lock:
            if self.closed or not self._is_current(task_id, seq):
                return None
            self._upsert_local(task)
            self.error = None
        return task

    # ---- mutations ----
    def add(self, session: Optional[Session], title: str, description: str, status=Status.TODO,
            due_date: Optional[str] = None, reminder_date: Optional[str] = None) -> Optional[Task]:
        try:
            title = (title or "").strip()
            description = (description or "").strip()
            if not title or not description:
                raise ValidationError("Title and description are required")
            status = parse_status(status)
            project = self._verify_project(session)

            with self._lock:
                # posición naive: al final
                pos = max([(t.position or 0.0) for t in self.tasks], default=0.0) + 1.0
            payload = {
                "title": title,
                "description": description,
                "status": status.value,
                "project": self.project_id,
                "position": pos,
            }
            if due_date:
                payload["due_date"] = due_date
            if reminder_date:
                payload["reminder_date"] = reminder_date
            if status is Status.DONE:
                payload["completed_at"] = now_iso()
            task = Task.from_record(self.client.create_task(session, **payload))
        except (PBError, ValueError) as e:
            self._fail("Failed to add task", e)
            return None

        with self._lock:
            if self.closed:
                return None
            self._seq.setdefault(task.id, 0)
            self._upsert_local(task)
            self.project = project
            self.error = None
        self.activities.record(session, ActivityType.TASK_CREATE, project_id=self.project_id,
                               project_title=project.title, task_id=task.id, task_title=task.title,
                               new_status=task.status)
        return task

    def edit(self, session: Optional[Session], task_id: str, **fields) -> Optional[Task]:
        try:
            unknown = set(fields) - set(EDITABLE_FIELDS)
            if unknown:
                raise ValidationError(f"Unknown task fields: {', '.join(sorted(unknown))}")
            current = self.get(task_id)
            if current is None:
                raise NotFound("Task not found")

            payload = {}
            for key in ("title", "description"):
                if key in fields:
                    value = (fields[key] or "").strip()
                    if not value:
                        raise ValidationError(f"{key.capitalize()} cannot be empty")
                    payload[key] = value
            if "status" in fields:
                new_status = parse_status(fields["status"])
                payload["status"] = new_status.value
                if new_status is Status.DONE:
                    if current.status is not Status.DONE or not current.completed_at:
                        payload["completed_at"] = now_iso()
                else:
                    payload["completed_at"] = ""
            for key in ("due_date", "reminder_date"):
                if key in fields:
                    payload[key] = fields[key] or ""
            if not payload:
                return current

            seq = self._issue(task_id)
            task = Task.from_record(self.client.patch_task(session, task_id, **payload))
        except (PBError, ValueError) as e:
            self._fail("Failed to update task", e)
            return None

        with self._lock:
            if self.closed:
                return None
            if not self._is_current(task_id, seq):
                log.debug("Discarding stale update of task %s (seq %d)", task_id, seq)
                return None
            i = self._index(task_id)
            if i is None:
                return None
            self.tasks[i] = task
            self.error = None
        self.activities.record(session, ActivityType.TASK_UPDATE, project_id=self.project_id,
                               project_title=self._project_title(), task_id=task.id, task_title=task.title,
                               old_status=current.status, new_status=task.status)
        return task

    def remove(self, session: Optional[Session], task_id: str) -> bool:
        """Borra primero las actividades de la tarea y recién después la tarea."""
        current = self.get(task_id)
        if current is None:
            self._fail("Failed to delete task", NotFound("Task not found"))
            return False
        self._issue(task_id)
        try:
            self.activities.purge_task(session, task_id)
        except PBError as e:
            self._fail("Failed to delete task", e)
            return False
        try:
            self.client.delete_task(session, task_id)
        except PBError as e:
            self._fail("Failed to delete task", e)
            return False

        with self._lock:
            if not self.closed:
                self.tasks = [t for t in self.tasks if t.id != task_id]
                self._confirmed_order = [i for i in self._confirmed_order if i != task_id]
                self.error = None
        self.activities.record(session, ActivityType.TASK_DELETE, project_id=self.project_id,
                               project_title=self._project_title(), task_title=current.title,
                               old_status=current.status)
        return True

    # ---- reorder ----
    def _apply_move(self, source: int, destination: int):
        with self._lock:
            try:
                moved = move_item(self.tasks, source, destination)
            except IndexError as e:
                log.warning("Ignoring reorder: %s", e)
                self.error = str(e)
                return None
            if source == destination:
                return None
            self.tasks = moved
            self._reorder_seq += 1
            order = [t.id for t in moved]
            self._pending_order = (order, self._reorder_seq)
            return order, self._reorder_seq

    def reorder(self, session: Optional[Session], source: int, destination: int) -> bool:
        """Mueve la tarea (optimista) y persiste el orden completo en un batch."""
        applied = self._apply_move(source, destination)
        if applied is None:
            return source == destination
        order, rseq = applied
        return self._persist_order(session, order, rseq)

    def reorder_async(self, session: Optional[Session], source: int, destination: int) -> Optional[threading.Thread]:
        """Igual que reorder() pero persiste en un hilo aparte (la UI no espera)."""
        applied = self._apply_move(source, destination)
        if applied is None:
            return None
        order, rseq = applied
        th = threading.Thread(target=self._persist_order, args=(session, order, rseq), daemon=True)
        th.start()
        return th

    def _settle(self, rseq: int) -> None:
        if self._pending_order is not None and self._pending_order[1] == rseq:
            self._pending_order = None

    def _persist_order(self, session: Optional[Session], order: List[str], rseq: int) -> bool:
        with self._lock:
            by_id = {t.id: t for t in self.tasks}
            positions = assign_positions([by_id[i] for i in order if i in by_id])
        try:
            self.client.batch_patch_tasks(session, [(tid, {"position": pos}) for tid, pos in positions])
        except PBError as e:
            log.error("Persisting task order failed (project %s): %s", self.project_id, e)
            with self._lock:
                self._settle(rseq)
                if self.closed:
                    return False
                self.error = f"Failed to save order: {e}"
                # rollback solo si nadie tocó la lista mientras tanto
                if rseq == self._reorder_seq and [t.id for t in self.tasks] == order:
                    current = {t.id: t for t in self.tasks}
                    confirmed = [current[i] for i in self._confirmed_order if i in current]
                    confirmed += [t for t in self.tasks if t.id not in set(self._confirmed_order)]
                    self.tasks = confirmed
            return False

        with self._lock:
            self._settle(rseq)
            if self.closed or rseq != self._reorder_seq:
                return True
            # un load() pudo haber reemplazado la lista mientras se guardaba
            self.tasks = self._arrange(self.tasks, order)
            pos_by_id = dict(positions)
            for t in self.tasks:
                if t.id in pos_by_id:
                    t.position = float(pos_by_id[t.id])
            self._confirmed_order = [t.id for t in self.tasks]
            self.error = None
        log.debug("Saved order of %d tasks for project %s", len(positions), self.project_id)
        return True

# ==== pb_bootstrap.py ====
# Crea/actualiza las colecciones projects, tasks y activities en PocketBase (>= 0.23)
# usando la API de superusuario. Credenciales desde el entorno / .env:
#   TODO_PB_BASE_URL, TODO_PB_ADMIN_EMAIL, TODO_PB_ADMIN_PASSWORD
# Ejecutar con:  python pb_bootstrap.py

import logging
import sys

import requests

from core.config import ADMIN_EMAIL, ADMIN_PASSWORD, BASE_URL, LOG_DIR
from core.logging_setup import setup_logging
from storage.pocketbase import BATCH_MAX_REQUESTS

log = logging.getLogger("pb_bootstrap")

USERS_COLLECTION = "_pb_users_auth_"
OWNER_ONLY = {
    "listRule": "owner = @request.auth.id",
    "viewRule": "owner = @request.auth.id",
    "createRule": "@request.auth.id != '' && owner = @request.auth.id",
    "updateRule": "owner = @request.auth.id",
    "deleteRule": "owner = @request.auth.id",
}


def die(msg):
    log.error(msg)
    sys.exit(1)


class PBAdmin:
    def __init__(self, base):
        self.base = base.rstrip('/')
        self.s = requests.Session()

    def admin_login(self, email, password):
        r = self.s.post(f"{self.base}/api/collections/_superusers/auth-with-password", json={
            "identity": email,
            "password": password
        }, timeout=15)
        if not r.ok:
            die(f"[LOGIN] {r.status_code}: {r.text}")
        tok = r.json().get("token")
        if not tok:
            die("[LOGIN] missing token")
        self.s.headers.update({"Authorization": f"Bearer {tok}"})
        log.info("Superuser login OK")

    def enable_batch(self, max_requests=BATCH_MAX_REQUESTS):
        # reorder y purga de actividades usan /api/batch
        r = self.s.patch(f"{self.base}/api/settings",
                         json={"batch": {"enabled": True, "maxRequests": max_requests}}, timeout=15)
        if not r.ok:
            die(f"[SETTINGS] {r.status_code}: {r.text}")

    def get_collection(self, name_or_id):
        r = self.s.get(f"{self.base}/api/collections/{name_or_id}", timeout=15)
        if r.status_code == 404:
            return None
        if not r.ok:
            die(f"[GET {name_or_id}] {r.status_code}: {r.text}")
        return r.json()

    def create_collection(self, payload):
        r = self.s.post(f"{self.base}/api/collections", json=payload, timeout=20)
        if not r.ok:
            die(f"[CREATE {payload.get('name')}] {r.status_code}: {r.text}")
        return r.json()

    def update_collection(self, id_or_name, payload):
        r = self.s.patch(f"{self.base}/api/collections/{id_or_name}", json=payload, timeout=20)
        if not r.ok:
            die(f"[UPDATE {id_or_name}] {r.status_code}: {r.text}")
        return r.json()


def _owner():
    return {"name": "owner", "type": "relation", "required": True,
            "collectionId": USERS_COLLECTION, "cascadeDelete": True, "maxSelect": 1}


def _timestamps():
    return [
        {"name": "created", "type": "autodate", "onCreate": True, "onUpdate": False},
        {"name": "updated", "type": "autodate", "onCreate": True, "onUpdate": True},
    ]


def spec_projects():
    return {
        "name": "projects",
        "type": "base",
        "fields": [
            {"name": "title", "type": "text", "required": True, "min": 1, "max": 200},
            {"name": "description", "type": "text", "required": False, "max": 5000},
            _owner(),
            *_timestamps(),
        ],
        "indexes": [
            "CREATE INDEX idx_projects_owner_created ON projects (owner, created)"
        ],
        **OWNER_ONLY,
    }


def spec_tasks(projects_id: str):
    return {
        "name": "tasks",
        "type": "base",
        "fields": [
            {"name": "title", "type": "text", "required": True, "min": 1, "max": 200},
            {"name": "description", "type": "text", "required": True, "max": 5000},
            {"name": "status", "type": "select", "required": True, "maxSelect": 1,
             "values": ["todo", "in_progress", "done"]},
            {"name": "project", "type": "relation", "required": True,
             "collectionId": projects_id, "cascadeDelete": True, "maxSelect": 1},
            _owner(),
            {"name": "position", "type": "number", "required": False},
            {"name": "due_date", "type": "date", "required": False},
            {"name": "reminder_date", "type": "date", "required": False},
            {"name": "completed_at", "type": "date", "required": False},
            *_timestamps(),
        ],
        "indexes": [
            "CREATE INDEX idx_tasks_project_position ON tasks (project, position, created)",
            "CREATE INDEX idx_tasks_owner_status ON tasks (owner, status)",
        ],
        **OWNER_ONLY,
    }


def spec_activities(projects_id: str, tasks_id: str):
    rules = dict(OWNER_ONLY, updateRule=None)  # solo se agregan, nunca se editan
    return {
        "name": "activities",
        "type": "base",
        "fields": [
            {"name": "type", "type": "select", "required": True, "maxSelect": 1,
             "values": ["task_create", "task_update", "task_delete", "project_update"]},
            {"name": "project", "type": "relation", "required": True,
             "collectionId": projects_id, "cascadeDelete": True, "maxSelect": 1},
            # sin cascade: hay que borrar las actividades antes que la tarea
            {"name": "task", "type": "relation", "required": False,
             "collectionId": tasks_id, "cascadeDelete": False, "maxSelect": 1},
            {"name": "project_title", "type": "text", "required": False, "max": 200},
            {"name": "task_title", "type": "text", "required": False, "max": 200},
            {"name": "old_status", "type": "text", "required": False, "max": 40},
            {"name": "new_status", "type": "text", "required": False, "max": 40},
            _owner(),
            *_timestamps(),
        ],
        "indexes": [
            "CREATE INDEX idx_activities_owner_created ON activities (owner, created)",
            "CREATE INDEX idx_activities_task ON activities (task)",
        ],
        **rules,
    }


def upsert_collection(pb: PBAdmin, spec: dict):
    existing = pb.get_collection(spec["name"])
    if not existing:
        return pb.create_collection(spec)
    cid = existing.get("id") or spec["name"]
    spec_with_id_name = spec.copy()
    spec_with_id_name["id"] = cid
    spec_with_id_name["name"] = existing["name"]
    return pb.update_collection(cid, spec_with_id_name)


def main():
    setup_logging(log_dir=LOG_DIR)
    if not ADMIN_EMAIL or not ADMIN_PASSWORD:
        die("Set TODO_PB_ADMIN_EMAIL and TODO_PB_ADMIN_PASSWORD")
    pb = PBAdmin(BASE_URL)
    pb.admin_login(ADMIN_EMAIL, ADMIN_PASSWORD)
    pb.enable_batch()

    projects = upsert_collection(pb, spec_projects())
    log.info("OK: projects %s", projects.get("id"))

    tasks = upsert_collection(pb, spec_tasks(projects["id"]))
    log.info("OK: tasks %s", tasks.get("id"))

    activities = upsert_collection(pb, spec_activities(projects["id"], tasks["id"]))
    log.info("OK: activities %s", activities.get("id"))

    log.info("Bootstrap complete.")


if __name__ == "__main__":
    main()

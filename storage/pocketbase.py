from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

import requests

from core.config import REQUEST_TIMEOUT
from core.exceptions import AccessDenied, AuthError, NotFound, PBError
from core.session import Session, token_expiry

log = logging.getLogger(__name__)

# tope de /api/batch que configura pb_bootstrap (settings.batch.maxRequests)
BATCH_MAX_REQUESTS = 500


def _q(value: str) -> str:
    """Escapa un valor para meterlo entre comillas en un filtro de PocketBase."""
    return str(value).replace("\\", "\\\\").replace('"', '\\"')


class PocketBaseClient:
    """REST client for the projects/tasks/activities collections.

    Every data call takes the caller's Session explicitly; the client itself
    keeps no user state.
    """

    def __init__(self, base_url: str, timeout: float = REQUEST_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()

    # ---------- plumbing ----------
    def _url(self, collection: str, record_id: Optional[str] = None) -> str:
        url = f"{self.base_url}/api/collections/{collection}/records"
        return f"{url}/{record_id}" if record_id else url

    @staticmethod
    def _headers(session: Optional[Session]) -> Dict[str, str]:
        if session is None or not session.is_valid():
            raise AuthError("Not authenticated")
        return session.auth_header

    @staticmethod
    def _check(r: requests.Response, what: str) -> None:
        if r.ok:
            return
        msg = f"{what} failed: {r.status_code} {r.text}"
        if r.status_code == 401:
            raise AuthError(msg, r.status_code)
        if r.status_code == 403:
            raise AccessDenied(msg, r.status_code)
        if r.status_code == 404:
            raise NotFound(msg, r.status_code)
        raise PBError(msg, r.status_code)

    def _request(self, method: str, url: str, what: str, session: Session, **kwargs) -> requests.Response:
        try:
            r = self.session.request(method, url, headers=self._headers(session), timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise PBError(f"{what} failed: {e}") from e
        self._check(r, what)
        return r

    def _list(self, session: Session, collection: str, *, filt: str, sort: str = "",
              expand: str = "", limit: Optional[int] = None) -> List[Dict[str, Any]]:
        per_page = min(limit, 500) if limit else 500
        params: Dict[str, Any] = {"filter": filt, "perPage": per_page}
        if sort:
            params["sort"] = sort
        if expand:
            params["expand"] = expand
        items: List[Dict[str, Any]] = []
        page = 1
        while True:
            params["page"] = page
            r = self._request("GET", self._url(collection), f"List {collection}", session, params=params)
            data = r.json()
            items.extend(data.get("items", []))
            if limit and len(items) >= limit:
                return items[:limit]
            if page >= (data.get("totalPages") or 1):
                return items
            page += 1

    def _batch(self, session: Session, requests_: List[Dict[str, Any]], what: str) -> List[Dict[str, Any]]:
        """Transactional batch (PocketBase >= 0.23).

        Sent in chunks of at most BATCH_MAX_REQUESTS; each chunk is all or
        nothing, but an error in a later chunk leaves earlier chunks applied.
        """
        out: List[Dict[str, Any]] = []
        for start in range(0, len(requests_), BATCH_MAX_REQUESTS):
            chunk = requests_[start:start + BATCH_MAX_REQUESTS]
            r = self._request("POST", f"{self.base_url}/api/batch", what, session, json={"requests": chunk})
            out.extend(r.json())
        return out

    # ---------- auth ----------
    def login(self, identity: str, password: str) -> Session:
        url = f"{self.base_url}/api/collections/users/auth-with-password"
        try:
            r = self.session.post(url, json={"identity": identity, "password": password}, timeout=self.timeout)
        except requests.RequestException as e:
            raise AuthError(f"Login failed: {e}") from e
        if not r.ok:
            raise AuthError(f"Login failed: {r.status_code} {r.text}", r.status_code)
        data = r.json()
        token = data.get("token")
        user_id = data.get("record", {}).get("id")
        if not token or not user_id:
            raise AuthError("Missing token or user id in login response")
        log.info("Logged in as %s", user_id)
        return Session(user_id=user_id, token=token, expires_at=token_expiry(token))

    # ---------- projects ----------
    def list_projects(self, session: Session) -> List[Dict[str, Any]]:
        return self._list(session, "projects", filt=f'owner = "{_q(session.user_id)}"',
                          sort="-created", expand="tasks_via_project")

    def get_project(self, session: Session, project_id: str) -> Optional[Dict[str, Any]]:
        """Project by id if it belongs to the session user, else None."""
        items = self._list(session, "projects",
                           filt=f'id = "{_q(project_id)}" && owner = "{_q(session.user_id)}"', limit=1)
        return items[0] if items else None

    def create_project(self, session: Session, *, title: str, description: Optional[str] = None) -> Dict[str, Any]:
        payload = {"title": title, "owner": session.user_id}
        if description:
            payload["description"] = description
        return self._request("POST", self._url("projects"), "Create project", session, json=payload).json()

    # ---------- tasks ----------
    def list_tasks(self, session: Session, project_id: str) -> List[Dict[str, Any]]:
        filt = f'project = "{_q(project_id)}" && owner = "{_q(session.user_id)}"'
        return self._list(session, "tasks", filt=filt, sort="position,created")

    def list_done_tasks(self, session: Session) -> List[Dict[str, Any]]:
        filt = f'owner = "{_q(session.user_id)}" && status = "done"'
        return self._list(session, "tasks", filt=filt, sort="-created", expand="project")

    def get_task(self, session: Session, task_id: str) -> Dict[str, Any]:
        return self._request("GET", self._url("tasks", task_id), "Get task", session).json()

    def create_task(self, session: Session, **fields) -> Dict[str, Any]:
        payload = dict(fields, owner=session.user_id)
        return self._request("POST", self._url("tasks"), "Create task", session, json=payload).json()

    def patch_task(self, session: Session, task_id: str, **fields) -> Dict[str, Any]:
        return self._request("PATCH", self._url("tasks", task_id), "Update task", session, json=fields).json()

    def delete_task(self, session: Session, task_id: str) -> None:
        self._request("DELETE", self._url("tasks", task_id), "Delete task", session)

    def batch_patch_tasks(self, session: Session, updates: Iterable[Tuple[str, Dict[str, Any]]]) -> List[Dict[str, Any]]:
        reqs = [
            {"method": "PATCH", "url": f"/api/collections/tasks/records/{task_id}", "body": fields}
            for task_id, fields in updates
        ]
        return self._batch(session, reqs, "Batch update tasks")

    # ---------- activities ----------
    def create_activity(self, session: Session, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", self._url("activities"), "Create activity", session, json=payload).json()

    def list_activities(self, session: Session, limit: int = 50) -> List[Dict[str, Any]]:
        return self._list(session, "activities", filt=f'owner = "{_q(session.user_id)}"',
                          sort="-created", limit=limit)

    def delete_task_activities(self, session: Session, task_id: str) -> int:
        """Borra todas las actividades que referencian la tarea. Devuelve cuántas."""
        items = self._list(session, "activities",
                           filt=f'task = "{_q(task_id)}" && owner = "{_q(session.user_id)}"')
        reqs = [{"method": "DELETE", "url": f"/api/collections/activities/records/{a['id']}"} for a in items]
        self._batch(session, reqs, "Delete task activities")
        return len(items)

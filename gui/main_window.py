import tkinter as tk
from tkinter import ttk, messagebox as mb
import datetime as dt
from typing import List, Optional

from core.config import SYNC_INTERVAL_MS, TOPMOST, WINDOW_GEOMETRY
from core.models import Project, Status, reminder_from_due
from controller.app_controller import AppController
from controller.task_controller import TaskListController
from gui.task_list import ScrollableTaskList
from gui.task_dialog import open_task_dialog

FILTERS = ["all"] + [s.value for s in Status]


class MainWindow(tk.Tk):
    def __init__(self, controller: AppController):
        super().__init__()
        self.controller = controller
        self.title("Proyectos · PocketBase")
        self.geometry(WINDOW_GEOMETRY)
        self.configure(padx=8, pady=8)
        if TOPMOST:
            self.attributes("-topmost", True)

        self.projects: List[Project] = []
        self.project_view: Optional[ProjectView] = None

        # Top bar
        top = ttk.Frame(self)
        top.pack(fill="x", pady=(0, 6))
        self.status_var = tk.StringVar(value="Listo")
        ttk.Label(top, textvariable=self.status_var).pack(side="left")
        ttk.Button(top, text="Actividad", command=self._show_activity).pack(side="right", padx=(6, 0))
        ttk.Button(top, text="Completadas", command=self._show_completed).pack(side="right", padx=(6, 0))
        ttk.Button(top, text="Sync", command=self._sync_all).pack(side="right")

        # Proyecto: selector + alta
        bar = ttk.Frame(self)
        bar.pack(fill="x", pady=(0, 6))
        ttk.Label(bar, text="Proyecto:").pack(side="left")
        self.project_var = tk.StringVar()
        self.project_box = ttk.Combobox(bar, textvariable=self.project_var, state="readonly", width=32)
        self.project_box.pack(side="left", padx=6)
        self.project_box.bind("<<ComboboxSelected>>", self._on_project_selected)
        self.new_project = ttk.Entry(bar)
        self.new_project.pack(side="left", fill="x", expand=True, padx=6)
        self.new_project.bind("<Return>", self._on_add_project)
        ttk.Button(bar, text="Nuevo proyecto", command=self._on_add_project).pack(side="left")

        self.body = ttk.Frame(self)
        self.body.pack(fill="both", expand=True)

        self._load_projects()

        self.bind("<F5>", lambda e: self._sync_all())
        self.after(SYNC_INTERVAL_MS, self._auto_sync)

    # ---------- projects ----------
    def _load_projects(self, select_id: Optional[str] = None):
        self.projects = self.controller.list_projects()
        if self.controller.error:
            mb.showerror("Proyectos", self.controller.error)
            return
        labels = []
        for p in self.projects:
            st = self.controller.project_stats(p)
            labels.append(f"{p.title}  ({st.completed}/{st.total} · {st.progress}%)")
        self.project_box.configure(values=labels)
        if not self.projects:
            return
        ids = [p.id for p in self.projects]
        current = self.project_view.ctrl.project_id if self.project_view else None
        target = select_id or current or ids[0]
        idx = ids.index(target) if target in ids else 0
        self.project_box.current(idx)
        if target != current or self.project_view is None:
            self._open_project(self.projects[idx].id)

    def _on_project_selected(self, _=None):
        idx = self.project_box.current()
        if idx >= 0:
            self._open_project(self.projects[idx].id)

    def _open_project(self, project_id: str):
        if self.project_view is not None:
            self.project_view.destroy()
        ctrl = self.controller.open_project(project_id)
        self.project_view = ProjectView(self.body, self.controller, ctrl, self.status_var)
        self.project_view.pack(fill="both", expand=True)
        self.project_view.render()

    def _on_add_project(self, event=None):
        title = self.new_project.get().strip()
        project = self.controller.create_project(title)
        if project is None:
            mb.showerror("Proyecto", self.controller.error or "Error")
            return
        self.new_project.delete(0, "end")
        self._load_projects(select_id=project.id)

    # ---------- sync ----------
    def _sync_all(self):
        self._load_projects()
        if self.project_view is not None:
            self.project_view.reload()
        self.status_var.set(f"Sincronizado {dt.datetime.now().strftime('%H:%M:%S')}")

    def _auto_sync(self):
        try:
            self._sync_all()
        finally:
            self.after(SYNC_INTERVAL_MS, self._auto_sync)

    # ---------- dashboards ----------
    def _show_completed(self):
        tasks = self.controller.completed_tasks()
        titles = {p.id: p.title for p in self.projects}
        lines = [f"✓ {t.title}  [{titles.get(t.project, '?')}]" for t in tasks]
        self._popup("Tareas completadas", lines or ["No hay tareas completadas."])

    def _show_activity(self):
        items = self.controller.recent_activity()
        lines = []
        for a in items:
            text = f"{(a.created or '')[:16]}  {a.type.value}  {a.project_title}"
            if a.task_title:
                text += f" / {a.task_title}"
            if a.old_status or a.new_status:
                text += f"  ({a.old_status or '-'} → {a.new_status or '-'})"
            lines.append(text)
        self._popup("Actividad reciente", lines or ["Sin actividad."])

    def _popup(self, title: str, lines: List[str]):
        win = tk.Toplevel(self)
        win.title(title)
        lb = tk.Listbox(win, width=80, height=20)
        lb.pack(fill="both", expand=True, padx=8, pady=8)
        for line in lines:
            lb.insert("end", line)


class ProjectView(ttk.Frame):
    def __init__(self, parent, app: AppController, ctrl: TaskListController, status_var: tk.StringVar):
        super().__init__(parent)
        self.app = app
        self.ctrl = ctrl
        self.status_var = status_var

        # Header: quick add
        header = ttk.Frame(self)
        header.pack(fill="x", pady=(6, 4))
        ttk.Label(header, text="Nueva tarea:").grid(row=0, column=0, sticky="w")
        self.title_entry = ttk.Entry(header)
        self.title_entry.grid(row=0, column=1, sticky="we", padx=6)
        ttk.Label(header, text="Descripción:").grid(row=1, column=0, sticky="w")
        self.desc_entry = ttk.Entry(header)
        self.desc_entry.grid(row=1, column=1, sticky="we", padx=6)
        ttk.Label(header, text="Vence (YYYY-MM-DD):").grid(row=2, column=0, sticky="w")
        self.due_entry = ttk.Entry(header, width=12)
        self.due_entry.grid(row=2, column=1, sticky="w", padx=6)
        self.new_status = tk.StringVar(value=Status.TODO.value)
        ttk.Combobox(header, textvariable=self.new_status, values=[s.value for s in Status],
                     state="readonly", width=11).grid(row=0, column=2, padx=(0, 6))
        ttk.Button(header, text="Agregar", command=self._on_add).grid(row=1, column=2)
        header.columnconfigure(1, weight=1)
        self.desc_entry.bind("<Return>", self._on_add)

        # Stats + filtro
        info = ttk.Frame(self)
        info.pack(fill="x", pady=(0, 4))
        self.stats_var = tk.StringVar()
        ttk.Label(info, textvariable=self.stats_var).pack(side="left")
        self.filter_var = tk.StringVar(value="all")
        box = ttk.Combobox(info, textvariable=self.filter_var, values=FILTERS, state="readonly", width=11)
        box.pack(side="right")
        box.bind("<<ComboboxSelected>>", lambda e: self.render())
        ttk.Label(info, text="Filtro:").pack(side="right", padx=(0, 4))

        self.task_list = ScrollableTaskList(
            self,
            on_status=self._on_status,
            on_edit=self._on_edit,
            on_delete=self._on_delete,
            on_move=self._on_move,
        )
        self.task_list.pack(fill="both", expand=True)

    def destroy(self):
        self.ctrl.close()
        super().destroy()

    @property
    def session(self):
        return self.app.session

    # ---------- render ----------
    def render(self):
        flt = self.filter_var.get()
        tasks = self.ctrl.filtered(None if flt == "all" else Status(flt))
        self.task_list.set_tasks(tasks)
        st = self.ctrl.stats()
        self.stats_var.set(f"{st.total} tareas · {st.in_progress} en curso · {st.completed} hechas · {st.progress}%")
        if self.ctrl.error:
            self.status_var.set(self.ctrl.error)

    def reload(self):
        self.ctrl.load(self.session)
        self.render()

    # ---------- actions ----------
    def _on_add(self, event=None):
        due = self.due_entry.get().strip() or None
        reminder = None
        if due:
            try:
                reminder = reminder_from_due(due, 1)
            except ValueError:
                mb.showerror("Tarea", f"Fecha inválida: {due}")
                return
        task = self.ctrl.add(self.session, self.title_entry.get(), self.desc_entry.get(),
                             self.new_status.get(), due_date=due, reminder_date=reminder)
        if task is None:
            mb.showerror("Tarea", self.ctrl.error or "Error")
        else:
            for entry in (self.title_entry, self.desc_entry, self.due_entry):
                entry.delete(0, "end")
        self.render()

    def _on_status(self, task_id: str, status: Status):
        self.ctrl.edit(self.session, task_id, status=status)
        self.render()

    def _on_edit(self, task_id: str):
        dialog = open_task_dialog(self, self.ctrl, self.session, task_id, on_saved=self.render)
        if dialog is None:
            self.render()

    def _on_delete(self, task_id: str):
        task = self.ctrl.get(task_id)
        if task is None:
            return
        if not mb.askyesno("Borrar", f"¿Borrar la tarea?\n\n{task.title}"):
            return
        if not self.ctrl.remove(self.session, task_id):
            mb.showerror("Borrar", self.ctrl.error or "Error")
        self.render()

    def _on_move(self, source: int, destination: int):
        if self.filter_var.get() != "all":
            # los índices del filtro no son los de la lista completa
            self.status_var.set("Quitá el filtro para reordenar")
            return
        th = self.ctrl.reorder_async(self.session, source, destination)
        self.render()
        if th is not None:
            self._wait_persist(th)

    def _wait_persist(self, th):
        if th.is_alive():
            self.after(100, lambda: self._wait_persist(th))
            return
        if self.winfo_exists():
            self.render()

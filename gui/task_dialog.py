"""
Task detail / edit dialog
-------------------------
Opens with the task as the server has it (`TaskListController.fetch`), shows
every field and lets the user change title, description, status, due date
and "remind N days before". Saving goes through `TaskListController.edit`.
"""
from __future__ import annotations
import tkinter as tk
from tkinter import ttk, messagebox as mb
from typing import Callable, Optional

from core.models import Status, Task, reminder_days, reminder_from_due
from controller.task_controller import TaskListController

REMINDER_CHOICES = ["0", "1", "2", "3", "7"]


class TaskDialog(tk.Toplevel):
    def __init__(self, master, ctrl: TaskListController, session, task: Task,
                 on_saved: Optional[Callable[[], None]] = None):
        super().__init__(master)
        self.ctrl = ctrl
        self.session = session
        self.task = task
        self.on_saved = on_saved
        self.title("Tarea")
        self.transient(master)
        self.resizable(True, False)

        body = ttk.Frame(self, padding=10)
        body.pack(fill="both", expand=True)
        body.columnconfigure(1, weight=1)

        ttk.Label(body, text="Título:").grid(row=0, column=0, sticky="w")
        self.title_entry = ttk.Entry(body, width=48)
        self.title_entry.insert(0, task.title)
        self.title_entry.grid(row=0, column=1, sticky="we", pady=2)

        ttk.Label(body, text="Descripción:").grid(row=1, column=0, sticky="nw")
        self.desc_text = tk.Text(body, width=48, height=5, wrap="word")
        self.desc_text.insert("1.0", task.description)
        self.desc_text.grid(row=1, column=1, sticky="we", pady=2)

        ttk.Label(body, text="Estado:").grid(row=2, column=0, sticky="w")
        self.status_var = tk.StringVar(value=task.status.value)
        ttk.Combobox(body, textvariable=self.status_var, values=[s.value for s in Status],
                     state="readonly", width=12).grid(row=2, column=1, sticky="w", pady=2)

        ttk.Label(body, text="Vence (YYYY-MM-DD):").grid(row=3, column=0, sticky="w")
        self.due_entry = ttk.Entry(body, width=12)
        if task.due_date:
            self.due_entry.insert(0, task.due_date[:10])
        self.due_entry.grid(row=3, column=1, sticky="w", pady=2)

        ttk.Label(body, text="Recordar (días antes):").grid(row=4, column=0, sticky="w")
        days = reminder_days(task.due_date, task.reminder_date)
        self.remind_var = tk.StringVar(value=str(days if days is not None else 1))
        ttk.Combobox(body, textvariable=self.remind_var, values=REMINDER_CHOICES,
                     width=4).grid(row=4, column=1, sticky="w", pady=2)

        info = [f"Creada: {(task.created or '-')[:16]}"]
        if task.reminder_date:
            info.append(f"Recordatorio: {task.reminder_date[:10]}")
        if task.completed_at:
            info.append(f"Completada: {task.completed_at[:16]}")
        ttk.Label(body, text="   ".join(info), foreground="#666").grid(
            row=5, column=0, columnspan=2, sticky="w", pady=(6, 0))

        buttons = ttk.Frame(body)
        buttons.grid(row=6, column=0, columnspan=2, sticky="e", pady=(10, 0))
        ttk.Button(buttons, text="Cancelar", command=self.destroy).pack(side="right")
        ttk.Button(buttons, text="Guardar", command=self._on_save).pack(side="right", padx=(0, 6))

        self.bind("<Escape>", lambda e: self.destroy())
        self.title_entry.focus_set()

    def _on_save(self):
        due = self.due_entry.get().strip() or None
        reminder = None
        if due:
            try:
                reminder = reminder_from_due(due, int(self.remind_var.get() or 0))
            except ValueError:
                mb.showerror("Tarea", "Fecha o recordatorio inválido", parent=self)
                return
        task = self.ctrl.edit(
            self.session, self.task.id,
            title=self.title_entry.get(),
            description=self.desc_text.get("1.0", "end-1c"),
            status=self.status_var.get(),
            due_date=due,
            reminder_date=reminder,
        )
        if task is None and self.ctrl.error:
            mb.showerror("Tarea", self.ctrl.error, parent=self)
            return
        if self.on_saved:
            self.on_saved()
        self.destroy()


def open_task_dialog(master, ctrl: TaskListController, session, task_id: str,
                     on_saved: Optional[Callable[[], None]] = None) -> Optional[TaskDialog]:
    """Trae la tarea del servidor y abre el diálogo; None si no se pudo cargar."""
    task = ctrl.fetch(session, task_id)
    if task is None:
        # descartada porque hay una escritura en curso: se muestra la copia local
        task = None if ctrl.error else ctrl.get(task_id)
        if task is None:
            mb.showerror("Tarea", ctrl.error or "Task not found", parent=master)
            return None
    return TaskDialog(master, ctrl, session, task, on_saved=on_saved)

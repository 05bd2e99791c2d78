"""
Scrollable task list widget for Tkinter
---------------------------------------
Each task is its own row (a Frame) inside a scrollable Canvas, with:
- a drag handle (≡) to reorder rows with the mouse
- a status selector (todo / in_progress / done)
- title + description (wrapping)
- colored tags (due date, reminder)
- edit (✎) and delete (✕) buttons

The widget is view-only state: every change goes through the callbacks
passed in the constructor, and the owner re-renders with `set_tasks()`.
"""
from __future__ import annotations
import datetime as dt
from typing import Callable, Dict, List, Optional, Tuple
import tkinter as tk
from tkinter import ttk

from core.models import Status, Task

STATUS_VALUES = [s.value for s in Status]


class TaskRow(ttk.Frame):
    """A single task row."""
    def __init__(
        self,
        master,
        task: Task,
        on_status: Optional[Callable[[str, Status], None]] = None,
        on_edit: Optional[Callable[[str], None]] = None,
        on_delete: Optional[Callable[[str], None]] = None,
        on_drag_start: Optional[Callable[["TaskRow"], None]] = None,
        on_drag_end: Optional[Callable[["TaskRow", int], None]] = None,
        wrap: int = 500,
    ):
        super().__init__(master)
        self.task_id = task.id
        self._on_status = on_status
        self._on_edit = on_edit
        self._on_delete = on_delete
        self._on_drag_start = on_drag_start
        self._on_drag_end = on_drag_end
        self.var = tk.StringVar(value=task.status.value)

        self.columnconfigure(2, weight=1)

        # Drag handle
        self.handle = ttk.Label(self, text="≡", cursor="fleur")
        self.handle.grid(row=0, column=0, rowspan=2, padx=(6, 4))
        self.handle.bind("<ButtonPress-1>", self._drag_start)
        self.handle.bind("<ButtonRelease-1>", self._drag_end)

        self.status_box = ttk.Combobox(self, textvariable=self.var, values=STATUS_VALUES,
                                       state="readonly", width=11)
        self.status_box.grid(row=0, column=1, padx=(0, 6), pady=4)
        self.status_box.bind("<<ComboboxSelected>>", self._status_changed)

        self.lbl = ttk.Label(self, text=task.title, wraplength=wrap, anchor="w", justify="left")
        self.lbl.grid(row=0, column=2, sticky="we")
        self.desc = ttk.Label(self, text=task.description, wraplength=wrap, anchor="w",
                              justify="left", style="Task.Desc.TLabel")
        self.desc.grid(row=1, column=2, sticky="we")

        self.tag_container = ttk.Frame(self)
        self.tag_container.grid(row=2, column=2, sticky="w", pady=(2, 4))

        ttk.Button(self, text="✎", width=2, command=self._edit).grid(row=0, column=3, padx=(6, 2))
        ttk.Button(self, text="✕", width=2, command=self._delete).grid(row=0, column=4, padx=(0, 8))

        self._render_tags(task_tags(task))
        self._apply_done_style(task.done)

    def _render_tags(self, tags: List[Tuple[str, str]]):
        for label, color in tags:
            tag = tk.Label(
                self.tag_container,
                text=label,
                bg=color,
                fg=_ideal_text_color(color),
                padx=4,
                pady=2,
                borderwidth=0,
                relief="flat",
            )
            tag.pack(side="left", padx=(0, 6))

    def _apply_done_style(self, done: bool):
        self.lbl.configure(style="Task.Done.TLabel" if done else "Task.Normal.TLabel")

    def _status_changed(self, _=None):
        if self._on_status:
            self._on_status(self.task_id, Status(self.var.get()))

    def _edit(self):
        if self._on_edit:
            self._on_edit(self.task_id)

    def _delete(self):
        if self._on_delete:
            self._on_delete(self.task_id)

    def _drag_start(self, _):
        if self._on_drag_start:
            self._on_drag_start(self)

    def _drag_end(self, event):
        if self._on_drag_end:
            self._on_drag_end(self, event.y_root)


class ScrollableTaskList(ttk.Frame):
    """Canvas + interior Frame pattern with mousewheel support and drag reorder."""
    def __init__(
        self,
        master,
        on_status: Optional[Callable[[str, Status], None]] = None,
        on_edit: Optional[Callable[[str], None]] = None,
        on_delete: Optional[Callable[[str], None]] = None,
        on_move: Optional[Callable[[int, int], None]] = None,
        row_wrap: int = 500,
        row_padding: Tuple[int, int] = (2, 2),
        **kwargs,
    ):
        super().__init__(master, **kwargs)
        self._on_status = on_status
        self._on_edit = on_edit
        self._on_delete = on_delete
        self._on_move = on_move
        self._row_wrap = row_wrap
        self._row_padding = row_padding
        self._rows: Dict[str, TaskRow] = {}
        self._order: List[str] = []

        style = ttk.Style(self)
        style.configure("Task.Normal.TLabel")
        style.configure("Task.Done.TLabel", foreground="#888888")
        style.configure("Task.Desc.TLabel", foreground="#555555")

        self.canvas = tk.Canvas(self, highlightthickness=0)
        self.vbar = ttk.Scrollbar(self, orient="vertical", command=self.canvas.yview)
        self.canvas.configure(yscrollcommand=self.vbar.set)

        self.canvas.grid(row=0, column=0, sticky="nsew")
        self.vbar.grid(row=0, column=1, sticky="ns")
        self.rowconfigure(0, weight=1)
        self.columnconfigure(0, weight=1)

        self.interior = ttk.Frame(self.canvas)
        self._win_id = self.canvas.create_window(0, 0, window=self.interior, anchor="nw")

        self.interior.bind("<Configure>", self._on_interior_configure)
        self.canvas.bind("<Configure>", self._on_canvas_configure)

        self._bind_mousewheel(self.canvas)

    # --- Public API ---
    def set_tasks(self, tasks: List[Task]):
        """Replace all rows, keeping the given order."""
        for row in list(self._rows.values()):
            row.destroy()
        self._rows.clear()
        self._order = []

        for i, task in enumerate(tasks):
            if task.id in self._rows:
                continue
            row = TaskRow(
                self.interior,
                task,
                on_status=self._on_status,
                on_edit=self._on_edit,
                on_delete=self._on_delete,
                on_drag_start=self._drag_start,
                on_drag_end=self._drag_end,
                wrap=self._row_wrap,
            )
            row.grid(row=i, column=0, sticky="we", padx=(8, 8), pady=self._row_padding)
            self._rows[task.id] = row
            self._order.append(task.id)
        self.interior.columnconfigure(0, weight=1)
        self._update_scrollregion()

    # --- drag & drop ---
    def _drag_start(self, row: TaskRow):
        row.configure(cursor="fleur")

    def _drag_end(self, row: TaskRow, y_root: int):
        row.configure(cursor="")
        source = self._order.index(row.task_id)
        destination = self._index_at(y_root)
        if destination is not None and destination != source and self._on_move:
            self._on_move(source, destination)

    def _index_at(self, y_root: int) -> Optional[int]:
        if not self._order:
            return None
        last = len(self._order) - 1
        for i, task_id in enumerate(self._order):
            row = self._rows[task_id]
            top = row.winfo_rooty()
            if y_root < top + row.winfo_height():
                return i
        return last

    # --- Internals ---
    def _update_scrollregion(self):
        self.update_idletasks()
        self.canvas.configure(scrollregion=self.canvas.bbox("all"))

    def _on_interior_configure(self, _):
        self._update_scrollregion()

    def _on_canvas_configure(self, event):
        self.canvas.itemconfigure(self._win_id, width=event.width)
        for row in self._rows.values():
            row.lbl.configure(wraplength=event.width - 220)
            row.desc.configure(wraplength=event.width - 220)

    def _bind_mousewheel(self, widget):
        widget.bind_all("<MouseWheel>", self._on_mousewheel_windows_mac, add="+")
        widget.bind_all("<Button-4>", self._on_mousewheel_linux, add="+")
        widget.bind_all("<Button-5>", self._on_mousewheel_linux, add="+")

    def _on_mousewheel_windows_mac(self, event):
        delta = int(-1 * (event.delta / 120))
        self.canvas.yview_scroll(delta, "units")

    def _on_mousewheel_linux(self, event):
        if event.num == 4:
            self.canvas.yview_scroll(-1, "units")
        elif event.num == 5:
            self.canvas.yview_scroll(1, "units")


def task_tags(task: Task, today: Optional[dt.date] = None) -> List[Tuple[str, str]]:
    """Etiquetas de color para una tarea: vencimiento, recordatorio, completada."""
    today = today or dt.date.today()
    tags: List[Tuple[str, str]] = []
    if task.due_date:
        try:
            d = dt.date.fromisoformat(task.due_date[:10])
        except ValueError:
            tags.append((task.due_date, "#CBD5E1"))
        else:
            if d < today and not task.done:
                tags.append(("Vencida", "#B00020"))
            else:
                tags.append((f"Vence {d.isoformat()}", "#CBD5E1"))
    if task.reminder_date and not task.done:
        tags.append((f"Recordar {task.reminder_date[:10]}", "#F59E0B"))
    if task.done:
        tags.append(("✓", "#10B981"))
    return tags


def _ideal_text_color(bg_hex: str) -> str:
    """Return black or white depending on background brightness."""
    bg_hex = bg_hex.strip().lstrip('#')
    if len(bg_hex) == 3:
        bg_hex = ''.join(c*2 for c in bg_hex)
    try:
        r = int(bg_hex[0:2], 16)
        g = int(bg_hex[2:4], 16)
        b = int(bg_hex[4:6], 16)
    except ValueError:
        return "black"
    luminance = 0.299*r + 0.587*g + 0.114*b
    return "black" if luminance > 186 else "white"

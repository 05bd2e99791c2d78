from dataclasses import dataclass
from typing import Dict, Iterable

from core.models import Status, Task


@dataclass(frozen=True)
class ProjectStats:
    total: int
    completed: int
    in_progress: int
    progress: int  # 0..100

    def as_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "completed": self.completed,
            "inProgress": self.in_progress,
            "progress": self.progress,
        }


def project_stats(tasks: Iterable[Task]) -> ProjectStats:
    tasks = list(tasks)
    total = len(tasks)
    completed = sum(1 for t in tasks if t.status is Status.DONE)
    in_progress = sum(1 for t in tasks if t.status is Status.IN_PROGRESS)
    # mitad hacia arriba (round() de Python redondea a par)
    progress = (200 * completed + total) // (2 * total) if total else 0
    return ProjectStats(total=total, completed=completed, in_progress=in_progress, progress=progress)

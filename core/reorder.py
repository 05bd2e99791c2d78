from typing import List, Sequence, Tuple, TypeVar

from core.models import Task

T = TypeVar("T")


def move_item(items: Sequence[T], source: int, destination: int) -> List[T]:
    """Array-move: saca el elemento en `source` y lo inserta en `destination`.

    Los elementos intermedios se corren un lugar; no es un swap.
    """
    n = len(items)
    if not (0 <= source < n) or not (0 <= destination < n):
        raise IndexError(f"reorder out of range: {source} -> {destination} (len {n})")
    out = list(items)
    if source == destination:
        return out
    item = out.pop(source)
    out.insert(destination, item)
    return out


def assign_positions(tasks: Sequence[Task]) -> List[Tuple[str, int]]:
    return [(t.id, i) for i, t in enumerate(tasks)]

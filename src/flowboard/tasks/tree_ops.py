# src/flowboard/tasks/tree_ops.py

"""
Pure functions over a forest of TaskNode.

Nothing here performs I/O or mutates its input: every edit returns a new
tuple and shares untouched subtrees with the original. Functions that look a
node up by id also return a `found` flag so callers can skip persistence when
nothing changed.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence

from .errors import ValidationError
from .task_models import Forest, Priority, TaskNode

TaskTransform = Callable[[TaskNode], TaskNode]


def find_and_update(forest: Sequence[TaskNode], task_id: str, transform: TaskTransform) -> tuple[Forest, bool]:
    """
    Depth-first: replace the first node whose id matches with transform(node).

    Ancestors of the matched node are rebuilt with the new subtree spliced in;
    everything else is returned as-is. Absent id -> (same nodes, False).
    """
    out: list[TaskNode] = []
    found = False
    for node in forest:
        if found:
            out.append(node)
            continue
        if node.id == task_id:
            out.append(transform(node))
            found = True
            continue
        if node.subtasks:
            new_subtasks, sub_found = find_and_update(node.subtasks, task_id, transform)
            if sub_found:
                out.append(node.with_subtasks(new_subtasks))
                found = True
                continue
        out.append(node)
    return tuple(out), found


def find_and_delete(forest: Sequence[TaskNode], task_id: str) -> tuple[Forest, bool]:
    """
    Remove the node with task_id from wherever it appears, with its whole subtree.

    Children are never promoted: the node is spliced out of its sibling group.
    """
    kept = [node for node in forest if node.id != task_id]
    if len(kept) != len(forest):
        return tuple(kept), True

    out: list[TaskNode] = []
    found = False
    for node in forest:
        if not found and node.subtasks:
            new_subtasks, sub_found = find_and_delete(node.subtasks, task_id)
            if sub_found:
                out.append(node.with_subtasks(new_subtasks))
                found = True
                continue
        out.append(node)
    return tuple(out), found


def find_by_id(forest: Iterable[TaskNode], task_id: str) -> TaskNode | None:
    for node in forest:
        if node.id == task_id:
            return node
        if node.subtasks:
            hit = find_by_id(node.subtasks, task_id)
            if hit is not None:
                return hit
    return None


def find_parent_id(forest: Iterable[TaskNode], task_id: str, _parent: str | None = None) -> tuple[str | None, bool]:
    """Return (parent id or None for top level, found)."""
    for node in forest:
        if node.id == task_id:
            return _parent, True
        if node.subtasks:
            parent, found = find_parent_id(node.subtasks, task_id, node.id)
            if found:
                return parent, True
    return None, False


def are_all_complete(forest: Iterable[TaskNode]) -> bool:
    """True iff every node at every depth is completed (vacuously true when empty)."""
    return all(node.completed and are_all_complete(node.subtasks) for node in forest)


def count_nodes(forest: Iterable[TaskNode]) -> tuple[int, int]:
    """Return (total, completed) across all depths."""
    total = 0
    done = 0
    for node in forest:
        total += 1
        if node.completed:
            done += 1
        sub_total, sub_done = count_nodes(node.subtasks)
        total += sub_total
        done += sub_done
    return total, done


def completion_ratio(forest: Iterable[TaskNode]) -> str:
    total, done = count_nodes(forest)
    return f"{done}/{total}" if total else "0/0"


def iter_ids(forest: Iterable[TaskNode]) -> Iterable[str]:
    for node in forest:
        yield node.id
        yield from iter_ids(node.subtasks)


# ---- display ordering ----


def _display_key(node: TaskNode) -> tuple[int, int]:
    # Completed nodes sink below every incomplete node; priority only orders incomplete ones.
    if node.completed:
        return (1, 0)
    return (0, -int(node.priority))


def sort_siblings(siblings: Iterable[TaskNode]) -> Forest:
    """
    Order one sibling group for display.

    Incomplete by priority descending, then completed nodes; sorted() is
    stable, so ties keep the stored relative order.
    """
    return tuple(sorted(siblings, key=_display_key))


def sorted_forest(forest: Iterable[TaskNode]) -> Forest:
    """Apply sort_siblings at every depth. Display only, never persisted."""
    return tuple(node.with_subtasks(sorted_forest(node.subtasks)) for node in sort_siblings(forest))


# ---- reordering ----


def move_item(items: Sequence[TaskNode], from_index: int, to_index: int) -> Forest:
    """Standard array move: take the item at from_index and reinsert it at to_index."""
    n = len(items)
    if not 0 <= from_index < n:
        raise ValidationError(f"from_index out of range: {from_index}", user_message="Nothing to move there.")
    if not 0 <= to_index < n:
        raise ValidationError(f"to_index out of range: {to_index}", user_message="Cannot move a task there.")
    out = list(items)
    item = out.pop(from_index)
    out.insert(to_index, item)
    return tuple(out)


def reorder(
    forest: Sequence[TaskNode],
    parent_id: str | None,
    from_index: int,
    to_index: int,
) -> tuple[Forest, bool]:
    """
    Move a sibling within one group: the top level (parent_id None) or the
    subtasks of parent_id. Works at any depth.
    """
    if parent_id is None:
        return move_item(forest, from_index, to_index), True
    return find_and_update(
        forest,
        parent_id,
        lambda node: node.with_subtasks(move_item(node.subtasks, from_index, to_index)),
    )


# ---- validation ----


def validate_name(name: str | None, *, max_len: int, what: str = "Task name") -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError(f"{what} is empty", user_message=f"{what} cannot be empty.")
    if len(cleaned) > max_len:
        raise ValidationError(
            f"{what} too long ({len(cleaned)} > {max_len})",
            user_message=f"{what} is too long (max {max_len} characters).",
        )
    return cleaned


def validate_priority(level: object) -> Priority:
    if isinstance(level, bool) or not isinstance(level, int):
        raise ValidationError(f"priority must be an integer, got {level!r}", user_message="Priority must be 0-3.")
    try:
        return Priority(level)
    except ValueError:
        raise ValidationError(f"priority out of range: {level}", user_message="Priority must be 0-3.") from None

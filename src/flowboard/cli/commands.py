# src/flowboard/cli/commands.py

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, cast

from ..core.state import AppState
from ..tasks.coordinator import MutationResult
from ..tasks.task_models import Priority, TaskList, TaskNode
from ..tasks.tree_ops import completion_ratio, find_by_id, find_parent_id, sort_siblings

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], Awaitable[str]]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

_background: set[asyncio.Task[Any]] = set()


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            return await cast(CommandHandler3, handler)(state, args, emit)
        return await cast(CommandHandler2, handler)(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- background mutations ----


async def fire(coro: Coroutine[Any, Any, MutationResult]) -> asyncio.Task[MutationResult]:
    """
    Start a mutation without waiting for the server.

    One loop turn is enough for the coordinator to apply the edit optimistically;
    the outcome arrives later through the notifier.
    """
    task = asyncio.ensure_future(coro)
    _background.add(task)
    task.add_done_callback(_background.discard)
    await asyncio.sleep(0)
    return task


async def drain_background() -> None:
    """Wait for all in-flight mutations (used on exit and by tests)."""
    while _background:
        await asyncio.gather(*list(_background), return_exceptions=True)


# ---- rendering / addressing ----


def _priority_mark(node: TaskNode) -> str:
    return "!" * int(node.priority)


def render_list(lst: TaskList, *, pending: bool = False) -> str:
    header = f"{lst.name} ({completion_ratio(lst.tasks)})"
    if lst.is_placeholder:
        header += " [preview]"
    if pending:
        header += " [saving...]"
    lines = [header]

    def walk(nodes: tuple[TaskNode, ...], prefix: str, depth: int) -> None:
        for i, node in enumerate(sort_siblings(nodes), start=1):
            path = f"{prefix}{i}"
            box = "[x]" if node.completed else "[ ]"
            mark = _priority_mark(node)
            line = f"{'  ' * (depth + 1)}{path}. {box} {node.name}"
            if mark:
                line += f"  {mark}"
            lines.append(line)
            walk(node.subtasks, f"{path}.", depth + 1)

    walk(lst.tasks, "", 0)
    if not lst.tasks:
        lines.append("  (no tasks)")
    return "\n".join(lines)


def resolve_task_ref(tasks: tuple[TaskNode, ...], ref: str) -> TaskNode | None:
    """
    Resolve a display path ("2", "2.1") in sorted order, or a task id
    (full or a unique prefix of at least 4 characters).
    """
    ref = (ref or "").strip()
    if not ref:
        return None

    parts = ref.split(".")
    if all(p.isdigit() for p in parts):
        nodes = tasks
        node: TaskNode | None = None
        for p in parts:
            ordered = sort_siblings(nodes)
            idx = int(p) - 1
            if not 0 <= idx < len(ordered):
                return None
            node = ordered[idx]
            nodes = node.subtasks
        return node

    exact = find_by_id(tasks, ref)
    if exact is not None:
        return exact
    if len(ref) < 4:
        return None

    hits: list[TaskNode] = []

    def walk(nodes: tuple[TaskNode, ...]) -> None:
        for n in nodes:
            if n.id.startswith(ref):
                hits.append(n)
            walk(n.subtasks)

    walk(tasks)
    return hits[0] if len(hits) == 1 else None


def _active_list(state: AppState) -> TaskList | None:
    lst = state.store.get(state.active_list_id)
    if lst is None and state.store.lists:
        lst = state.store.lists[0]
        state.active_list_id = lst.id
    return lst


def _outcome(result: MutationResult, ok_text: str) -> str:
    if result.ok:
        return ok_text if not result.warning else f"{ok_text} ({result.warning})"
    return result.message or "Failed."


# ---- handlers ----


async def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


async def cmd_status(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    user = state.store.user_id or "(signed out: preview only)"
    storage = state.repo.__class__.__name__
    models = ", ".join(list(getattr(state.settings, "llm_models", []) or []))
    return (
        "Status:\n"
        f"  User: {user}\n"
        f"  Storage: {storage}\n"
        f"  Lists: {len(state.store.lists)}\n"
        f"  Models (priority -> fallback): {models}"
    )


async def cmd_lists(state: AppState, args: list[str]) -> str:
    lists = state.store.lists
    if not lists:
        return "No lists yet. Use /newlist <name>."
    active = _active_list(state)
    lines = ["Task lists:"]
    for i, lst in enumerate(lists, start=1):
        marker = "*" if active is not None and lst is active else " "
        lines.append(f" {marker}{i}. {lst.name} ({completion_ratio(lst.tasks)})")
    return "\n".join(lines)


async def cmd_use(state: AppState, args: list[str]) -> str:
    if not args or not args[0].isdigit():
        return "Usage: /use <list number>"
    idx = int(args[0]) - 1
    lists = state.store.lists
    if not 0 <= idx < len(lists):
        return "No such list."
    state.active_list_id = lists[idx].id
    return render_list(lists[idx])


async def cmd_show(state: AppState, args: list[str]) -> str:
    lst = _active_list(state)
    if lst is None:
        return "No lists yet. Use /newlist <name>."
    pending = bool(lst.id) and state.coordinator.is_pending(lst.id)
    return render_list(lst, pending=pending)


async def cmd_preview(state: AppState, args: list[str]) -> str:
    lst, top = state.store.preview_tasks()
    if lst is None:
        return "Nothing to preview."
    lines = [f"{lst.name} ({completion_ratio(lst.tasks)})"]
    for node in top:
        lines.append(f"  {'[x]' if node.completed else '[ ]'} {node.name}")
    return "\n".join(lines)


async def cmd_newlist(state: AppState, args: list[str]) -> str:
    result = await state.coordinator.create_list(" ".join(args))
    if result.ok:
        state.active_list_id = result.list_id
    return _outcome(result, "List added.")


async def cmd_renamelist(state: AppState, args: list[str]) -> str:
    lst = _active_list(state)
    if lst is None:
        return "No list selected."
    result = await state.coordinator.rename_list(lst.id or "", " ".join(args))
    return _outcome(result, "List renamed.")


async def cmd_droplist(state: AppState, args: list[str]) -> str:
    lst = _active_list(state)
    if args:
        lists = state.store.lists
        idx = int(args[0]) - 1 if args[0].isdigit() else -1
        lst = lists[idx] if 0 <= idx < len(lists) else None
    if lst is None:
        return "No such list."
    result = await state.coordinator.delete_list(lst.id or "")
    if result.ok and state.active_list_id == lst.id:
        state.active_list_id = None
    return _outcome(result, f"Deleted list '{lst.name}'.")


async def cmd_add(state: AppState, args: list[str]) -> str:
    lst = _active_list(state)
    if lst is None:
        return "No list selected."
    await fire(state.coordinator.add_task(lst.id or "", " ".join(args)))
    return await cmd_show(state, [])


async def cmd_sub(state: AppState, args: list[str]) -> str:
    lst = _active_list(state)
    if lst is None:
        return "No list selected."
    if len(args) < 2:
        return "Usage: /sub <task> <name>"
    parent = resolve_task_ref(lst.tasks, args[0])
    if parent is None:
        return f"No task {args[0]!r}."
    await fire(state.coordinator.add_task(lst.id or "", " ".join(args[1:]), parent_id=parent.id))
    return await cmd_show(state, [])


async def cmd_done(state: AppState, args: list[str]) -> str:
    lst = _active_list(state)
    if lst is None or not args:
        return "Usage: /done <task>"
    node = resolve_task_ref(lst.tasks, args[0])
    if node is None:
        return f"No task {args[0]!r}."
    await fire(state.coordinator.toggle_completion(lst.id or "", node.id))
    return await cmd_show(state, [])


async def cmd_prio(state: AppState, args: list[str]) -> str:
    lst = _active_list(state)
    if lst is None or len(args) != 2:
        return "Usage: /prio <task> <0-3>"
    node = resolve_task_ref(lst.tasks, args[0])
    if node is None:
        return f"No task {args[0]!r}."
    try:
        level = int(args[1])
    except ValueError:
        return "Priority must be 0-3: " + ", ".join(f"{p.value}={p.label}" for p in Priority)
    await fire(state.coordinator.set_priority(lst.id or "", node.id, level))
    return await cmd_show(state, [])


async def cmd_edit(state: AppState, args: list[str]) -> str:
    lst = _active_list(state)
    if lst is None or not args:
        return "Usage: /edit <task> <new name> (empty name deletes the task)"
    node = resolve_task_ref(lst.tasks, args[0])
    if node is None:
        return f"No task {args[0]!r}."
    await fire(state.coordinator.rename_task(lst.id or "", node.id, " ".join(args[1:])))
    return await cmd_show(state, [])


async def cmd_del(state: AppState, args: list[str]) -> str:
    lst = _active_list(state)
    if lst is None or not args:
        return "Usage: /del <task>"
    node = resolve_task_ref(lst.tasks, args[0])
    if node is None:
        return f"No task {args[0]!r}."
    await fire(state.coordinator.delete_task(lst.id or "", node.id))
    return await cmd_show(state, [])


async def cmd_move(state: AppState, args: list[str]) -> str:
    """
    /move <task> <position> -> move the task to a 1-based display position
    within its own sibling group.
    """
    lst = _active_list(state)
    if lst is None or len(args) != 2 or not args[1].isdigit():
        return "Usage: /move <task> <position>"
    node = resolve_task_ref(lst.tasks, args[0])
    if node is None:
        return f"No task {args[0]!r}."

    parent_id, _ = find_parent_id(lst.tasks, node.id)
    parent = find_by_id(lst.tasks, parent_id) if parent_id else None
    siblings = parent.subtasks if parent is not None else lst.tasks

    shown = sort_siblings(siblings)
    pos = int(args[1]) - 1
    if not 0 <= pos < len(shown):
        return "No such position."
    ids = [s.id for s in siblings]
    from_index = ids.index(node.id)
    to_index = ids.index(shown[pos].id)

    await fire(state.coordinator.reorder(lst.id or "", parent_id, from_index, to_index))
    return await cmd_show(state, [])


async def cmd_ai(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    lst = _active_list(state)
    if lst is None or not args:
        return "Usage: /ai <task description>"
    if emit is not None:
        emit("[AI] Breaking the task down...")
    # The AI call itself is awaited: nothing is applied until it answers.
    result = await state.decomposer.decompose(lst.id or "", " ".join(args))
    if not result.ok:
        return result.message or "AI Breakdown Failed."
    return await cmd_show(state, [])


async def cmd_reload(state: AppState, args: list[str]) -> str:
    if not state.store.is_authenticated:
        return "Sign in (FLOWBOARD_USER_ID) to load your lists."
    try:
        await state.store.load(state.repo, force=True)
    except Exception:
        logger.exception("Reload failed.")
        return "Error loading tasks."
    return await cmd_lists(state, [])


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show session, storage and models.")
registry.register("lists", cmd_lists, help_text="List your task lists.", aliases=["ls"])
registry.register("use", cmd_use, help_text="Select a list: /use <n>.")
registry.register("show", cmd_show, help_text="Show the selected list.", aliases=["s"])
registry.register("preview", cmd_preview, help_text="Top tasks of your first list.")
registry.register("newlist", cmd_newlist, help_text="Create a list: /newlist <name>.")
registry.register("renamelist", cmd_renamelist, help_text="Rename the selected list.")
registry.register("droplist", cmd_droplist, help_text="Delete a list: /droplist [n].")
registry.register("add", cmd_add, help_text="Add a task: /add <name>.", aliases=["a"])
registry.register("sub", cmd_sub, help_text="Add a subtask: /sub <task> <name>.")
registry.register("done", cmd_done, help_text="Toggle completion: /done <task>.", aliases=["x"])
registry.register("prio", cmd_prio, help_text="Set priority: /prio <task> <0-3>.")
registry.register("edit", cmd_edit, help_text="Rename a task: /edit <task> <name>.")
registry.register("del", cmd_del, help_text="Delete a task and its subtasks: /del <task>.")
registry.register("move", cmd_move, help_text="Reorder among siblings: /move <task> <pos>.")
registry.register("ai", cmd_ai, help_text="AI breakdown into subtasks: /ai <description>.")
registry.register("reload", cmd_reload, help_text="Re-fetch lists from storage.")

"""
Task subsystem.

Components:
- task_models.py: data structures (TaskNode, TaskList, Priority) + document mapping
- tree_ops.py: pure recursive edits, completion checks, display ordering, reordering
- list_store.py: in-memory source of truth for the session's lists (+ placeholder preview)
- coordinator.py: optimistic apply -> persist -> rollback protocol for every edit
- decomposer.py: AI breakdown of one description into a task with subtasks
- errors.py: failure kinds with user-facing messages
"""

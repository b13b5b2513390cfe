# src/flowboard/tasks/errors.py

"""
Failure kinds of the task tree core.

Every error carries a `user_message` that the Presentation layer can show as-is.
The AI "format issue" path is deliberately not an exception: see
decomposer.FormatError.
"""

from __future__ import annotations


class TaskTreeError(Exception):
    """Base class for task tree failures."""

    default_message = "Task operation failed."

    def __init__(self, message: str | None = None, *, user_message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.user_message = user_message or message or self.default_message


class InvalidTarget(TaskTreeError):
    """Mutation addressed at a placeholder or unknown list (or unknown task)."""

    default_message = "This list cannot be changed."


class ValidationError(TaskTreeError):
    """Malformed input (empty name, out-of-range priority, bad index)."""

    default_message = "Invalid input."


class PersistenceFailure(TaskTreeError):
    """The storage collaborator rejected or failed a write."""

    default_message = "Failed to save changes."


class GenerationFailure(TaskTreeError):
    """The AI text-generation call itself failed."""

    default_message = "AI Breakdown Failed."

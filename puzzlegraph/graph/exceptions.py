"""
Errors raised by the dependency graph engine.

Every PuzzleGraphError is caller-recoverable: the store is left unchanged
and the exception carries enough detail to react. StorageUnavailableError
is deliberately outside that hierarchy, it signals infrastructure failure.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from puzzlegraph.graph.models import AccessCheck


class PuzzleGraphError(Exception):
    """Base class for domain errors."""


class NotFoundError(PuzzleGraphError):
    """Unknown puzzle, prerequisite or edge."""


class DuplicateCodeError(PuzzleGraphError):
    """A puzzle with the same code already exists."""

    def __init__(self, code: str):
        super().__init__(f"Puzzle with code '{code}' already exists")
        self.code = code


class ConflictError(PuzzleGraphError):
    """The dependency edge already exists."""


class InvalidEdgeError(PuzzleGraphError):
    """Self-loop or malformed batch member."""


class InvalidPuzzleError(PuzzleGraphError):
    """Puzzle fields failed validation."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.errors = errors or []


class CyclicDependencyError(PuzzleGraphError):
    """Adding the edge would break the DAG invariant."""

    def __init__(
        self,
        puzzle_id: Any,
        prerequisite_id: Any,
        path: list[Any] | None = None,
    ):
        self.puzzle_id = puzzle_id
        self.prerequisite_id = prerequisite_id
        self.path = path or []
        message = (
            f"Adding prerequisite {prerequisite_id} to puzzle {puzzle_id} "
            "would create a circular dependency"
        )
        if self.path:
            message += f" ({' -> '.join(str(p) for p in self.path)})"
        super().__init__(message)


class AccessDeniedError(PuzzleGraphError):
    """Completion attempted while required prerequisites are unmet."""

    def __init__(self, access: AccessCheck):
        super().__init__(access.message)
        self.access = access

    @property
    def missing_prerequisites(self) -> list[str]:
        return self.access.missing_prerequisites


class StorageUnavailableError(Exception):
    """The relational store could not be reached."""

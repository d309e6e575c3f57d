"""
Result types returned by the dependency graph engine.

None of these are persisted: unlock state, progress and graph views are
recomputed from the catalog, the edge set and the completion ledger on read.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from puzzlegraph.db.models import Puzzle
from puzzlegraph.db.models.puzzles import utcnow


class PuzzleState(str, Enum):
    """Per user x puzzle state, derived on read."""
    LOCKED = "locked"
    AVAILABLE = "available"
    COMPLETED = "completed"


@dataclass
class AccessCheck:
    """Outcome of evaluating a puzzle's direct prerequisites for a user."""
    puzzle_id: int
    has_access: bool
    message: str
    missing_prerequisites: list[str] = field(default_factory=list)
    completed_prerequisites: list[str] = field(default_factory=list)
    # Incomplete advisory (is_required=False) prerequisites; never block
    advisory_prerequisites: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class UserProgress:
    """Summary of a user's progress through the active catalog."""
    user_id: int
    completed: int
    total: int
    available: int
    percentage: int
    next_available: list[Puzzle] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "completed": self.completed,
            "total": self.total,
            "available": self.available,
            "percentage": self.percentage,
            "next_available": [p.code for p in self.next_available],
        }


@dataclass
class GraphNode:
    """A puzzle in the introspection graph."""
    id: int
    code: str
    title: str
    difficulty: int = 1
    points: int = 0
    completed: bool = False


@dataclass
class GraphEdge:
    """A prerequisite edge in the introspection graph."""
    puzzle_id: int
    prerequisite_id: int
    is_required: bool = True


@dataclass
class DependencyGraph:
    """Catalog graph with per-user completion flags."""
    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    user_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class GraphValidation:
    """Result of a full-graph health check."""
    is_valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass
class CompletionEvent:
    """Emitted after a completion commits, for the notification collaborator."""
    user_id: int
    puzzle_id: int
    newly_available_puzzle_ids: list[int] = field(default_factory=list)
    occurred_at: datetime = field(default_factory=utcnow)

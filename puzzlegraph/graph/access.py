"""
Access evaluation: is a puzzle unlocked for a user?

Only direct, required prerequisites are checked. A prerequisite can itself
only have been completed after its own chain was satisfied, so the ledger
already encodes upstream satisfaction and one level is sufficient.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy.orm import Session

from puzzlegraph.db.models import Puzzle

from .base import GraphComponent
from .dependency_store import DependencyGraphStore
from .exceptions import NotFoundError
from .models import AccessCheck, PuzzleState

if TYPE_CHECKING:
    from .ledger import CompletionLedger


class AccessEvaluator(GraphComponent):
    """Computes LOCKED / AVAILABLE / COMPLETED on demand; nothing is stored."""

    def __init__(
        self,
        store: DependencyGraphStore,
        ledger: CompletionLedger,
        session_factory=None,
    ):
        super().__init__(session_factory)
        self.store = store
        self.ledger = ledger

    def check_access(
        self,
        user_id: int,
        puzzle_id: int,
        session: Optional[Session] = None,
    ) -> AccessCheck:
        """
        Evaluate a puzzle's direct prerequisites for a user.

        Gating:
        - required edge: blocks until completed, even if the prerequisite
          has since been deactivated
        - advisory edge: never blocks, listed in advisory_prerequisites

        Raises:
            NotFoundError: If the puzzle does not exist
        """
        with self._read(session) as db:
            puzzle = db.get(Puzzle, puzzle_id)
            if puzzle is None:
                raise NotFoundError(f"Puzzle with ID {puzzle_id} not found")

            if not puzzle.is_active:
                return AccessCheck(
                    puzzle_id=puzzle_id,
                    has_access=False,
                    message="This puzzle is currently inactive",
                )

            # Retired prerequisites still gate; edges survive deactivation
            edges = self.store.prerequisite_edges(db, puzzle_id)
            done = self.ledger.completed_puzzle_ids(
                user_id, [prerequisite.id for _, prerequisite in edges], session=db
            )

        missing: list[str] = []
        completed: list[str] = []
        advisory: list[str] = []
        for edge, prerequisite in edges:
            if not edge.is_required:
                if prerequisite.id not in done:
                    advisory.append(prerequisite.code)
            elif prerequisite.id in done:
                completed.append(prerequisite.code)
            else:
                missing.append(prerequisite.code)

        has_access = not missing
        if not any(edge.is_required for edge, _ in edges):
            message = "Access granted - no prerequisites required"
        elif has_access:
            message = "Access granted - all prerequisites completed"
        else:
            message = f"Access denied - missing prerequisites: {', '.join(missing)}"

        return AccessCheck(
            puzzle_id=puzzle_id,
            has_access=has_access,
            message=message,
            missing_prerequisites=missing,
            completed_prerequisites=completed,
            advisory_prerequisites=advisory,
        )

    def puzzle_state(
        self,
        user_id: int,
        puzzle_id: int,
        session: Optional[Session] = None,
    ) -> PuzzleState:
        """Current state of a puzzle for a user."""
        with self._read(session) as db:
            if self.ledger.has_completed(user_id, puzzle_id, session=db):
                return PuzzleState.COMPLETED
            if self.check_access(user_id, puzzle_id, session=db).has_access:
                return PuzzleState.AVAILABLE
            return PuzzleState.LOCKED

"""
Per-user progress summaries.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy.orm import Session

from puzzlegraph.db.models import Puzzle

from .access import AccessEvaluator
from .base import GraphComponent
from .catalog import PuzzleCatalog
from .ledger import CompletionLedger
from .models import UserProgress


def completion_percentage(completed: int, total: int) -> int:
    """Whole percent, rounded half up; 0 for an empty catalog."""
    if total <= 0:
        return 0
    ratio = Decimal(completed) * 100 / Decimal(total)
    return int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))


class ProgressReporter(GraphComponent):
    """Aggregates catalog, ledger and access checks into a UserProgress."""

    def __init__(
        self,
        catalog: PuzzleCatalog,
        ledger: CompletionLedger,
        access: AccessEvaluator,
        session_factory=None,
    ):
        super().__init__(session_factory)
        self.catalog = catalog
        self.ledger = ledger
        self.access = access

    def get_user_progress(self, user_id: int, session: Optional[Session] = None) -> UserProgress:
        """
        Summarise a user's progress over the active catalog.

        Only completions of active puzzles count, so `completed <= total`
        holds even after puzzles are retired.
        """
        with self._read(session) as db:
            puzzles = self.catalog.list_puzzles(session=db)
            completed_ids = self.ledger.completed_puzzle_ids(user_id, session=db)

            next_available: list[Puzzle] = [
                puzzle
                for puzzle in puzzles
                if puzzle.id not in completed_ids
                and self.access.check_access(user_id, puzzle.id, session=db).has_access
            ]

        total = len(puzzles)
        completed = sum(1 for puzzle in puzzles if puzzle.id in completed_ids)
        return UserProgress(
            user_id=user_id,
            completed=completed,
            total=total,
            available=len(next_available),
            percentage=completion_percentage(completed, total),
            next_available=next_available,
        )

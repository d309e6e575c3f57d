"""
Completion ledger: the only writer of completion records.

At most one record exists per (user, puzzle). Submitting a completion again
overwrites the stored score, time and solution; it never creates a second
row and never unlocks anything a second time.
"""
from __future__ import annotations

from collections.abc import Iterable
from typing import Optional

from loguru import logger
from sqlalchemy import event, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from puzzlegraph.db.models import UserPuzzleCompletion
from puzzlegraph.db.models.puzzles import utcnow

from .access import AccessEvaluator
from .base import GraphComponent
from .dag import unlocked_by
from .dependency_store import DependencyGraphStore
from .events import CompletionEventBus
from .exceptions import AccessDeniedError
from .models import CompletionEvent
from .schemas import CompletionSubmission, validate


class CompletionLedger(GraphComponent):
    """Records successful solves and answers completion queries."""

    def __init__(
        self,
        store: DependencyGraphStore,
        session_factory=None,
        events: Optional[CompletionEventBus] = None,
        access: Optional[AccessEvaluator] = None,
    ):
        super().__init__(session_factory)
        self.store = store
        self.events = events or CompletionEventBus()
        self.access = access or AccessEvaluator(store, self, session_factory)

    # ========================================
    # Writes
    # ========================================

    def complete_puzzle(
        self,
        user_id: int,
        puzzle_id: int,
        score: Optional[int] = None,
        time_spent_seconds: Optional[int] = None,
        solution: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> UserPuzzleCompletion:
        """
        Record that a user solved a puzzle.

        Access is re-checked inside the same transaction as the write, so a
        completion can never be stored for a puzzle that is still locked.

        Args:
            user_id: Identity of the solver
            puzzle_id: Puzzle that was solved
            score: Optional non-negative score
            time_spent_seconds: Optional non-negative duration
            solution: Optional submitted solution text

        Returns:
            The created or updated completion record

        Raises:
            NotFoundError: If the puzzle does not exist
            AccessDeniedError: If required prerequisites are incomplete
            InvalidPuzzleError: If score or time is negative
        """
        submission = validate(
            CompletionSubmission,
            score=score,
            time_spent_seconds=time_spent_seconds,
            solution=solution,
        )

        try:
            record, newly_available = self._record(user_id, puzzle_id, submission, session)
        except IntegrityError:
            # A concurrent submission inserted the row first; ours becomes the update
            logger.info(f"Completion race for user={user_id} puzzle={puzzle_id}, retrying as update")
            record, newly_available = self._record(user_id, puzzle_id, submission, session)

        completion = CompletionEvent(
            user_id=user_id,
            puzzle_id=puzzle_id,
            newly_available_puzzle_ids=newly_available,
        )
        if session is None:
            self.events.publish(completion)
        else:
            event.listen(
                session, "after_commit", lambda _s: self.events.publish(completion), once=True
            )
        return record

    def _record(
        self,
        user_id: int,
        puzzle_id: int,
        submission: CompletionSubmission,
        session: Optional[Session],
    ) -> tuple[UserPuzzleCompletion, list[int]]:
        with self._write(session) as db:
            access = self.access.check_access(user_id, puzzle_id, session=db)
            if not access.has_access:
                logger.info(f"Completion refused for user={user_id} puzzle={puzzle_id}: {access.message}")
                raise AccessDeniedError(access)

            record = self._find(db, user_id, puzzle_id)
            if record is not None:
                record.score = submission.score
                record.time_spent = submission.time_spent_seconds
                record.solution = submission.solution
                record.completed_at = utcnow()
                logger.info(f"Updated completion user={user_id} puzzle={puzzle_id}")
                return record, []

            record = UserPuzzleCompletion(
                user_id=user_id,
                puzzle_id=puzzle_id,
                score=submission.score,
                time_spent=submission.time_spent_seconds,
                solution=submission.solution,
            )
            if session is None:
                db.add(record)
                db.flush()
            else:
                # Caller's transaction must survive a lost insert race
                with db.begin_nested():
                    db.add(record)

            newly_available = self._newly_available(db, user_id, puzzle_id)

        logger.info(
            f"User {user_id} completed puzzle {puzzle_id}; unlocked {newly_available or 'nothing'}"
        )
        return record, newly_available

    def _newly_available(self, db: Session, user_id: int, puzzle_id: int) -> list[int]:
        """Active dependents whose required prerequisites are now all completed."""
        dependents = [
            p for p in self.store.get_dependents(puzzle_id, required_only=True, session=db)
            if p.is_active
        ]
        if not dependents:
            return []

        gating = {
            dependent.id: [
                prerequisite.id
                for _, prerequisite in self.store.prerequisite_edges(db, dependent.id, required_only=True)
            ]
            for dependent in dependents
        }
        # Dependents are looked up too so already-finished ones are not re-announced
        completed = self.completed_puzzle_ids(
            user_id,
            {*gating, *(pid for prereqs in gating.values() for pid in prereqs)},
            session=db,
        )
        unlocked = unlocked_by(gating, completed, candidates=list(gating))
        return [dependent_id for dependent_id in gating if dependent_id in unlocked]

    # ========================================
    # Reads
    # ========================================

    def has_completed(self, user_id: int, puzzle_id: int, session: Optional[Session] = None) -> bool:
        with self._read(session) as db:
            return self._find(db, user_id, puzzle_id) is not None

    def get_completions(
        self,
        user_id: int,
        session: Optional[Session] = None,
    ) -> list[UserPuzzleCompletion]:
        """All completion records of a user, newest first."""
        query = (
            select(UserPuzzleCompletion)
            .where(UserPuzzleCompletion.user_id == user_id)
            .order_by(UserPuzzleCompletion.completed_at.desc(), UserPuzzleCompletion.id.desc())
        )
        with self._read(session) as db:
            return list(db.scalars(query))

    def completed_puzzle_ids(
        self,
        user_id: int,
        puzzle_ids: Optional[Iterable[int]] = None,
        session: Optional[Session] = None,
    ) -> set[int]:
        """Ids of puzzles the user has completed, optionally limited to `puzzle_ids`."""
        query = select(UserPuzzleCompletion.puzzle_id).where(UserPuzzleCompletion.user_id == user_id)
        if puzzle_ids is not None:
            wanted = set(puzzle_ids)
            if not wanted:
                return set()
            query = query.where(UserPuzzleCompletion.puzzle_id.in_(wanted))
        with self._read(session) as db:
            return set(db.scalars(query))

    @staticmethod
    def _find(db: Session, user_id: int, puzzle_id: int) -> Optional[UserPuzzleCompletion]:
        return db.scalar(
            select(UserPuzzleCompletion).where(
                UserPuzzleCompletion.user_id == user_id,
                UserPuzzleCompletion.puzzle_id == puzzle_id,
            )
        )

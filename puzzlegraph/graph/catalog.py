"""
Puzzle catalog: the only writer of puzzle rows.

Puzzles are never hard-deleted through the engine. Retiring one flips
`is_active`, leaving its edges and completion records in place.
"""
from __future__ import annotations

from typing import Optional

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from puzzlegraph.db.models import Puzzle

from .base import GraphComponent
from .exceptions import DuplicateCodeError, NotFoundError
from .schemas import PuzzleCreate, PuzzleUpdate, validate


class PuzzleCatalog(GraphComponent):
    """Create, read, update and retire puzzles."""

    def create_puzzle(
        self,
        code: str,
        title: str,
        description: Optional[str] = None,
        difficulty: int = 1,
        points: int = 0,
        session: Optional[Session] = None,
    ) -> Puzzle:
        """
        Create a new active puzzle.

        Raises:
            DuplicateCodeError: If a puzzle with `code` already exists
            InvalidPuzzleError: If a field is out of range
        """
        data = validate(
            PuzzleCreate,
            code=code,
            title=title,
            description=description,
            difficulty=difficulty,
            points=points,
        )

        try:
            with self._write(session) as db:
                exists = db.scalar(select(Puzzle.id).where(Puzzle.code == data.code))
                if exists is not None:
                    raise DuplicateCodeError(data.code)

                puzzle = Puzzle(**data.model_dump(), is_active=True)
                db.add(puzzle)
                db.flush()
        except IntegrityError as exc:
            # Lost a race against a concurrent create with the same code
            raise DuplicateCodeError(data.code) from exc

        logger.info(f"Created puzzle {puzzle.code} (id={puzzle.id}, difficulty={puzzle.difficulty})")
        return puzzle

    def get_puzzle(self, puzzle_id: int, session: Optional[Session] = None) -> Puzzle:
        """Get a puzzle by id, active or not."""
        with self._read(session) as db:
            return self._require(db, puzzle_id)

    def get_puzzle_by_code(self, code: str, session: Optional[Session] = None) -> Puzzle:
        with self._read(session) as db:
            puzzle = db.scalar(select(Puzzle).where(Puzzle.code == code))
            if puzzle is None:
                raise NotFoundError(f"Puzzle with code '{code}' not found")
            return puzzle

    def list_puzzles(
        self,
        include_inactive: bool = False,
        session: Optional[Session] = None,
    ) -> list[Puzzle]:
        """List puzzles ordered by difficulty, then creation order."""
        query = select(Puzzle).order_by(Puzzle.difficulty, Puzzle.id)
        if not include_inactive:
            query = query.where(Puzzle.is_active.is_(True))
        with self._read(session) as db:
            return list(db.scalars(query))

    def count_active(self, session: Optional[Session] = None) -> int:
        with self._read(session) as db:
            return db.scalar(
                select(func.count()).select_from(Puzzle).where(Puzzle.is_active.is_(True))
            )

    def update_puzzle(self, puzzle_id: int, session: Optional[Session] = None, **changes) -> Puzzle:
        """
        Update mutable fields (title, description, difficulty, points, is_active).

        Setting is_active=True reactivates a retired puzzle.
        """
        data = validate(PuzzleUpdate, **changes)
        updates = data.model_dump(exclude_unset=True)
        with self._write(session) as db:
            puzzle = self._require(db, puzzle_id)
            for key, value in updates.items():
                if value is None and key != "description":
                    continue
                setattr(puzzle, key, value)

        logger.info(f"Updated puzzle {puzzle.code}: {sorted(updates)}")
        return puzzle

    def deactivate_puzzle(self, puzzle_id: int, session: Optional[Session] = None) -> Puzzle:
        """Soft-delete a puzzle; edges and completions referencing it stay untouched."""
        with self._write(session) as db:
            puzzle = self._require(db, puzzle_id)
            if not puzzle.is_active:
                return puzzle
            puzzle.is_active = False

        logger.info(f"Deactivated puzzle {puzzle.code} (id={puzzle.id})")
        return puzzle

    @staticmethod
    def _require(db: Session, puzzle_id: int) -> Puzzle:
        puzzle = db.get(Puzzle, puzzle_id)
        if puzzle is None:
            raise NotFoundError(f"Puzzle with ID {puzzle_id} not found")
        return puzzle

"""
Puzzle catalog, prerequisite edge and completion ledger tables.

Tables:
- puzzles: catalog nodes, soft-deleted through is_active
- puzzle_dependencies: directed prerequisite edges (puzzle -> prerequisite)
- user_puzzle_completions: one completion fact per (user, puzzle)

Edge semantics:
- is_required=True: hard gate, the prerequisite must be completed first
- is_required=False: advisory, shown as a recommendation but never blocks

The edge set must stay acyclic. That invariant cannot be expressed as a table
constraint and is enforced by the dependency store before every insert.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


def utcnow() -> datetime:
    """Naive UTC timestamp (SQLite drops tzinfo on round trip)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Puzzle(Base):
    """
    A node of the dependency graph.

    Attributes:
        code: Unique human-readable identifier (e.g. BASIC_MATH)
        difficulty: 1 (easiest) to 10
        points: Reward for completion, never negative
        is_active: False once retired; referenced rows are kept
    """

    __tablename__ = "puzzles"
    __table_args__ = (
        Index("ix_puzzles_is_active", "is_active"),
        CheckConstraint("difficulty >= 1", name="ck_puzzles_difficulty_min"),
        CheckConstraint("points >= 0", name="ck_puzzles_points_min"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    difficulty: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)

    # Relationships
    prerequisite_edges: Mapped[list[PuzzleDependency]] = relationship(
        foreign_keys="PuzzleDependency.puzzle_id",
        back_populates="puzzle",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    dependent_edges: Mapped[list[PuzzleDependency]] = relationship(
        foreign_keys="PuzzleDependency.prerequisite_id",
        back_populates="prerequisite",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Puzzle(id={self.id}, code={self.code}, active={self.is_active})>"


class PuzzleDependency(Base):
    """
    Directed prerequisite edge: `prerequisite` must be completed before `puzzle`.
    """

    __tablename__ = "puzzle_dependencies"
    __table_args__ = (
        UniqueConstraint("puzzle_id", "prerequisite_id", name="uq_puzzle_dependencies_edge"),
        CheckConstraint("puzzle_id <> prerequisite_id", name="ck_puzzle_dependencies_no_self_loop"),
        Index("ix_puzzle_dependencies_puzzle_id", "puzzle_id"),
        Index("ix_puzzle_dependencies_prerequisite_id", "prerequisite_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Gated node
    puzzle_id: Mapped[int] = mapped_column(
        ForeignKey("puzzles.id", ondelete="CASCADE"), nullable=False
    )
    # Node that must be completed first
    prerequisite_id: Mapped[int] = mapped_column(
        ForeignKey("puzzles.id", ondelete="CASCADE"), nullable=False
    )
    is_required: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    # Relationships
    puzzle: Mapped[Puzzle] = relationship(
        foreign_keys=[puzzle_id], back_populates="prerequisite_edges"
    )
    prerequisite: Mapped[Puzzle] = relationship(
        foreign_keys=[prerequisite_id], back_populates="dependent_edges"
    )

    def __repr__(self) -> str:
        kind = "required" if self.is_required else "advisory"
        return f"<PuzzleDependency({self.puzzle_id} -> {self.prerequisite_id}, {kind})>"


class UserPuzzleCompletion(Base):
    """
    Durable fact that a user finished a puzzle.

    At most one row per (user_id, puzzle_id); re-submissions update it.

    Attributes:
        score: Score handed over by the solution validator
        time_spent: Seconds spent on the attempt
        solution: Opaque solution payload
    """

    __tablename__ = "user_puzzle_completions"
    __table_args__ = (
        UniqueConstraint("user_id", "puzzle_id", name="uq_user_puzzle_completions_user_puzzle"),
        Index("ix_user_puzzle_completions_user_id", "user_id"),
        Index("ix_user_puzzle_completions_completed_at", "completed_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    puzzle_id: Mapped[int] = mapped_column(
        ForeignKey("puzzles.id", ondelete="CASCADE"), nullable=False
    )
    score: Mapped[int | None] = mapped_column(Integer)
    time_spent: Mapped[int | None] = mapped_column(Integer)  # seconds
    solution: Mapped[str | None] = mapped_column(Text)

    completed_at: Mapped[datetime] = mapped_column(default=utcnow)

    puzzle: Mapped[Puzzle] = relationship()

    def __repr__(self) -> str:
        return f"<UserPuzzleCompletion(user={self.user_id}, puzzle={self.puzzle_id})>"

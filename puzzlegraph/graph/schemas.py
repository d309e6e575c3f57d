"""
Input models for catalog and ledger writes.

Validation happens here so the services only ever persist well-formed rows.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from config import get_settings

from .exceptions import InvalidPuzzleError


class PuzzleCreate(BaseModel):
    """Fields accepted when creating a puzzle."""

    code: str = Field(..., min_length=1, max_length=100, description="Unique puzzle code")
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, description="Free-form description")
    difficulty: int = Field(1, ge=1, description="Difficulty, upper bound from settings")
    points: int = Field(0, ge=0, description="Points awarded on completion")

    @field_validator("code", "title")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("difficulty")
    @classmethod
    def _difficulty_in_range(cls, value: int) -> int:
        return _check_difficulty(value)


class PuzzleUpdate(BaseModel):
    """Mutable puzzle fields; the code is fixed once created."""

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    difficulty: Optional[int] = Field(None, ge=1)
    points: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None

    @field_validator("difficulty")
    @classmethod
    def _difficulty_in_range(cls, value: Optional[int]) -> Optional[int]:
        return value if value is None else _check_difficulty(value)


class CompletionSubmission(BaseModel):
    """Result handed over by the solution validator."""

    score: Optional[int] = Field(None, ge=0)
    time_spent_seconds: Optional[int] = Field(None, ge=0)
    solution: Optional[str] = None


def _check_difficulty(value: int) -> int:
    settings = get_settings()
    if not settings.difficulty_min <= value <= settings.difficulty_max:
        raise ValueError(
            f"difficulty must be between {settings.difficulty_min} and {settings.difficulty_max}"
        )
    return value


def validate(model: type[BaseModel], **data) -> BaseModel:
    """Build `model` from keyword data, raising InvalidPuzzleError on bad input."""
    try:
        return model(**data)
    except ValidationError as exc:
        errors = exc.errors(include_url=False)
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in errors)
        raise InvalidPuzzleError(f"Invalid value for {fields}", errors=errors) from exc

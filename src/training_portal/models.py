"""
Data models for the training portal.

Entities mirror the managed backend's schema: camelCase on the wire
(``videoKey``, ``passingScore``, ``correctAnswer`` ...), snake_case in Python.
Every entity carries an opaque ``id`` plus ISO-8601 ``createdAt`` /
``updatedAt`` strings assigned by the data store at write time.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

DEFAULT_PASSING_SCORE = 70

MANAGERS_GROUP  = "Managers"
EMPLOYEES_GROUP = "Employees"


# ─── Enumerations ────────────────────────────────────────────────────────────

class Role(str, Enum):
    """Effective role derived from identity-provider group claims."""
    MANAGER  = "Manager"
    EMPLOYEE = "Employee"
    NONE     = "none"      # access denied


class AssignmentStatus(str, Enum):
    ASSIGNED  = "assigned"
    COMPLETED = "completed"


# ─── Base ────────────────────────────────────────────────────────────────────

class Entity(BaseModel):
    """Fields shared by every stored record."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )

    id:          str
    created_at:  Optional[str] = None
    updated_at:  Optional[str] = None

    def to_record(self) -> dict:
        """Wire-shaped dict (camelCase keys, enum values)."""
        return self.model_dump(by_alias=True, mode="json")


# ─── Manager-authored content ────────────────────────────────────────────────

class Course(Entity):
    title:          str
    video_key:      Optional[str] = None
    passing_score:  Optional[int] = Field(default=None, ge=0, le=100)

    @field_validator("title")
    @classmethod
    def _title_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("title is required")
        return v

    @property
    def effective_passing_score(self) -> int:
        """The configured passing score, or 70 when unset."""
        return DEFAULT_PASSING_SCORE if self.passing_score is None else self.passing_score


class QuizQuestion(Entity):
    course_id:       str
    question:        str
    options:         list[str] = Field(min_length=2)
    correct_answer:  int

    @model_validator(mode="after")
    def _answer_in_range(self) -> "QuizQuestion":
        if not 0 <= self.correct_answer < len(self.options):
            raise ValueError(
                f"correctAnswer {self.correct_answer} out of range for "
                f"{len(self.options)} options"
            )
        return self


# ─── People and progress ─────────────────────────────────────────────────────

class Employee(Entity):
    user_id:     str
    email:       str
    name:        str
    department:  Optional[str] = None
    is_active:   bool = True


class Assignment(Entity):
    employee_id:  str
    course_id:    str
    status:       AssignmentStatus = AssignmentStatus.ASSIGNED

    @property
    def is_completed(self) -> bool:
        return self.status == AssignmentStatus.COMPLETED


class Result(Entity):
    """One quiz submission.  Append-only: never updated or deleted."""
    assignment_id:  str
    score:          int = Field(ge=0, le=100)
    passed:         bool


# ─── Registry ────────────────────────────────────────────────────────────────

ENTITY_MODELS: dict[str, type[Entity]] = {
    "Course":       Course,
    "QuizQuestion": QuizQuestion,
    "Employee":     Employee,
    "Assignment":   Assignment,
    "Result":       Result,
}

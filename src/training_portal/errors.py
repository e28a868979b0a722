"""
errors.py — Error taxonomy for the training workflow
====================================================

  AuthFailure                 session / group lookup failed, or caller lacks the role
  EmployeeNotFound            identity has no Employee record
  NoQuestions                 course has no quiz content
  FetchFailed                 data-store read error (retry by user action)
  WriteFailed                 create / update / delete error (never retried)
  PartialProvisioningFailure  identity created, Employee record create failed
  PartialCompletionFailure    Result written, Assignment update failed
  OrphanReference             row points at a deleted Course

Adapters translate driver errors (sqlite3, botocore) into FetchFailed /
WriteFailed so components never see backend-specific exceptions.
"""

from __future__ import annotations

from typing import Any, Optional


class TrainingPortalError(Exception):
    """Base class for every error raised by this package."""


class AuthFailure(TrainingPortalError):
    pass


class EmployeeNotFound(TrainingPortalError):
    def __init__(self, subject_id: str):
        super().__init__(f"No employee record for identity {subject_id!r}")
        self.subject_id = subject_id


class NoQuestions(TrainingPortalError):
    def __init__(self, course_id: str):
        super().__init__(f"No quiz questions available for course {course_id!r}")
        self.course_id = course_id


class FetchFailed(TrainingPortalError):
    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(message)
        self.errors = errors or []


class WriteFailed(TrainingPortalError):
    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(message)
        self.errors = errors or []


class PartialProvisioningFailure(TrainingPortalError):
    """The identity exists but its Employee record does not.

    ``subject_id`` is what a reconciliation job needs to either create the
    missing record or delete the stray identity.
    """

    def __init__(self, subject_id: str, email: str, cause: Exception):
        super().__init__(
            f"Identity {subject_id!r} ({email}) was created but the employee "
            f"record was not: {cause}"
        )
        self.subject_id = subject_id
        self.email = email
        self.cause = cause


class PartialCompletionFailure(TrainingPortalError):
    """The Result row exists but the Assignment was not marked completed."""

    def __init__(self, assignment_id: str, result: Any, cause: Exception):
        super().__init__(
            f"Result saved for assignment {assignment_id!r} but the assignment "
            f"status update failed: {cause}"
        )
        self.assignment_id = assignment_id
        self.result = result
        self.cause = cause


class OrphanReference(TrainingPortalError):
    def __init__(self, model: str, record_id: str, missing: str):
        super().__init__(f"{model} {record_id!r} references missing {missing!r}")
        self.model = model
        self.record_id = record_id
        self.missing = missing

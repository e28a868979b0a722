"""
assignments.py — Assignment Tracker
===================================
Maps an employee identity to the courses they must complete, and carries
the manager-side assignment operations.

assigned_courses(subject_id)
----------------------------
  1. subject id → Employee (equality lookup on ``userId``).  No record is
     ``EmployeeNotFound``, never an empty list.
  2. Assignments where ``employeeId == employee.id``.  A failure here is
     ``FetchFailed``.
  3. Course per assignment, fetched concurrently.  A missing course, or a
     failed fetch for a single course, drops that entry (orphan tolerance).
  Result order = assignment fetch order.  No sort is applied.

Manager operations
------------------
  assign_courses()         one Assignment per course, issued concurrently, joined
  assignment_form_data()   Courses + Employees, concurrently; both must succeed
  overview()               Employees + Assignments + Courses, concurrently;
                           only the Employees fetch is fatal
  delete_employee()        Assignments first, then the Employee
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Optional

from training_portal.datastore import DataStore
from training_portal.errors import (
    EmployeeNotFound,
    FetchFailed,
    OrphanReference,
    TrainingPortalError,
    WriteFailed,
)
from training_portal.models import Assignment, AssignmentStatus, Course, Employee

logger = logging.getLogger(__name__)

UNKNOWN_COURSE_TITLE = "Unknown Course"


@dataclass(frozen=True)
class AssignedCourse:
    course:         Course
    status:         AssignmentStatus
    assignment_id:  str

    @property
    def is_completed(self) -> bool:
        return self.status == AssignmentStatus.COMPLETED


@dataclass
class EmployeeOverview:
    """One row of the manager's employee list."""
    employee:     Employee
    assignments:  list[Assignment] = field(default_factory=list)
    titles:       dict[str, str] = field(default_factory=dict)   # assignment id → course title

    @property
    def completed_count(self) -> int:
        return sum(1 for a in self.assignments if a.is_completed)

    @property
    def total_count(self) -> int:
        return len(self.assignments)


@dataclass
class AssignmentFormData:
    courses:    list[Course]
    employees:  list[Employee]


class AssignmentTracker:
    def __init__(self, store: DataStore, max_workers: int = 8):
        self.store = store
        self.max_workers = max_workers

    # ── Employee view ───────────────────────────────────────────────────────

    def employee_for_subject(self, subject_id: str) -> Employee:
        employees = self.store.employees.list(user_id=subject_id)
        if not employees:
            logger.error("Employee record not found for identity %s", subject_id)
            raise EmployeeNotFound(subject_id)
        if len(employees) > 1:
            logger.warning(
                "Identity %s has %d employee records; using the first",
                subject_id, len(employees),
            )
        return employees[0]

    def assigned_courses(self, subject_id: str) -> list[AssignedCourse]:
        employee = self.employee_for_subject(subject_id)
        assignments = self.store.assignments.list(employee_id=employee.id)
        logger.info("Found %d assignments for employee %s", len(assignments), employee.id)
        if not assignments:
            return []

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            courses = list(pool.map(self._course_or_none, assignments))

        assigned = [
            AssignedCourse(course=c, status=a.status, assignment_id=a.id)
            for a, c in zip(assignments, courses)
            if c is not None
        ]
        logger.info("Fetched %d assigned courses", len(assigned))
        return assigned

    def _course_for(self, assignment: Assignment) -> Course:
        course = self.store.courses.get(assignment.course_id)
        if course is None:
            raise OrphanReference("Assignment", assignment.id, assignment.course_id)
        return course

    def _course_or_none(self, assignment: Assignment) -> Optional[Course]:
        try:
            return self._course_for(assignment)
        except (OrphanReference, FetchFailed) as exc:
            logger.debug("Dropping assignment %s: %s", assignment.id, exc)
            return None

    # ── Manager operations ──────────────────────────────────────────────────

    def assign_courses(self, employee_id: str, course_ids: list[str]) -> list[Assignment]:
        if not employee_id:
            raise ValueError("Please select an employee")
        if not course_ids:
            raise ValueError("Please select at least one course")

        def _create(course_id: str):
            try:
                return self.store.assignments.create({
                    "employee_id": employee_id,
                    "course_id": course_id,
                    "status": AssignmentStatus.ASSIGNED,
                })
            except WriteFailed as exc:
                return exc

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            outcomes = list(pool.map(_create, course_ids))

        failures = [o for o in outcomes if isinstance(o, WriteFailed)]
        if failures:
            messages = [str(f) for f in failures]
            logger.error("Some assignments failed: %s", "; ".join(messages))
            raise WriteFailed("Some assignments failed", messages)

        logger.info("Assigned %d course(s) to employee %s", len(outcomes), employee_id)
        return outcomes

    def mark_completed(self, assignment_id: str) -> Assignment:
        return self.store.assignments.update(assignment_id, {"status": AssignmentStatus.COMPLETED})

    def assignment_form_data(self) -> AssignmentFormData:
        with ThreadPoolExecutor(max_workers=2) as pool:
            courses_f = pool.submit(self.store.courses.list)
            employees_f = pool.submit(self.store.employees.list)
            # .result() re-raises FetchFailed; either failure aborts the view
            return AssignmentFormData(courses=courses_f.result(), employees=employees_f.result())

    def overview(self) -> list[EmployeeOverview]:
        with ThreadPoolExecutor(max_workers=3) as pool:
            employees_f = pool.submit(self.store.employees.list)
            assignments_f = pool.submit(self.store.assignments.list)
            courses_f = pool.submit(self.store.courses.list)

            employees = employees_f.result()
            assignments = self._degrade(assignments_f, "assignments")
            courses = self._degrade(courses_f, "courses")

        titles = {c.id: c.title for c in courses}
        rows = []
        for emp in employees:
            mine = [a for a in assignments if a.employee_id == emp.id]
            rows.append(EmployeeOverview(
                employee=emp,
                assignments=mine,
                titles={a.id: titles.get(a.course_id, UNKNOWN_COURSE_TITLE) for a in mine},
            ))
        return rows

    @staticmethod
    def _degrade(future, what: str) -> list:
        try:
            return future.result()
        except TrainingPortalError as exc:
            logger.warning("Warning fetching %s: %s", what, exc)
            return []

    def delete_employee(self, employee_id: str) -> None:
        for assignment in self.store.assignments.list(employee_id=employee_id):
            self.store.assignments.delete(assignment.id)
        self.store.employees.delete(employee_id)
        logger.info("Deleted employee %s and their assignments", employee_id)

    def deactivate_employee(self, employee_id: str) -> Employee:
        return self.store.employees.update(employee_id, {"is_active": False})

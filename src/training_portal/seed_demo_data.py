"""
seed_demo_data.py
─────────────────
Populate a backend with QA users, courses and assignments so the employee
and manager flows have something to show.

Run once (safe to re-run: existing employees and course titles are skipped,
and an account left without its employee record is completed):
    python -m training_portal.seed_demo_data
or:
    training-portal seed
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from training_portal.catalog import QuestionDraft
from training_portal.identity import CurrentUser
from training_portal.provisioning import EmployeeRole, ProvisionRequest
from training_portal.services import TrainingServices, build_services

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "TempQAPass123!"

# ─────────────────────────────────────────────────────────────────────────────
# Demo cohort
# ─────────────────────────────────────────────────────────────────────────────

_MANAGERS: list[dict] = [
    {"email": "qa-manager@testcompany.com",    "name": "QA Manager",    "department": "Testing"},
    {"email": "qa-supervisor@testcompany.com", "name": "QA Supervisor", "department": "Quality Assurance"},
]

_EMPLOYEES: list[dict] = [
    {"email": "qa-employee1@testcompany.com", "name": "QA Employee One",   "department": "Manufacturing"},
    {"email": "qa-employee2@testcompany.com", "name": "QA Employee Two",   "department": "Warehouse"},
    {"email": "qa-employee3@testcompany.com", "name": "QA Employee Three", "department": "Shipping"},
]

_COURSES: list[dict] = [
    {
        "title": "QA Safety Training Fundamentals",
        "passing_score": 80,
        "questions": [
            ("What is the first step in workplace safety?",
             ["Wear PPE", "Identify hazards", "Report incidents", "Read procedures"], 1),
            ("How often should safety equipment be inspected?",
             ["Weekly", "Monthly", "Before each use", "Annually"], 2),
            ("What should you do if you witness an unsafe act?",
             ["Ignore it", "Report immediately", "Document later", "Tell a friend"], 1),
        ],
    },
    {
        "title": "Emergency Response Procedures",
        "passing_score": 85,
        "questions": [
            ("What is the first action during a fire emergency?",
             ["Call 911", "Use extinguisher", "Evacuate area", "Find fire warden"], 2),
            ("Where do you meet during evacuation?",
             ["Parking lot", "Designated assembly point", "Main entrance", "Break room"], 1),
        ],
    },
    {
        "title": "Equipment Operation Training",
        "passing_score": 90,
        "questions": [
            ("Before operating machinery, you must:",
             ["Check safety guards", "Verify training certificate", "Inspect equipment", "All of the above"], 3),
        ],
    },
]

# employee email → course titles
_ASSIGNMENTS: dict[str, list[str]] = {
    "qa-employee1@testcompany.com": [c["title"] for c in _COURSES],
    "qa-employee2@testcompany.com": ["QA Safety Training Fundamentals", "Emergency Response Procedures"],
    "qa-employee3@testcompany.com": ["QA Safety Training Fundamentals"],
}


@dataclass
class SeedSummary:
    users_created:        list[str] = field(default_factory=list)
    users_reconciled:     list[str] = field(default_factory=list)
    courses_created:      list[str] = field(default_factory=list)
    assignments_created:  int = 0


def _has_record(services: TrainingServices, email: str) -> bool:
    return bool(services.store.employees.list(email=email))


def _finish_identity(services: TrainingServices, user: CurrentUser, person: dict, role: EmployeeRole) -> None:
    """Complete an account left behind by an earlier partial provisioning."""
    services.identity.admin_add_user_to_group(user.username, role.group)
    services.identity.admin_set_user_password(user.username, DEMO_PASSWORD, permanent=True)
    services.store.employees.create({
        "user_id": user.subject_id,
        "email": person["email"],
        "name": person["name"],
        "department": person["department"],
        "is_active": True,
    })
    logger.info("Reconciled existing identity %s for %s", user.subject_id, person["email"])


def seed(services: TrainingServices) -> SeedSummary:
    summary = SeedSummary()
    provisioner = services.provisioner()

    for people, role in ((_MANAGERS, EmployeeRole.MANAGER), (_EMPLOYEES, EmployeeRole.EMPLOYEE)):
        for person in people:
            if _has_record(services, person["email"]):
                continue
            existing_user = services.identity.admin_get_user(person["email"])
            if existing_user is not None:
                _finish_identity(services, existing_user, person, role)
                summary.users_reconciled.append(person["email"])
                continue
            provisioner.provision(ProvisionRequest(
                temporary_password=DEMO_PASSWORD, role=role, **person,
            ))
            summary.users_created.append(person["email"])

    catalog = services.catalog()
    existing = {c.title: c for c in catalog.list_courses()}
    for entry in _COURSES:
        if entry["title"] in existing:
            continue
        course, _ = catalog.create_course(
            entry["title"],
            [QuestionDraft(q, list(opts), ans) for q, opts, ans in entry["questions"]],
            passing_score=entry["passing_score"],
        )
        existing[course.title] = course
        summary.courses_created.append(course.title)

    tracker = services.tracker()
    for email, titles in _ASSIGNMENTS.items():
        employee = services.store.employees.list(email=email)[0]
        already = {a.course_id for a in services.store.assignments.list(employee_id=employee.id)}
        wanted = [existing[t].id for t in titles if existing[t].id not in already]
        if wanted:
            summary.assignments_created += len(tracker.assign_courses(employee.id, wanted))

    logger.info(
        "Seeded %d users, %d courses, %d assignments",
        len(summary.users_created), len(summary.courses_created), summary.assignments_created,
    )
    return summary


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    seed(build_services())

"""
Shared pytest fixtures for the training portal test suite.
All fixtures use the local backend — in-memory SQLite, in-process identity,
tmp-path media directory, logging topic.  No AWS credentials required.
Factory helpers live in tests/factories.py so they can be imported
directly by test modules as well as being used here.
"""
import sys
import os

_tests_dir = os.path.dirname(__file__)
_src_dir   = os.path.join(_tests_dir, "..", "src")
for _p in (_tests_dir, _src_dir):
    if _p not in sys.path:
        sys.path.insert(0, _p)

os.environ["FORCE_LOCAL_MODE"] = "true"


import pytest

from factories import make_course, make_employee, make_services


# ─── pytest fixtures ──────────────────────────────────────────────────────────

@pytest.fixture
def services(tmp_path):
    svc = make_services(tmp_path)
    yield svc
    svc.close()


@pytest.fixture
def store(services):
    return services.store


@pytest.fixture
def employee(services):
    return make_employee(services).employee


@pytest.fixture
def course_with_questions(services):
    return make_course(services, n_questions=3, passing_score=70)


@pytest.fixture
def assignment(services, employee, course_with_questions):
    course, _ = course_with_questions
    return services.tracker().assign_courses(employee.id, [course.id])[0]

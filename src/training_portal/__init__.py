"""
training_portal — Corporate Training Workflow
=============================================
Package containing the employee quiz workflow, manager catalog and
assignment operations, and the adapters that talk to the managed backend
(data store, identity provider, object store, notification topic).

Module map
----------
  models.py            Pydantic entities (Course, QuizQuestion, Employee,
                       Assignment, Result) and enums (Role, AssignmentStatus).
  config.py            Settings loaded from .env; live vs local detection.
  errors.py            Error taxonomy shared by every component.

  datastore.py         Structured data store contract + SQLite / DynamoDB adapters.
  identity.py          Identity provider contract + Cognito / local adapters.
  storage.py           Object store contract + S3 / filesystem adapters.
  notifications.py     Quiz-completion notifier + SNS / logging topics.

  roles.py             Role Resolver (group claims → Manager / Employee / none).
  catalog.py           Course + question authoring, cascade delete.
  assignments.py       Assignment Tracker and manager assignment operations.
  video_gate.py        Playable URL lookup and soft watch-completion signal.
  quiz_engine.py       Quiz state machine, scoring, Result persistence.
  provisioning.py      Employee provisioning (identity + record) + HTTP handler.

  services.py          Explicit service handle wiring adapters to components.
  seed_demo_data.py    Demo / QA data for the local backend.
  cli.py               `training-portal` terminal surface (rich).

Employee flow
-------------
  RoleResolver → AssignmentTracker.assigned_courses()
  → VideoGate (optional, soft) → QuizSession.load/select/next/finish
  → Result (+ Assignment completed on pass) → QuizCompletionNotifier
"""
__version__ = "0.1.0"

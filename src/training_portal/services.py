"""
services.py — Explicit service handle
=====================================
One ``TrainingServices`` object owns the four backend adapters and builds
the workflow components from them.  Nothing in the package reaches for a
module-level client; callers (CLI, tests, HTTP functions) construct the
handle once and pass it down.

  build_services(settings)   live AWS adapters when ``settings.live_mode``,
                             otherwise SQLite + local identity + media dir
  local_services(...)        explicit local wiring (tests, demo seeding)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from training_portal.assignments import AssignmentTracker
from training_portal.catalog import CourseCatalog
from training_portal.config import Settings, get_settings
from training_portal.datastore import DataStore, DynamoDataStore, SqliteDataStore
from training_portal.identity import (
    CognitoIdentityProvider,
    IdentityProvider,
    LocalIdentityProvider,
)
from training_portal.models import DEFAULT_PASSING_SCORE, Course
from training_portal.notifications import LoggingTopic, QuizCompletionNotifier, SnsTopic, Topic
from training_portal.provisioning import EmployeeProvisioner
from training_portal.quiz_engine import QuizSession
from training_portal.roles import RoleResolver
from training_portal.storage import LocalObjectStore, ObjectStore, S3ObjectStore
from training_portal.video_gate import COMPLETION_RATIO, VideoGate, WatchProgress

logger = logging.getLogger(__name__)


@dataclass
class TrainingServices:
    store:         DataStore
    identity:      IdentityProvider
    object_store:  ObjectStore
    topic:         Topic
    default_passing_score:   int = DEFAULT_PASSING_SCORE
    video_completion_ratio:  float = COMPLETION_RATIO
    video_url_expiry:        int = 3600

    def role_resolver(self) -> RoleResolver:
        return RoleResolver(self.identity)

    def catalog(self) -> CourseCatalog:
        return CourseCatalog(self.store, self.object_store)

    def tracker(self) -> AssignmentTracker:
        return AssignmentTracker(self.store)

    def video_gate(self) -> VideoGate:
        return VideoGate(self.object_store, self.video_url_expiry)

    def watch_progress(self) -> WatchProgress:
        return WatchProgress(self.video_completion_ratio)

    def provisioner(self) -> EmployeeProvisioner:
        return EmployeeProvisioner(self.identity, self.store)

    def notifier(self) -> QuizCompletionNotifier:
        return QuizCompletionNotifier(self.topic)

    def quiz(self, course: Course, assignment_id: str, employee_id: str) -> QuizSession:
        if not employee_id:
            raise ValueError("employee_id is required for a quiz session")
        return QuizSession(
            course,
            assignment_id,
            self.store,
            notifier=self.notifier(),
            employee_id=employee_id,
            default_passing_score=self.default_passing_score,
        )

    def close(self) -> None:
        self.store.close()


def local_services(
    db_path: str = ":memory:",
    media_dir: str | Path = "media",
    identity: Optional[LocalIdentityProvider] = None,
) -> TrainingServices:
    return TrainingServices(
        store=SqliteDataStore(db_path),
        identity=identity or LocalIdentityProvider(),
        object_store=LocalObjectStore(media_dir),
        topic=LoggingTopic(),
    )


def build_services(settings: Optional[Settings] = None) -> TrainingServices:
    settings = settings or get_settings()
    quiz = settings.quiz

    if settings.live_mode:
        aws = settings.aws
        logger.info("Using live AWS backend in %s", aws.region)
        services = TrainingServices(
            store=DynamoDataStore(aws.region, aws.table_suffix),
            identity=CognitoIdentityProvider(aws.region, aws.user_pool_id, aws.client_id),
            object_store=S3ObjectStore(aws.bucket, aws.region),
            topic=SnsTopic(aws.topic_arn, aws.region),
        )
    else:
        logger.info("Using local backend at %s", settings.local.db_path)
        services = local_services(
            settings.local.db_path,
            settings.local.media_dir,
            identity=LocalIdentityProvider(settings.local.users_path),
        )

    services.default_passing_score = quiz.default_passing_score
    services.video_completion_ratio = quiz.video_completion_ratio
    services.video_url_expiry = quiz.video_url_expiry
    return services

"""
catalog.py — Course and quiz-question authoring (manager content)
=================================================================
Managers create courses (title, passing score, optional video) together
with their quiz questions, edit them, and delete them.  Employees only read.

Course creation order
---------------------
  1. Drop incomplete question drafts (blank text, blank option, answer out
     of range).  At least one complete question is required.
  2. Upload the video, if any, to ``courses/videos/<ts>_<filename>``.
  3. Create the Course row, then one QuizQuestion row per draft, in order.

Course deletion cascade
-----------------------
  QuizQuestions → Course → video object (best-effort; a storage failure is
  logged as a warning and does not fail the delete).  Assignments that
  reference the course are left in place; readers drop them as orphans.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from training_portal.datastore import DataStore
from training_portal.errors import WriteFailed
from training_portal.storage import ObjectStore, Payload, ProgressCallback, video_key_for
from training_portal.models import Course, QuizQuestion

logger = logging.getLogger(__name__)

MAX_QUESTIONS_PER_COURSE = 10
DEFAULT_AUTHORING_PASSING_SCORE = 80


@dataclass
class QuestionDraft:
    """One question as typed into the course form (not yet stored)."""
    question:        str
    options:         list[str] = field(default_factory=lambda: ["", "", "", ""])
    correct_answer:  int = 0

    @property
    def is_complete(self) -> bool:
        return (
            bool(self.question.strip())
            and len(self.options) >= 2
            and all(opt.strip() for opt in self.options)
            and 0 <= self.correct_answer < len(self.options)
        )


@dataclass
class VideoUpload:
    filename:  str
    data:      Payload


class CourseCatalog:
    def __init__(self, store: DataStore, object_store: ObjectStore):
        self.store = store
        self.object_store = object_store

    # ── Reads ────────────────────────────────────────────────────────────────

    def list_courses(self) -> list[Course]:
        return self.store.courses.list()

    def get_course(self, course_id: str) -> Optional[Course]:
        return self.store.courses.get(course_id)

    def list_questions(self, course_id: str) -> list[QuizQuestion]:
        return self.store.questions.list(course_id=course_id)

    def video_url(self, course: Course, expires_in: int = 3600) -> Optional[str]:
        """Preview URL for the admin list; None when the course has no video."""
        if not course.video_key:
            return None
        return self.object_store.get_url(course.video_key, expires_in)

    # ── Authoring ────────────────────────────────────────────────────────────

    def create_course(
        self,
        title: str,
        questions: list[QuestionDraft],
        passing_score: Optional[int] = DEFAULT_AUTHORING_PASSING_SCORE,
        video: Optional[VideoUpload] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> tuple[Course, list[QuizQuestion]]:
        if not title or not title.strip():
            raise ValueError("Please provide a course title")
        if len(questions) > MAX_QUESTIONS_PER_COURSE:
            raise ValueError(f"A course can have at most {MAX_QUESTIONS_PER_COURSE} questions")

        complete = [q for q in questions if q.is_complete]
        if not complete:
            raise ValueError("Please add at least one complete quiz question")
        if len(complete) < len(questions):
            logger.info("Dropped %d incomplete question draft(s)", len(questions) - len(complete))

        video_key = None
        if video is not None:
            video_key = video_key_for(video.filename)
            self.object_store.upload_data(video_key, video.data, on_progress)

        course = self.store.courses.create({
            "title": title.strip(),
            "video_key": video_key,
            "passing_score": passing_score,
        })
        logger.info("Created course %s (%r)", course.id, course.title)

        created = [self.add_question(course.id, q) for q in complete]
        return course, created

    def update_course(self, course_id: str, **fields) -> Course:
        if "title" in fields and not str(fields["title"]).strip():
            raise ValueError("Course title cannot be blank")
        return self.store.courses.update(course_id, fields)

    def replace_video(self, course: Course, video: VideoUpload,
                      on_progress: Optional[ProgressCallback] = None) -> Course:
        new_key = video_key_for(video.filename)
        self.object_store.upload_data(new_key, video.data, on_progress)
        updated = self.store.courses.update(course.id, {"video_key": new_key})
        if course.video_key:
            self._remove_video(course.video_key)
        return updated

    def add_question(self, course_id: str, draft: QuestionDraft) -> QuizQuestion:
        return self.store.questions.create({
            "course_id": course_id,
            "question": draft.question.strip(),
            "options": [o.strip() for o in draft.options],
            "correct_answer": draft.correct_answer,
        })

    def update_question(self, question_id: str, draft: QuestionDraft) -> QuizQuestion:
        if not draft.is_complete:
            raise ValueError("Question, all options and a valid correct answer are required")
        return self.store.questions.update(question_id, {
            "question": draft.question.strip(),
            "options": [o.strip() for o in draft.options],
            "correct_answer": draft.correct_answer,
        })

    def delete_question(self, question_id: str) -> None:
        self.store.questions.delete(question_id)

    # ── Deletion ────────────────────────────────────────────────────────────

    def delete_course(self, course_id: str) -> None:
        course = self.store.courses.get(course_id)
        if course is None:
            raise WriteFailed(f"Course {course_id} does not exist")

        for question in self.store.questions.list(course_id=course_id):
            self.store.questions.delete(question.id)
        self.store.courses.delete(course_id)
        logger.info("Deleted course %s and its questions", course_id)

        if course.video_key:
            self._remove_video(course.video_key)

    def _remove_video(self, key: str) -> None:
        try:
            self.object_store.remove(key)
        except Exception as exc:
            logger.warning("Failed to delete video %s from storage: %s", key, exc)

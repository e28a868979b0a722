"""
Tests for course authoring: create with questions and video, edits,
and the delete cascade (questions → course → video).
"""
from unittest.mock import MagicMock

import pytest

from factories import make_drafts
from training_portal.catalog import (
    MAX_QUESTIONS_PER_COURSE,
    CourseCatalog,
    QuestionDraft,
    VideoUpload,
)
from training_portal.errors import WriteFailed
from training_portal.storage import VIDEO_PREFIX


@pytest.fixture
def catalog(services):
    return services.catalog()


class TestQuestionDraft:
    def test_default_draft_is_incomplete(self):
        assert not QuestionDraft("Q?").is_complete

    def test_complete_draft(self):
        assert QuestionDraft("Q?", ["A", "B"], 1).is_complete

    def test_blank_option_incomplete(self):
        assert not QuestionDraft("Q?", ["A", " "], 0).is_complete

    def test_answer_out_of_range_incomplete(self):
        assert not QuestionDraft("Q?", ["A", "B"], 2).is_complete


class TestCreateCourse:
    def test_creates_course_and_questions_in_order(self, catalog, store):
        course, questions = catalog.create_course("Safety", make_drafts(3), passing_score=85)
        assert course.passing_score == 85
        assert [q.question for q in questions] == ["Question 1?", "Question 2?", "Question 3?"]
        assert [q.question for q in store.questions.list(course_id=course.id)] == [
            "Question 1?", "Question 2?", "Question 3?"]

    def test_passing_score_round_trips(self, catalog):
        course, _ = catalog.create_course("Emergency", make_drafts(1), passing_score=85)
        assert catalog.get_course(course.id).passing_score == 85

    def test_default_authoring_passing_score_is_80(self, catalog):
        course, _ = catalog.create_course("Safety", make_drafts(1))
        assert course.passing_score == 80

    def test_title_is_trimmed(self, catalog):
        course, _ = catalog.create_course("  Safety  ", make_drafts(1))
        assert course.title == "Safety"

    def test_blank_title_rejected(self, catalog, store):
        with pytest.raises(ValueError):
            catalog.create_course("  ", make_drafts(1))
        assert store.courses.list() == []

    def test_incomplete_drafts_dropped(self, catalog):
        drafts = make_drafts(2) + [QuestionDraft("")]
        _, questions = catalog.create_course("Safety", drafts)
        assert len(questions) == 2

    def test_no_complete_questions_rejected(self, catalog, store):
        with pytest.raises(ValueError):
            catalog.create_course("Safety", [QuestionDraft("")])
        assert store.courses.list() == []

    def test_too_many_questions_rejected(self, catalog):
        with pytest.raises(ValueError):
            catalog.create_course("Safety", make_drafts(MAX_QUESTIONS_PER_COURSE + 1))

    def test_video_uploaded_with_progress(self, catalog):
        progress = []
        course, _ = catalog.create_course(
            "Safety", make_drafts(1),
            video=VideoUpload("intro.mp4", b"x" * 100),
            on_progress=lambda sent, total: progress.append((sent, total)),
        )
        assert course.video_key.startswith(VIDEO_PREFIX)
        assert course.video_key.endswith("_intro.mp4")
        assert progress[-1] == (100, 100)
        assert catalog.video_url(course).startswith("file://")

    def test_video_url_none_without_video(self, catalog):
        course, _ = catalog.create_course("Safety", make_drafts(1))
        assert catalog.video_url(course) is None


class TestEditCourse:
    def test_update_course(self, catalog):
        course, _ = catalog.create_course("Safety", make_drafts(1))
        updated = catalog.update_course(course.id, title="Safety 2", passing_score=75)
        assert updated.title == "Safety 2"
        assert updated.passing_score == 75

    def test_update_blank_title_rejected(self, catalog):
        course, _ = catalog.create_course("Safety", make_drafts(1))
        with pytest.raises(ValueError):
            catalog.update_course(course.id, title="")

    def test_question_edit_cycle(self, catalog):
        course, questions = catalog.create_course("Safety", make_drafts(2))
        catalog.update_question(questions[0].id, QuestionDraft("Edited?", ["Yes", "No"], 1))
        catalog.delete_question(questions[1].id)
        added = catalog.add_question(course.id, QuestionDraft("New?", ["A", "B", "C"], 2))
        listed = catalog.list_questions(course.id)
        assert [q.question for q in listed] == ["Edited?", "New?"]
        assert listed[0].correct_answer == 1
        assert added.course_id == course.id

    def test_update_question_incomplete_rejected(self, catalog):
        _, questions = catalog.create_course("Safety", make_drafts(1))
        with pytest.raises(ValueError):
            catalog.update_question(questions[0].id, QuestionDraft("", ["A", "B"], 0))

    def test_replace_video_removes_old_object(self, catalog, services):
        course, _ = catalog.create_course("Safety", make_drafts(1), video=VideoUpload("a.mp4", b"old"))
        old_key = course.video_key
        updated = catalog.replace_video(course, VideoUpload("b.mp4", b"new"))
        assert updated.video_key.endswith("_b.mp4")
        assert not (services.object_store.root / old_key).exists()


class TestDeleteCourse:
    def test_cascade_removes_questions_course_and_video(self, catalog, store, services):
        course, _ = catalog.create_course("Safety", make_drafts(3), video=VideoUpload("a.mp4", b"data"))
        path = services.object_store.root / course.video_key
        assert path.exists()

        catalog.delete_course(course.id)

        assert store.courses.get(course.id) is None
        assert store.questions.list(course_id=course.id) == []
        assert not path.exists()

    def test_video_removal_failure_does_not_fail_delete(self, store):
        object_store = MagicMock()
        object_store.remove.side_effect = RuntimeError("storage down")
        catalog = CourseCatalog(store, object_store)
        course = store.courses.create({"title": "Safety", "video_key": "courses/videos/1_a.mp4"})

        catalog.delete_course(course.id)

        assert store.courses.get(course.id) is None
        object_store.remove.assert_called_once_with("courses/videos/1_a.mp4")

    def test_delete_missing_course(self, catalog):
        with pytest.raises(WriteFailed):
            catalog.delete_course("nope")

    def test_assignments_survive_course_delete(self, catalog, store):
        course, _ = catalog.create_course("Safety", make_drafts(1))
        a = store.assignments.create({"employee_id": "e1", "course_id": course.id})
        catalog.delete_course(course.id)
        assert store.assignments.get(a.id) is not None

"""
quiz_engine.py — Quiz Engine
============================
Loads a course's questions, walks the employee through them one at a time,
scores the submission, writes a Result and, on a pass, completes the
Assignment.

---------------------------------------------------------------------------
States
---------------------------------------------------------------------------
  IDLE ──load()──▶ LOADING ──▶ IN_PROGRESS ──next() on last──▶ REVIEWING
                      │              ▲                             │
                      ▼              └──────────retake()───────────┘
                    ERROR ──load()──▶ LOADING
  close() from any state returns to IDLE and discards in-progress answers.

  Zero questions is a hard stop: LOADING → ERROR with ``NoQuestions``.

---------------------------------------------------------------------------
Navigation
---------------------------------------------------------------------------
  select(i)   overwrite the current question's answer (re-answering allowed)
  previous()  no-op on the first question
  next()      refused while the current answer is UNANSWERED;
              on the last question it finishes the quiz

---------------------------------------------------------------------------
Scoring
---------------------------------------------------------------------------
  score   = percentage(correct, total), 100 × correct / total rounded half up
            7/10 → 70, 2/3 → 67
  passing = course.passingScore, or 70 when unset
  passed  = score ≥ passing                           70 vs 70 is a pass

---------------------------------------------------------------------------
Persistence (two independent writes, no rollback)
---------------------------------------------------------------------------
  1. create Result {assignmentId, score, passed}     failure → WriteFailed
  2. if passed: Assignment.status = completed        failure → PartialCompletionFailure
  The outcome is kept on the session either way, so the results view can
  still be shown.  A pass also notifies managers; notification failures are
  logged and never surface to the employee.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from training_portal.datastore import DataStore
from training_portal.errors import (
    FetchFailed,
    NoQuestions,
    PartialCompletionFailure,
    TrainingPortalError,
    WriteFailed,
)
from training_portal.models import DEFAULT_PASSING_SCORE, AssignmentStatus, Course, QuizQuestion, Result
from training_portal.notifications import QuizCompletionEvent, QuizCompletionNotifier

logger = logging.getLogger(__name__)

UNANSWERED = -1


class QuizState(str, Enum):
    IDLE        = "idle"
    LOADING     = "loading"
    IN_PROGRESS = "in_progress"
    REVIEWING   = "reviewing"     # results shown; submission already written
    ERROR       = "error"


_TRANSITIONS: dict[QuizState, set[QuizState]] = {
    QuizState.IDLE:        {QuizState.LOADING},
    QuizState.LOADING:     {QuizState.IN_PROGRESS, QuizState.ERROR},
    QuizState.IN_PROGRESS: {QuizState.REVIEWING},
    QuizState.REVIEWING:   {QuizState.IN_PROGRESS},
    QuizState.ERROR:       {QuizState.LOADING},
}


class InvalidTransition(TrainingPortalError):
    pass


# ─── Scoring ─────────────────────────────────────────────────────────────────

def percentage(correct: int, total: int) -> int:
    """
    ``round(100 * correct / total)`` with halves rounded up, in exact
    integer arithmetic (no float or banker's rounding surprises).
    """
    if total <= 0:
        raise ValueError("total must be positive")
    if not 0 <= correct <= total:
        raise ValueError(f"correct={correct} outside [0, {total}]")
    return (200 * correct + total) // (2 * total)


def score_answers(questions: list[QuizQuestion], answers: list[int]) -> tuple[int, int]:
    """Return ``(correct_count, score)``.  Unanswered slots count as wrong."""
    if len(answers) != len(questions):
        raise ValueError(f"Expected {len(questions)} answers, got {len(answers)}")
    correct = sum(1 for q, a in zip(questions, answers) if a == q.correct_answer)
    return correct, percentage(correct, len(questions))


@dataclass
class QuestionFeedback:
    question_id:     str
    correct:         bool
    chosen_index:    int
    correct_index:   int


@dataclass
class QuizOutcome:
    score:          int
    passed:         bool
    correct_count:  int
    total_count:    int
    passing_score:  int
    result_id:      Optional[str] = None      # None when the Result write failed
    feedback:       list[QuestionFeedback] = field(default_factory=list)

    @property
    def saved(self) -> bool:
        return self.result_id is not None


# ─── Session ────────────────────────────────────────────────────────────────

class QuizSession:
    """
    One employee taking one course's quiz against one assignment.

    Usage::

        quiz = QuizSession(course, assignment_id, store, notifier, employee_id=employee.id)
        quiz.load()
        quiz.select(2); quiz.next()
        ...
        outcome = quiz.next()      # on the last question
        if not outcome.passed:
            quiz.retake()
    """

    def __init__(
        self,
        course: Course,
        assignment_id: str,
        store: DataStore,
        notifier: Optional[QuizCompletionNotifier] = None,
        employee_id: Optional[str] = None,
        default_passing_score: int = DEFAULT_PASSING_SCORE,
    ):
        if notifier is not None and not employee_id:
            raise ValueError("employee_id is required when completions are notified")
        self.course = course
        self.assignment_id = assignment_id
        self.store = store
        self.notifier = notifier
        self.employee_id = employee_id
        self.default_passing_score = default_passing_score

        self.state = QuizState.IDLE
        self.questions: list[QuizQuestion] = []
        self.answers: list[int] = []
        self.index = 0
        self.outcome: Optional[QuizOutcome] = None
        self.error: Optional[str] = None

    # ── State machine ───────────────────────────────────────────────────────

    def _transition(self, target: QuizState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise InvalidTransition(f"Cannot go from {self.state.value} to {target.value}")
        logger.debug("Quiz %s: %s → %s", self.course.id, self.state.value, target.value)
        self.state = target

    def _require(self, state: QuizState) -> None:
        if self.state != state:
            raise InvalidTransition(f"Quiz is {self.state.value}, expected {state.value}")

    @property
    def passing_score(self) -> int:
        if self.course.passing_score is None:
            return self.default_passing_score
        return self.course.passing_score

    # ── Load ────────────────────────────────────────────────────────────────

    def load(self) -> list[QuizQuestion]:
        self._transition(QuizState.LOADING)
        self.error = None
        try:
            questions = self.store.questions.list(course_id=self.course.id)
        except FetchFailed:
            self.error = "Failed to load quiz questions"
            logger.error("Error loading quiz for course %s", self.course.id)
            self._transition(QuizState.ERROR)
            raise

        if not questions:
            self.error = "No quiz questions available for this course"
            logger.warning("Course %s has no quiz questions", self.course.id)
            self._transition(QuizState.ERROR)
            raise NoQuestions(self.course.id)

        self.questions = questions
        self._reset_answers()
        self._transition(QuizState.IN_PROGRESS)
        return questions

    def _reset_answers(self) -> None:
        self.answers = [UNANSWERED] * len(self.questions)
        self.index = 0

    # ── Answering and navigation ────────────────────────────────────────────

    @property
    def current_question(self) -> QuizQuestion:
        self._require(QuizState.IN_PROGRESS)
        return self.questions[self.index]

    @property
    def current_answer(self) -> int:
        return self.answers[self.index] if self.answers else UNANSWERED

    @property
    def is_last_question(self) -> bool:
        return bool(self.questions) and self.index == len(self.questions) - 1

    @property
    def can_go_next(self) -> bool:
        return self.state == QuizState.IN_PROGRESS and self.current_answer != UNANSWERED

    @property
    def can_go_previous(self) -> bool:
        return self.state == QuizState.IN_PROGRESS and self.index > 0

    @property
    def answered_count(self) -> int:
        return sum(1 for a in self.answers if a != UNANSWERED)

    def select(self, option_index: int) -> None:
        question = self.current_question
        if not 0 <= option_index < len(question.options):
            raise ValueError(
                f"Option {option_index} out of range for {len(question.options)} options"
            )
        self.answers[self.index] = option_index

    def previous(self) -> None:
        if self.can_go_previous:
            self.index -= 1

    def next(self) -> Optional[QuizOutcome]:
        """Advance; on the last question this finishes and returns the outcome."""
        self._require(QuizState.IN_PROGRESS)
        if not self.can_go_next:
            raise InvalidTransition("Answer the current question before continuing")
        if self.is_last_question:
            return self.finish()
        self.index += 1
        return None

    # ── Finish ──────────────────────────────────────────────────────────────

    def finish(self) -> QuizOutcome:
        self._require(QuizState.IN_PROGRESS)
        correct, score = score_answers(self.questions, self.answers)
        passing = self.passing_score
        outcome = QuizOutcome(
            score=score,
            passed=score >= passing,
            correct_count=correct,
            total_count=len(self.questions),
            passing_score=passing,
            feedback=[
                QuestionFeedback(q.id, a == q.correct_answer, a, q.correct_answer)
                for q, a in zip(self.questions, self.answers)
            ],
        )
        self.outcome = outcome
        self._transition(QuizState.REVIEWING)
        logger.info(
            "Quiz finished: course=%s assignment=%s score=%d passed=%s",
            self.course.id, self.assignment_id, score, outcome.passed,
        )
        self._persist(outcome)
        return outcome

    def _persist(self, outcome: QuizOutcome) -> None:
        try:
            result: Result = self.store.results.create({
                "assignment_id": self.assignment_id,
                "score": outcome.score,
                "passed": outcome.passed,
            })
        except WriteFailed:
            logger.error("Error saving quiz result for assignment %s", self.assignment_id)
            raise
        outcome.result_id = result.id

        update_error: Optional[WriteFailed] = None
        if outcome.passed:
            try:
                self.store.assignments.update(
                    self.assignment_id, {"status": AssignmentStatus.COMPLETED}
                )
            except WriteFailed as exc:
                update_error = exc
            self._notify(outcome)

        if update_error is not None:
            logger.warning(
                "Reconciliation needed: result %s passed but assignment %s is not completed (%s)",
                result.id, self.assignment_id, update_error,
            )
            raise PartialCompletionFailure(self.assignment_id, result, update_error)

    def _notify(self, outcome: QuizOutcome) -> None:
        if self.notifier is None:
            return
        event = QuizCompletionEvent(
            employee_id=self.employee_id,
            course_id=self.course.id,
            score=outcome.score,
            passed=outcome.passed,
        )
        try:
            self.notifier.handle(event)
        except Exception as exc:
            logger.warning("Completion notification failed for %s: %s", self.assignment_id, exc)

    # ── Retake / close ──────────────────────────────────────────────────────

    def retake(self) -> None:
        self._require(QuizState.REVIEWING)
        if self.outcome is not None and self.outcome.passed:
            raise InvalidTransition("A passed quiz cannot be retaken")
        self._reset_answers()
        self.outcome = None
        self._transition(QuizState.IN_PROGRESS)

    def close(self) -> None:
        """Leave the quiz.  Unsubmitted answers are discarded, nothing is written."""
        if self.state == QuizState.IN_PROGRESS and self.answered_count:
            logger.debug("Discarding %d unsubmitted answer(s)", self.answered_count)
        self.answers = []
        self.index = 0
        self.state = QuizState.IDLE

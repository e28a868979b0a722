"""
cli.py — ``training-portal`` terminal surface
=============================================

  training-portal status                        backend mode per service
  training-portal seed                          load QA users, courses, assignments
  training-portal whoami   -u EMAIL -p PASS     resolved role
  training-portal courses  -u EMAIL -p PASS     assigned courses + status
  training-portal quiz ID  -u EMAIL -p PASS     take the quiz for one course
  training-portal overview -u EMAIL -p PASS     manager: employees × assignments
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from training_portal.config import get_settings
from training_portal.errors import (
    AuthFailure,
    PartialCompletionFailure,
    TrainingPortalError,
    WriteFailed,
)
from training_portal.models import Role
from training_portal.quiz_engine import QuizOutcome, QuizSession, QuizState
from training_portal.roles import require_role
from training_portal.seed_demo_data import seed
from training_portal.services import TrainingServices, build_services
from training_portal.video_gate import PlaybackStatus

console = Console()
logger = logging.getLogger("training_portal")

_STATUS_STYLE = {
    "assigned":  "[yellow]assigned[/yellow]",
    "completed": "[green]completed ✓[/green]",
}


def _sign_in(services: TrainingServices, args) -> Role:
    services.identity.sign_in(args.username, args.password)
    return services.role_resolver().resolve(force_refresh=True)


# ─── Commands ────────────────────────────────────────────────────────────────

def cmd_status(services: TrainingServices, args) -> int:
    table = Table(title="Backend", box=box.SIMPLE)
    table.add_column("Service")
    table.add_column("Mode")
    for name, badge in get_settings().status_summary().items():
        table.add_row(name, badge)
    console.print(table)
    return 0


def cmd_seed(services: TrainingServices, args) -> int:
    summary = seed(services)
    console.print(
        f"[bold green]✓ Seeded[/bold green] {len(summary.users_created)} users, "
        f"{len(summary.courses_created)} courses, {summary.assignments_created} assignments"
    )
    return 0


def cmd_whoami(services: TrainingServices, args) -> int:
    role = _sign_in(services, args)
    console.print(f"{args.username}: [bold]{role.value}[/bold]")
    return 0 if role != Role.NONE else 1


def cmd_courses(services: TrainingServices, args) -> int:
    require_role(_sign_in(services, args), Role.EMPLOYEE)
    user = services.identity.get_current_user()
    courses = services.tracker().assigned_courses(user.subject_id)

    if not courses:
        console.print("[dim]No courses assigned yet.[/dim]")
        return 0

    table = Table(title="My Training", box=box.ROUNDED)
    table.add_column("Course ID", style="dim")
    table.add_column("Title")
    table.add_column("Pass mark", justify="right")
    table.add_column("Status")
    for item in courses:
        table.add_row(
            item.course.id,
            item.course.title,
            f"{item.course.effective_passing_score}%",
            _STATUS_STYLE.get(item.status.value, item.status.value),
        )
    console.print(table)
    return 0


def cmd_overview(services: TrainingServices, args) -> int:
    require_role(_sign_in(services, args), Role.MANAGER)
    table = Table(title="Employees", box=box.ROUNDED)
    table.add_column("Name")
    table.add_column("Email")
    table.add_column("Department")
    table.add_column("Progress", justify="right")
    table.add_column("Courses")
    for row in services.tracker().overview():
        titles = ", ".join(
            f"{row.titles[a.id]}{' ✓' if a.is_completed else ''}" for a in row.assignments
        )
        table.add_row(
            row.employee.name,
            row.employee.email,
            row.employee.department or "—",
            f"{row.completed_count}/{row.total_count}",
            titles or "[dim]none[/dim]",
        )
    console.print(table)
    return 0


def cmd_quiz(services: TrainingServices, args) -> int:
    require_role(_sign_in(services, args), Role.EMPLOYEE)
    user = services.identity.get_current_user()
    tracker = services.tracker()
    employee = tracker.employee_for_subject(user.subject_id)

    match = next((c for c in tracker.assigned_courses(user.subject_id) if c.course.id == args.course_id), None)
    if match is None:
        console.print(f"[red]Course {args.course_id} is not assigned to you.[/red]")
        return 1

    playback = services.video_gate().playback_for(match.course)
    if playback.status == PlaybackStatus.READY:
        console.print(Panel(playback.url, title="Training video", expand=False))
    elif playback.status == PlaybackStatus.FAILED:
        console.print(f"[yellow]{playback.error}[/yellow]")
    else:
        console.print("[dim]No video for this course.[/dim]")

    quiz = services.quiz(match.course, match.assignment_id, employee_id=employee.id)
    quiz.load()
    while True:
        outcome = _run_questions(quiz)
        if outcome is None:
            quiz.close()
            console.print("[dim]Quiz closed; answers discarded.[/dim]")
            return 0
        _show_outcome(quiz, outcome)
        if outcome.passed or not Confirm.ask("Retake quiz?", default=True):
            quiz.close()
            return 0
        quiz.retake()


def _run_questions(quiz: QuizSession) -> Optional[QuizOutcome]:
    while quiz.state == QuizState.IN_PROGRESS:
        q = quiz.current_question
        console.print()
        console.print(f"[bold cyan]Question {quiz.index + 1} of {len(quiz.questions)}[/bold cyan]")
        console.print(q.question)
        for i, option in enumerate(q.options, start=1):
            marker = "●" if quiz.current_answer == i - 1 else "○"
            console.print(f"  {marker} {i}. {option}")

        choices = [str(i) for i in range(1, len(q.options) + 1)] + ["q"]
        if quiz.can_go_previous:
            choices.append("p")
        if quiz.can_go_next:
            choices.append("n")
        answer = Prompt.ask("Answer, [p]revious, [n]ext or [q]uit", choices=choices, show_choices=False)

        if answer == "q":
            return None
        if answer == "p":
            quiz.previous()
            continue
        if answer != "n":
            quiz.select(int(answer) - 1)
        try:
            outcome = quiz.next()
        except PartialCompletionFailure as exc:
            console.print(f"[yellow]{exc}[/yellow]")
            return quiz.outcome
        except WriteFailed as exc:
            console.print(f"[red]Failed to save your result: {exc}[/red]")
            return quiz.outcome
        if outcome is not None:
            return outcome
    return quiz.outcome


def _show_outcome(quiz: QuizSession, outcome: QuizOutcome) -> None:
    if outcome.passed:
        headline = "[bold green]🎉 Congratulations![/bold green]"
        detail = f"You passed with {outcome.score}%! (Required: {outcome.passing_score}%)"
    else:
        headline = "[bold yellow]📚 Keep Learning![/bold yellow]"
        detail = f"You scored {outcome.score}%. You need {outcome.passing_score}% to pass."
    console.print(Panel(
        f"{headline}\n{detail}\n\n"
        f"Correct Answers: {outcome.correct_count} / {outcome.total_count}\n"
        f"Status: {'PASSED ✅' if outcome.passed else 'FAILED ❌'}",
        title=f"Quiz Results — {quiz.course.title}",
        expand=False,
    ))


# ─── Entry point ─────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="training-portal", description="Corporate training portal")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="show backend mode").set_defaults(func=cmd_status)
    sub.add_parser("seed", help="load demo data").set_defaults(func=cmd_seed)

    def with_login(name: str, func, help_text: str) -> argparse.ArgumentParser:
        p = sub.add_parser(name, help=help_text)
        p.add_argument("-u", "--username", required=True)
        p.add_argument("-p", "--password", required=True)
        p.set_defaults(func=func)
        return p

    with_login("whoami", cmd_whoami, "show resolved role")
    with_login("courses", cmd_courses, "list assigned courses")
    with_login("overview", cmd_overview, "manager employee overview")
    with_login("quiz", cmd_quiz, "take a course quiz").add_argument("course_id")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.app.log_level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    services = build_services(settings)
    try:
        return args.func(services, args)
    except AuthFailure as exc:
        console.print(f"[red]Access denied:[/red] {exc}")
        return 2
    except TrainingPortalError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        return 1
    finally:
        services.close()


if __name__ == "__main__":
    sys.exit(main())

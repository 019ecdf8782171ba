import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from assignment_studio.core.llm_service import client_from_config
from assignment_studio.core.models import (
    Assignment,
    AssignmentKind,
    CaseStudyAssignment,
    EssayAssignment,
    EvaluationResult,
    MixedTestAssignment,
    MultipleChoiceAssignment,
    PresentationAssignment,
    ProjectAssignment,
    Rubric,
)
from assignment_studio.core.session import InteractionSession

app = typer.Typer(help="Generate assignments and grade submissions with an LLM.")
console = Console()

TEXT_END_MARKER = "."


def format_decimal(value: float) -> str:
    rounded = round(value, 2)
    formatted = f"{rounded:.2f}".rstrip("0").rstrip(".")

    return formatted


def print_panel(message: str, title: str = "Info", style: str = "blue") -> None:
    console.print(
        Panel(
            message,
            title=f"[{style}]{title}[/{style}]",
            title_align="left",
            border_style=style,
        )
    )


def print_error(message: str) -> None:
    print_panel(escape(message), "Error", "red")


class RichConsoleHandler(logging.Handler):
    def __init__(self, console: Optional[Console] = None):
        super().__init__()
        self.console = console or Console()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            self.console.print(message, markup=False, highlight=False)
        except Exception:
            self.handleError(record)


def configure_cli_logging(verbose: bool) -> None:
    handler = RichConsoleHandler(console)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.INFO if verbose else logging.WARNING)


# ============================================================================
# Rendering
# ============================================================================

def _numbered(items) -> str:
    return "\n".join(f"{i}. {escape(item)}" for i, item in enumerate(items, 1))


def print_rubric(rubric: Rubric) -> None:
    table = Table(show_lines=True)
    table.add_column("Criteria", style="bold", overflow="fold")
    for label in ("Exemplary", "Proficient", "Developing", "Beginning"):
        table.add_column(label, overflow="fold")

    for category in rubric.categories:
        row = [f"{escape(category.name)}\n[bold italic dark_green]{category.points} points[/bold italic dark_green]"]
        for _, level in category.levels.as_list():
            row.append(f"{escape(level.description)}\n[italic]{level.points} pts[/italic]")
        table.add_row(*row)

    console.print(Panel(
        table,
        title=f"Rubric ({rubric.total_points} points)",
        title_align="left",
        border_style="blue",
    ))


def _render_choice_questions(questions) -> str:
    blocks = []
    for q in questions:
        kind = escape(f"[{q.type}] ") if getattr(q, "type", None) else ""
        lines = [f"[bold]{q.number}.[/bold] {kind}{escape(q.question)} ({q.points} pts)"]
        for letter, text in (q.options or {}).items():
            lines.append(f"    {letter}. {escape(text)}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def _body_case_study(assignment: CaseStudyAssignment) -> str:
    return f"[bold]Scenario[/bold]\n{escape(assignment.scenario)}\n\n[bold]Tasks[/bold]\n{_numbered(assignment.tasks)}"


def _body_multiple_choice(assignment: MultipleChoiceAssignment) -> str:
    return f"[bold]Instructions[/bold]\n{escape(assignment.instructions)}\n\n{_render_choice_questions(assignment.questions)}"


def _body_essay(assignment: EssayAssignment) -> str:
    return f"[bold]Prompt[/bold]\n{escape(assignment.prompt)}\n\n[bold]Requirements[/bold]\n{_numbered(assignment.requirements)}"


def _body_test(assignment: MixedTestAssignment) -> str:
    return f"[bold]Instructions[/bold]\n{escape(assignment.instructions)}\n\n{_render_choice_questions(assignment.questions)}"


def _body_presentation(assignment: PresentationAssignment) -> str:
    return f"[bold]Topic[/bold]\n{escape(assignment.topic)}\n\n[bold]Requirements[/bold]\n{_numbered(assignment.requirements)}"


def _body_project(assignment: ProjectAssignment) -> str:
    return f"[bold]Description[/bold]\n{escape(assignment.description)}\n\n[bold]Requirements[/bold]\n{_numbered(assignment.requirements)}"


ASSIGNMENT_BODIES: Dict[AssignmentKind, Callable[[Any], str]] = {
    AssignmentKind.CASE_STUDY: _body_case_study,
    AssignmentKind.MULTIPLE_CHOICE: _body_multiple_choice,
    AssignmentKind.ESSAY: _body_essay,
    AssignmentKind.TEST: _body_test,
    AssignmentKind.PRESENTATION: _body_presentation,
    AssignmentKind.PROJECT: _body_project,
}


def print_assignment(assignment: Assignment) -> None:
    body = ASSIGNMENT_BODIES[AssignmentKind(assignment.type)](assignment)
    if assignment.objectives:
        body = f"[bold]Objectives[/bold]\n{_numbered(assignment.objectives)}\n\n{body}"
    console.print(Panel(body, title=escape(f"{assignment.title} ({assignment.type})"), title_align="left", border_style="blue"))
    print_rubric(assignment.rubric)


def print_result(result: EvaluationResult) -> None:
    summary = (
        f"[bold]{format_decimal(result.total_score)} / {format_decimal(result.max_score)} points "
        f"({result.percentage}%)[/bold]\n\n{escape(result.feedback)}"
    )
    if result.detailed_feedback:
        summary += f"\n\n{escape(result.detailed_feedback)}"
    console.print(Panel(summary, title="Results", title_align="left", border_style="green"))

    table = Table(show_lines=True)
    table.add_column("Category", style="bold", overflow="fold")
    table.add_column("Score", justify="right")
    table.add_column("Feedback", overflow="fold")
    for item in result.rubric_scores:
        table.add_row(
            escape(item.category),
            f"{format_decimal(item.score)} / {format_decimal(item.max_score)}",
            escape(item.feedback),
        )
    console.print(table)


# ============================================================================
# Collecting submissions
# ============================================================================

def _ask_non_empty(label: str) -> str:
    while True:
        answer = Prompt.ask(label, console=console).strip()
        if answer:
            return answer
        console.print("[red]An answer is required.[/red]")


def _ask_text(label: str) -> str:
    console.print(f"{label} (finish with a line containing only '{TEXT_END_MARKER}')")
    while True:
        lines = []
        while True:
            line = console.input()
            if line.strip() == TEXT_END_MARKER:
                break
            lines.append(line)
        text = "\n".join(lines).strip()
        if text:
            return text
        console.print("[red]Please provide your submission before submitting.[/red]")


def _ask_choice(question) -> str:
    return Prompt.ask(f"Answer to {question.number}", choices=list(question.options), console=console)


def collect_submission(assignment: Assignment) -> Dict[str, Any]:
    """Prompt for a complete submission matching the assignment type"""
    kind = AssignmentKind(assignment.type)
    if kind in (AssignmentKind.MULTIPLE_CHOICE, AssignmentKind.TEST):
        answers = {}
        for question in assignment.questions:
            if question.options and getattr(question, "type", "multiple-choice") == "multiple-choice":
                answers[str(question.number)] = _ask_choice(question)
            else:
                answers[str(question.number)] = _ask_non_empty(f"Answer to {question.number}")
        return {"type": kind.value, "answers": answers}

    if kind is AssignmentKind.CASE_STUDY:
        responses = {}
        for index, task in enumerate(assignment.tasks, 1):
            console.print(f"[bold]Task {index}:[/bold] {escape(task)}")
            responses[str(index)] = _ask_text(f"Response to task {index}")
        return {"type": kind.value, "responses": responses}

    return {"type": kind.value, "text": _ask_text(f"Your {kind.value}")}


# ============================================================================
# Commands
# ============================================================================

def _generate(session: InteractionSession, topic: str, kind: str, save: Optional[Path]) -> bool:
    with console.status("Generating assignment..."):
        assignment = asyncio.run(session.generate(topic, kind))
    if assignment is None:
        print_error(session.error or "Assignment generation failed.")
        return False
    if save:
        save.write_text(
            json.dumps(assignment.model_dump(by_alias=True, exclude_none=True, mode="json"), indent=2),
            encoding="utf-8",
        )
        console.print(f"Saved assignment to {save}")
    return True


def _work_on_assignment(session: InteractionSession) -> str:
    """Loop over display/submit/results; returns 'new' or 'quit'"""
    while True:
        print_assignment(session.assignment)
        action = Prompt.ask("(s)ubmit, (n)ew assignment, (q)uit", choices=["s", "n", "q"], default="s", console=console)
        if action == "n":
            return "new"
        if action == "q":
            return "quit"

        session.begin_submission()
        submission = collect_submission(session.assignment)
        with console.status("Evaluating submission..."):
            result = asyncio.run(session.submit(submission))
        if result is None:
            print_error(session.error or "Evaluation failed.")
            session.cancel_submission()
            continue

        print_result(result)
        action = Prompt.ask("(b)ack to assignment, (n)ew assignment, (q)uit", choices=["b", "n", "q"], default="b", console=console)
        if action == "n":
            return "new"
        if action == "q":
            return "quit"
        session.back()


@app.command()
def generate(
    topic: str = typer.Argument(..., help="Topic or search query for the assignment"),
    kind: str = typer.Option(AssignmentKind.CASE_STUDY.value, "--kind", "-k", help="Assignment type"),
    save: Optional[Path] = typer.Option(None, "--save", help="Write the generated assignment JSON to this file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show progress logs"),
):
    """Generate an assignment, answer it, and get it graded"""
    configure_cli_logging(verbose)
    session = InteractionSession(client_from_config())

    if not _generate(session, topic, kind, save):
        raise typer.Exit(1)

    while _work_on_assignment(session) == "new":
        session.start_new()
        # A failed generation leaves the session idle; ask again
        while True:
            topic = _ask_non_empty("Topic")
            kind = Prompt.ask("Assignment type", choices=AssignmentKind.values(), default=kind, console=console)
            if _generate(session, topic, kind, save):
                break


@app.command()
def kinds():
    """List the available assignment types"""
    table = Table(show_header=False)
    for kind in AssignmentKind:
        table.add_row(kind.value)
    console.print(Panel(table, title="Assignment types", title_align="left", border_style="blue"))


if __name__ == "__main__":
    app()

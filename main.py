#!/usr/bin/env python3
"""
main.py — VerifiedVA console client.

    python main.py list                    assessments and their status
    python main.py take <skill_id>         take a timed skill assessment
    python main.py stats                   local history of finished assessments
    python main.py slots <va_id> <date>    free interview slots (YYYY-MM-DD)
    python main.py jobs [search]           open job posts
    python main.py apply <job_id> [rate]   apply to a job
"""
import asyncio
import logging
import sys
from datetime import date

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config.settings import settings, setup_logging, ensure_dirs
from backend.client import BackendClient, BackendError
from assessment import (
    AssessmentGateway, AssessmentRunner, Phase, ResultHistory, format_time,
    list_assessments,
)
from marketplace import (
    Notifier, SessionStore, InterviewScheduler, Session, JobBoard, JobError, format_budget,
)

logger = logging.getLogger(__name__)
console = Console()

USAGE = __doc__


class App:
    def __init__(self):
        self.client = BackendClient(
            settings.backend_url, settings.backend_anon_key, settings.request_timeout
        )
        self.notifier = Notifier(settings.email_api_url)
        self.sessions = SessionStore(self.client)
        self.history = ResultHistory(settings.data_dir / "history.db")
        self.gateway = AssessmentGateway(self.client)
        self.jobs = JobBoard(self.client, self.notifier)


# ─────────────────────────────────────────────────────────────────────── #
# Commands
# ─────────────────────────────────────────────────────────────────────── #
async def cmd_list(app: App, session: Session, args: list[str]):
    listing = await list_assessments(app.gateway, session)
    if not listing:
        console.print("[yellow]No assessments available.[/yellow]")
        return
    table = Table(title="Skill Assessments")
    table.add_column("Skill ID", style="dim")
    table.add_column("Skill", style="cyan")
    table.add_column("Questions", justify="right")
    table.add_column("Time", justify="right")
    table.add_column("Pass", justify="right")
    table.add_column("Status")
    for item in listing:
        cfg, status = item.config, item.status
        if status.verified:
            label = f"[green]Verified ({status.score}%)[/green]"
        elif not status.can_take and status.next_available:
            label = f"[yellow]Retry after {status.next_available:%Y-%m-%d %H:%M}[/yellow]"
        else:
            label = "Available"
        table.add_row(
            cfg.skill_id, cfg.skill_name, str(cfg.questions_per_test),
            f"{cfg.time_limit_minutes} min", f"{cfg.passing_score}%", label,
        )
    console.print(table)


def show_question(runner: AssessmentRunner):
    attempt = runner.attempt
    question = attempt.current_question
    remaining = runner.timer.remaining_time() if runner.timer else format_time(attempt.seconds_remaining)
    body = f"{question.prompt}\n\n"
    for i, option in enumerate(question.options, start=1):
        mark = "[green]●[/green]" if attempt.answers.get(question.question_id) == i - 1 else "○"
        body += f"  {mark} [cyan]{i}[/cyan]) {option}\n"
    console.print(Panel(
        body.rstrip(),
        title=f"Question {attempt.current_index + 1}/{len(attempt.questions)}",
        subtitle=f"⏰ {remaining}  ·  answered {attempt.answered_count}",
        border_style="blue",
    ))


async def run_quiz(runner: AssessmentRunner):
    help_line = "[dim]1-9 answer · n next · p prev · g <num> go to · s submit[/dim]"
    while runner.phase in (Phase.QUIZ, Phase.SUBMITTING):
        if runner.phase is Phase.SUBMITTING:
            await asyncio.sleep(0.2)
            continue
        if runner.error:
            console.print(f"[red]{runner.error}[/red]")
        show_question(runner)
        console.print(help_line)
        raw = (await asyncio.to_thread(input, "> ")).strip().lower()
        if runner.phase is not Phase.QUIZ:
            break
        if raw.isdigit():
            try:
                runner.select_answer(int(raw) - 1)
            except IndexError:
                console.print("[red]No such option.[/red]")
                continue
            if not runner.is_last_question:
                runner.go_next()
        elif raw == "n":
            runner.go_next()
        elif raw == "p":
            runner.go_prev()
        elif raw.startswith("g ") and raw[2:].strip().isdigit():
            runner.go_to_question(int(raw[2:].strip()) - 1)
        elif raw == "s":
            await runner.submit()


async def cmd_take(app: App, session: Session, args: list[str]):
    if not args:
        console.print(USAGE)
        return
    runner = AssessmentRunner(
        app.gateway, session, args[0], notifier=app.notifier, history=app.history
    )
    await runner.load()
    if runner.error or runner.config is None:
        console.print(f"[red]{runner.error}[/red]")
        return
    cfg = runner.config
    console.print(Panel(
        f"[bold]{cfg.skill_name}[/bold]\n"
        f"{cfg.questions_per_test} questions · {cfg.time_limit_minutes} minutes · "
        f"pass at {cfg.passing_score}%",
        title="Skill Assessment", border_style="blue",
    ))
    if (await asyncio.to_thread(input, "Start now? [y/N] ")).strip().lower() != "y":
        return
    await runner.start()
    if runner.phase is not Phase.QUIZ:
        console.print(f"[red]{runner.error}[/red]")
        return
    try:
        await run_quiz(runner)
    finally:
        runner.close()

    results = runner.results
    if results is None:
        console.print("[yellow]Assessment not submitted.[/yellow]")
        return
    color = "green" if results.passed else "red"
    console.print(Panel(
        f"Score: [bold]{results.score}%[/bold]\n"
        f"Correct: {results.correct_count}/{results.total_questions}\n"
        f"[{color}]{'Passed, verified badge added' if results.passed else 'Not passed'}[/{color}]",
        title="Results", border_style=color,
    ))


async def cmd_stats(app: App, session: Session, args: list[str]):
    stats = await app.history.get_user_stats(session.user_id)
    if stats["total_tests"] == 0:
        console.print("No finished assessments yet.")
        return
    console.print(
        f"Assessments: [bold]{stats['total_tests']}[/bold]  |  "
        f"Passed: [bold]{stats['passed_count']}[/bold]  |  "
        f"Average: [bold]{stats['avg_score']}%[/bold]  |  "
        f"Best: [bold]{stats['best_score']}%[/bold]"
    )
    for r in stats["recent_tests"]:
        mark = "[green]✓[/green]" if r["passed"] else "[red]✗[/red]"
        console.print(f"  {mark} {r['skill_name']}: {r['score']}% ({r['created_at'][:16]})")


async def cmd_slots(app: App, session: Session, args: list[str]):
    if len(args) < 2:
        console.print(USAGE)
        return
    scheduler = InterviewScheduler(app.client, app.notifier)
    slots = await scheduler.available_slots(args[0], date.fromisoformat(args[1]))
    if not slots:
        console.print("[yellow]No free slots on that day.[/yellow]")
        return
    console.print("  ".join(f"[cyan]{s}[/cyan]" for s in slots))


async def cmd_jobs(app: App, session: Session, args: list[str]):
    jobs = await app.jobs.list_open_jobs(search=" ".join(args))
    if not jobs:
        console.print("[yellow]No open positions.[/yellow]")
        return
    applied = await app.jobs.applied_job_ids(session)
    table = Table(title=f"{len(jobs)} open position{'' if len(jobs) == 1 else 's'}")
    table.add_column("Job ID", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Client")
    table.add_column("Budget", justify="right")
    table.add_column("Skills")
    table.add_column("")
    for job in jobs:
        table.add_row(
            job.id, job.title, job.client_name, format_budget(job), ", ".join(job.skills),
            "[green]Applied[/green]" if job.id in applied else "",
        )
    console.print(table)


async def cmd_apply(app: App, session: Session, args: list[str]):
    if not args:
        console.print(USAGE)
        return
    rate = float(args[1]) if len(args) > 1 else None
    cover_letter = await asyncio.to_thread(input, "Cover letter (optional): ")
    try:
        await app.jobs.apply(session, args[0], cover_letter, rate)
    except JobError as e:
        console.print(f"[red]{e}[/red]")
        return
    console.print("[green]Application submitted.[/green]")


COMMANDS = {
    "list":  cmd_list,
    "take":  cmd_take,
    "stats": cmd_stats,
    "slots": cmd_slots,
    "jobs":  cmd_jobs,
    "apply": cmd_apply,
}


# ─────────────────────────────────────────────────────────────────────── #
# Startup / Shutdown
# ─────────────────────────────────────────────────────────────────────── #
async def main(argv: list[str]) -> int:
    if not argv or argv[0] not in COMMANDS:
        console.print(USAGE)
        return 2
    setup_logging()
    if not settings.backend_url or not settings.user_email:
        logger.error("❌ BACKEND_URL and USER_EMAIL must be set")
        return 1

    ensure_dirs()
    app = App()
    await app.client.start()
    await app.history.init_db()
    session = None
    try:
        session = await app.sessions.sign_in(settings.user_email, settings.user_password)
        await COMMANDS[argv[0]](app, session, argv[1:])
        return 0
    except BackendError as e:
        logger.error(f"❌ Backend error: {e}")
        console.print(f"[red]Error: {e}[/red]")
        return 1
    finally:
        if session is not None:
            try:
                await app.sessions.sign_out(session.user_id)
            except BackendError as e:
                logger.warning(f"⚠️ Sign-out failed: {e}")
        await app.notifier.stop()
        await app.client.stop()


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main(sys.argv[1:])))
    except KeyboardInterrupt:
        pass

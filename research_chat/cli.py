"""
Command Line Interface for Research Chat.
Runs a full research session locally with rich output formatting.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.markdown import Markdown
from rich.prompt import Prompt

from research_chat import quota
from research_chat.config import config
from research_chat.database import DatabaseManager
from research_chat.delivery import PDFReportRenderer, SendGridEmailDelivery
from research_chat.exceptions import ResearchChatError
from research_chat.models import AnswerSubmission, UserProfile, TurnRole, NO_ANSWER_PLACEHOLDER
from research_chat.providers import ProviderGateway
from research_chat.workflow import ResearchSessionMachine

logging.basicConfig(level=logging.WARNING, format='%(asctime)s - %(levelname)s - %(name)s - %(message)s')

# Initialize CLI app and console
cli = typer.Typer(name="research-chat", help="Clarify a research topic and research it with two AI providers")
console = Console()


def _spinner():
    return Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console)


async def _run_research(topic: str, user_id: str, email: Optional[str], pdf: Optional[Path]):
    store = DatabaseManager(config.database.url)
    try:
        await store.init_db()
        if email:
            existing = await store.get_user(user_id)
            await store.upsert_user(UserProfile(id=user_id, email=email, is_premium=bool(existing and existing.is_premium)))

        machine = ResearchSessionMachine(ProviderGateway.from_config(config), store)
        session = await quota.open_session(store, user_id, None, config.quota)

        with _spinner() as progress:
            progress.add_task("Generating clarifying questions...", total=None)
            result = await machine.submit_topic(session.id, topic, owner_id=user_id)

        if result.message_type == "error":
            console.print(f"❌ {result.response}", style="red")
            raise typer.Exit(1)

        console.print(Panel(result.title or topic, title="Research Title", style="bold green"))
        questions = result.questions
        answers = []
        for i, question in enumerate(questions):
            answer = Prompt.ask(f"[cyan]{i + 1}/{len(questions)}[/cyan] {question}", default=NO_ANSWER_PLACEHOLDER)
            submission = AnswerSubmission(
                answer=answer,
                question_index=i,
                total_questions=len(questions),
                original_topic=topic,
                questions=questions,
                answers=answers,
            )
            if i == len(questions) - 1:
                with _spinner() as progress:
                    progress.add_task("Researching with all providers...", total=None)
                    result = await machine.submit_answer(session.id, submission, owner_id=user_id)
            else:
                result = await machine.submit_answer(session.id, submission, owner_id=user_id)
            answers.append(answer)

        if result.message_type == "error":
            console.print(f"❌ {result.response}", style="red")
            raise typer.Exit(1)

        console.print(Panel(Markdown(result.primary_document), style="blue"))
        if result.secondary_document:
            console.print(Panel(Markdown(result.secondary_document), style="cyan"))
        else:
            console.print("⚠️  Secondary provider produced no document; the report has one section.")

        if not (email or pdf):
            return

        report = await machine.build_report(session.id, owner_id=user_id)
        console.print(Panel(report.summary, title=f"Summary ({report.summary_source})", style="yellow"))

        if pdf:
            pdf.write_bytes(PDFReportRenderer().render(report))
            console.print(f"✅ PDF saved to: {pdf}")
        if email:
            receipt = await SendGridEmailDelivery.from_config(config.delivery).deliver(report, email)
            console.print(f"✅ Report emailed to {receipt.destination} (id {receipt.receipt_id})")
    finally:
        await store.close()


@cli.command()
def research(
    topic: str = typer.Argument(..., help="Research topic"),
    user_id: str = typer.Option("cli-user", "--user", "-u", help="User identifier"),
    email: Optional[str] = typer.Option(None, "--email", "-e", help="Email the combined report to this address"),
    pdf: Optional[Path] = typer.Option(None, "--pdf", help="Save the combined report as a PDF"),
):
    """Run a research session: clarifying questions, answers, then dual-provider research."""

    console.print(Panel.fit("🔬 Research Chat", style="bold blue"))
    try:
        config.validate()
        asyncio.run(_run_research(topic, user_id, email, pdf))
    except typer.Exit:
        raise
    except ResearchChatError as e:
        console.print(f"❌ {e}", style="red")
        raise typer.Exit(1)
    except Exception as e:
        console.print(f"❌ Error: {str(e)}", style="red")
        raise typer.Exit(1)


@cli.command()
def history(
    user_id: str = typer.Option("cli-user", "--user", "-u", help="User identifier"),
    limit: int = typer.Option(10, "--limit", "-l", help="Number of sessions to show")
):
    """Show a user's research sessions."""

    async def get_history():
        store = DatabaseManager(config.database.url)
        try:
            await store.init_db()
            return await store.list_sessions(user_id, limit), await quota.usage(store, user_id, config.quota)
        finally:
            await store.close()

    try:
        sessions, usage = asyncio.run(get_history())
    except Exception as e:
        console.print(f"❌ Error retrieving history: {str(e)}", style="red")
        raise typer.Exit(1)

    console.print(Panel.fit(f"📚 Research History for {user_id}", style="bold blue"))
    console.print(f"Sessions today: {usage.today_count}/{usage.max_sessions}")

    if not sessions:
        console.print("No research sessions found for this user.")
        return

    history_table = Table(show_header=True, header_style="bold magenta")
    history_table.add_column("Updated", style="cyan")
    history_table.add_column("Session", style="dim")
    history_table.add_column("Title", style="green")
    history_table.add_column("Status", style="blue")

    for session in sessions:
        history_table.add_row(
            session.updated_at.strftime('%Y-%m-%d %H:%M'),
            session.id,
            session.title[:40] + "..." if len(session.title) > 40 else session.title,
            session.status.value,
        )

    console.print(history_table)


@cli.command()
def show(
    session_id: str = typer.Argument(..., help="Session identifier"),
    user_id: str = typer.Option("cli-user", "--user", "-u", help="User identifier"),
):
    """Print every turn of a session."""

    async def load():
        store = DatabaseManager(config.database.url)
        try:
            await store.init_db()
            session = await store.get_session(session_id, user_id)
            return session, (await store.list_turns(session_id) if session else [])
        finally:
            await store.close()

    session, turns = asyncio.run(load())
    if session is None:
        console.print(f"❌ Session {session_id} not found", style="red")
        raise typer.Exit(1)

    console.print(Panel.fit(f"{session.title} [{session.status.value}]", style="bold blue"))
    for turn in turns:
        if turn.role == TurnRole.USER:
            console.print(f"\n👤 {turn.content}")
        else:
            label = f" ({turn.provider})" if turn.provider else ""
            console.print(Panel(Markdown(turn.content), title=f"{turn.kind.value}{label}", style="green"))


@cli.command()
def config_info():
    """Display current configuration information."""

    console.print(Panel.fit("⚙️  Configuration Information", style="bold blue"))

    console.print("\n🤖 Provider Configuration:")
    config_table = Table(show_header=True, header_style="bold cyan")
    config_table.add_column("Role", style="cyan")
    config_table.add_column("Provider", style="blue")
    config_table.add_column("Model", style="green")

    config_table.add_row("Primary", config.primary.display_name, config.primary.model_name)
    config_table.add_row(
        "Secondary",
        config.secondary.display_name,
        config.secondary.model_name if config.secondary_enabled else "disabled",
    )
    console.print(config_table)

    console.print("\n🔌 Services:")
    for service, available in config.get_available_services().items():
        console.print(f"  • {service}: {'✅' if available else '❌'}")

    console.print(f"\n📈 Daily limits: premium {config.quota.premium_daily_limit}, standard {config.quota.standard_daily_limit}")
    console.print(f"🗄️  Database: {config.database.url}")
    tracing = f"Enabled (project {config.tracing.project})" if config.tracing.enabled else "Disabled"
    console.print(f"📊 LangSmith Tracing: {tracing}")

    validation = config.validate_setup()
    for warning in validation["warnings"]:
        console.print(f"⚠️  {warning}", style="yellow")
    for error in validation["errors"]:
        console.print(f"❌ {error}", style="red")


def main():
    """Main CLI entry point."""
    cli()


if __name__ == "__main__":
    main()

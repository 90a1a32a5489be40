# src/decision_trail/ui/chat_cli.py
"""
Terminal front end for the New Decision flow.
"""
import asyncio
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.markup import escape
from rich.box import ROUNDED

from decision_trail.core.config import RevealTiming
from decision_trail.core.models import (
    AREA_ICONS,
    AREA_KEYS,
    AREA_LABELS,
    MIN_TEXT_CHARS,
    AnswerToken,
    LifecycleState,
    SuggestionLevel,
)
from decision_trail.core.projection import AreaProjection
from decision_trail.core.reveal_engine import MessageKind, RevealEvent, RevealEventKind
from decision_trail.core.session import DecisionSession
from decision_trail.integrations.ports import AnalysisGateway, ImpactStore

console = Console()

QUICK_ANSWERS = {
    "y": AnswerToken.YES,
    "yes": AnswerToken.YES,
    "n": AnswerToken.NO,
    "no": AnswerToken.NO,
    "?": AnswerToken.NOT_SURE,
    "not sure": AnswerToken.NOT_SURE,
}

ANSWER_LABELS = {
    AnswerToken.YES.value: "Yes",
    AnswerToken.NO.value: "No",
    AnswerToken.NOT_SURE.value: "Not sure",
}

LEVEL_STYLES = {
    SuggestionLevel.LIKELY_IMPACTED: ("Likely impacted", "red"),
    SuggestionLevel.TO_REVIEW: ("To review", "yellow"),
    SuggestionLevel.NOT_SURE: ("Not sure", "dim"),
}


def render_summary(projection: AreaProjection, summary: str, context: str, target: Console = console):
    """Print the summary stage: title, context, grouped areas and actions."""
    body = f"[bold]{escape(summary) or '(no summary)'}[/bold]"
    if context:
        body += f"\n\n{escape(context)}"
    target.print(Panel(
        body,
        title="Analysis complete",
        border_style="cyan"
    ))

    if projection.impacted:
        target.print(f"[bold red]Impacted areas ({len(projection.impacted)})[/bold red]")
        for key in projection.impacted:
            target.print(f"  {AREA_ICONS[key]} {AREA_LABELS[key]}")
    if projection.to_review:
        target.print(f"[bold yellow]Areas to verify ({len(projection.to_review)})[/bold yellow]")
        for key in projection.to_review:
            target.print(f"  {AREA_ICONS[key]} {AREA_LABELS[key]}")

    if projection.actions:
        table = Table(title="Suggested actions", box=ROUNDED)
        table.add_column("#", justify="right")
        table.add_column("Action", style="white")
        table.add_column("Area", style="cyan")
        for i, action in enumerate(projection.actions, 1):
            table.add_row(str(i), escape(action.description), action.label)
        target.print(table)


def render_area_inventory(levels, target: Console = console):
    table = Table(title="All areas", box=ROUNDED)
    table.add_column("Area", style="cyan")
    table.add_column("Suggestion")
    for key in AREA_KEYS:
        label, style = LEVEL_STYLES[levels[key]]
        table.add_row(f"{AREA_ICONS[key]} {AREA_LABELS[key]}", f"[{style}]{label}[/{style}]")
    target.print(table)


class DecisionChatCLI:
    def __init__(
            self,
            workspace_id: str,
            gateway: AnalysisGateway,
            store: ImpactStore,
            timing: Optional[RevealTiming] = None
    ):
        self.session = DecisionSession(
            workspace_id,
            gateway,
            store,
            timing=timing,
            reveal_listener=self._render_event
        )
        self.active = True

    async def start(self) -> Optional[str]:
        """Run the flow until a record is created or the user quits. Returns the record id."""
        console.print(Panel.fit(
            "[bold cyan]🧭 New Decision[/bold cyan]",
            subtitle="Describe a decision or change; /exit to quit"
        ))

        try:
            while self.active and self.session.state is not None:
                state = self.session.state
                if state is LifecycleState.INPUT:
                    await self._handle_input()
                elif state is LifecycleState.CHAT:
                    await self._handle_chat()
                elif state is LifecycleState.ERROR:
                    await self._handle_error()
                elif state is LifecycleState.SUMMARY:
                    await self._handle_summary()
                elif state in (LifecycleState.PROCESSING, LifecycleState.CREATING):
                    # Only reachable while a trigger is awaited elsewhere
                    await asyncio.sleep(0.05)
                else:
                    raise ValueError(f"Unhandled state: {state!r}")
        finally:
            self.session.close()

        return self.session.created_record_id

    async def _get_user_input(self, prompt: str) -> str:
        """Get input from user with rich formatting."""
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, lambda: console.input(prompt).strip())
        except (EOFError, KeyboardInterrupt):
            return "/exit"

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    async def _handle_input(self):
        text = await self._get_user_input("[bold cyan]📝 Decision:[/bold cyan] ")
        if text == "/exit":
            self.active = False
            return

        with console.status("[bold green]Analyzing decision..."):
            state = await self.session.submit(text)

        if state is LifecycleState.INPUT:
            console.print(f"[yellow]⚠️  Please write at least {MIN_TEXT_CHARS} characters[/yellow]")

    async def _handle_chat(self):
        await self.session.wait_for_turn()
        engine = self.session.engine
        if self.session.state is not LifecycleState.CHAT or engine is None \
                or not engine.accepting_input:
            return

        raw = await self._get_user_input(
            "[bold cyan]💬 You[/bold cyan] [dim](y/n/? or text, /skip, /more, /back)[/dim]: "
        )
        command = raw.lower()

        if command == "/exit":
            self.active = False
        elif command == "/skip":
            self.session.skip_all()
            console.print("[dim]Remaining questions marked as not sure[/dim]")
        elif command == "/back":
            self.session.back()
            console.print("[dim]Back to the description[/dim]")
        elif command == "/more":
            context = next((m for m in self.session.messages if m.kind is MessageKind.CONTEXT), None)
            if context is not None and self.session.toggle_context():
                console.print(Panel(Text(context.visible_text), title="System context", border_style="dim"))
            elif context is not None:
                console.print("[dim]Context collapsed[/dim]")
        elif not raw:
            return
        else:
            value = QUICK_ANSWERS.get(command, raw)
            if not self.session.answer(value):
                console.print("[yellow]⚠️  Answer not accepted[/yellow]")

    async def _handle_error(self):
        error = self.session.last_error
        console.print(Panel(
            f"[red]{escape(str(error)) if error else 'Analysis failed'}[/red]\n\n"
            "[bold]r[/bold] retry   [bold]c[/bold] continue without AI   "
            "[bold]b[/bold] back   [bold]q[/bold] quit",
            title="⚠️  Analysis unavailable",
            border_style="red"
        ))
        if error is not None and not error.retryable:
            console.print("[dim]This error is unlikely to go away on retry.[/dim]")

        choice = (await self._get_user_input("Choice: ")).lower()
        if choice in ("r", "retry"):
            with console.status("[bold green]Retrying analysis..."):
                await self.session.retry()
        elif choice in ("c", "continue"):
            self.session.continue_without_ai()
        elif choice in ("b", "back"):
            self.session.back()
        elif choice in ("q", "quit", "/exit"):
            self.active = False

    async def _handle_summary(self):
        draft = self.session.draft
        analysis = draft.ai_response
        render_summary(self.session.summary(), analysis.summary, analysis.context)
        if draft.answers:
            for index, answer in draft.answers.items():
                console.print(
                    f"  [dim]{escape(analysis.clarifying_questions[index])}[/dim] → "
                    f"{escape(ANSWER_LABELS.get(answer, answer))}"
                )

        choice = (await self._get_user_input(
            "[bold]c[/bold] create   [bold]a[/bold] all areas   [bold]b[/bold] back   [bold]q[/bold] quit: "
        )).lower()
        if choice in ("c", "create"):
            with console.status("[bold green]Creating decision..."):
                result = await self.session.create()
            if result.ok:
                console.print(f"[green]✅ Decision created: {result.record_id}[/green]")
            else:
                console.print(f"[red]❌ Could not create decision: {result.error}[/red]")
        elif choice in ("a", "all"):
            render_area_inventory(analysis.area_suggestions)
        elif choice in ("b", "back"):
            self.session.back()
        elif choice in ("q", "quit", "/exit"):
            self.active = False

    # ------------------------------------------------------------------
    # Conversation rendering
    # ------------------------------------------------------------------

    def _render_event(self, event: RevealEvent):
        message = event.message
        if event.kind is RevealEventKind.MESSAGE_ADDED:
            if message.kind is MessageKind.ANSWER:
                console.print(f"[bold cyan]💬 You:[/bold cyan] {escape(ANSWER_LABELS.get(message.text, message.text))}")
                return
            console.print(f"\n[bold cyan]🤖 {self._title(message)}[/bold cyan]")
        elif event.kind is RevealEventKind.MESSAGE_PROGRESS:
            console.print(Text(event.delta), end="")
        elif event.kind is RevealEventKind.MESSAGE_COMPLETE:
            console.print()
            if message.truncated:
                console.print("[dim](type /more to read the full context)[/dim]")
        elif event.kind is RevealEventKind.THINKING_STARTED:
            console.print("[dim]… thinking[/dim]")

    def _title(self, message) -> str:
        if message.kind is MessageKind.INTRO:
            return "Analyzing"
        if message.kind is MessageKind.CONTEXT:
            return "System context"
        total = self.session.draft.ai_response.question_count
        return f"Question {message.question_index + 1}/{total}"

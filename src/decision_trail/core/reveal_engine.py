# src/decision_trail/core/reveal_engine.py
"""
Conversational Reveal Engine - turn-by-turn disclosure of an AIAnalysis.

Intro -> context -> question 1 .. N, each revealed character by character and
gated behind the previous reveal plus its settle delay. After each question
the engine suspends until exactly one answer for that index arrives.

ASYNC: one asyncio task per conversation; cancel() stops it and no timer
keeps mutating state afterwards.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Any

from decision_trail.core.config import RevealTiming
from decision_trail.core.models import InvalidTransitionError, LifecycleState

logger = logging.getLogger(__name__)


class MessageKind(str, Enum):
    INTRO = "intro"
    CONTEXT = "context"
    QUESTION = "question"
    ANSWER = "answer"


class RevealEventKind(str, Enum):
    MESSAGE_ADDED = "message_added"
    MESSAGE_PROGRESS = "message_progress"
    MESSAGE_COMPLETE = "message_complete"
    THINKING_STARTED = "thinking_started"
    THINKING_STOPPED = "thinking_stopped"
    AWAITING_ANSWER = "awaiting_answer"
    FINISHED = "finished"


@dataclass
class ChatMessage:
    """One entry of the conversation log."""
    kind: MessageKind
    text: str
    question_index: Optional[int] = None
    preview: Optional[str] = None  # what gets revealed; full text stays in `text`
    displayed: str = ""
    complete: bool = False
    expanded: bool = False

    @property
    def reveal_text(self) -> str:
        return self.preview if self.preview is not None else self.text

    @property
    def truncated(self) -> bool:
        return self.preview is not None and self.preview != self.text

    def toggle_expanded(self) -> bool:
        """Expand/collapse the full text. Independent of the reveal animation."""
        self.expanded = not self.expanded
        return self.expanded

    @property
    def visible_text(self) -> str:
        if self.expanded and self.complete:
            return self.text
        return self.displayed


@dataclass
class RevealEvent:
    kind: RevealEventKind
    message: Optional[ChatMessage] = None
    delta: str = ""


RevealListener = Callable[[RevealEvent], None]


def context_preview(context: str, limit: int) -> str:
    if len(context) > limit:
        return context[:limit] + "..."
    return context


class ConversationRevealEngine:
    """Drives the paced conversation for one machine in the Chat state."""

    def __init__(self, machine, timing: Optional[RevealTiming] = None,
                 listener: Optional[RevealListener] = None):
        self.machine = machine
        self.timing = timing or RevealTiming()
        self.listener = listener
        self.messages: List[ChatMessage] = []
        self.thinking = False
        self.current_question: Optional[int] = None

        self._task: Optional[asyncio.Task] = None
        self._pending_answer: Optional[asyncio.Future] = None
        self._turn = asyncio.Event()
        self._cancelled = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def accepting_input(self) -> bool:
        return (self._pending_answer is not None and not self._pending_answer.done()
                and not self._cancelled)

    @property
    def finished(self) -> bool:
        return self._task is not None and self._task.done()

    def start(self) -> asyncio.Task:
        if self._task is not None:
            raise RuntimeError("Conversation already started")
        if self.machine.state is not LifecycleState.CHAT:
            raise InvalidTransitionError(self.machine.state, "start conversation")
        self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task

    def cancel(self):
        """Stop every pending reveal step. Safe to call more than once."""
        if self._task is not None and self._task is asyncio.current_task():
            # The conversation is handing off to the summary by itself
            return
        self._cancelled = True
        self.thinking = False
        if self._pending_answer is not None and not self._pending_answer.done():
            self._pending_answer.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._turn.set()

    def truncate(self):
        """Drop the conversation log; used when the user goes back."""
        self.messages.clear()

    async def wait_for_turn(self):
        """Wait until an answer is expected or the conversation has ended."""
        await self._turn.wait()

    # ------------------------------------------------------------------
    # User input
    # ------------------------------------------------------------------

    def answer(self, value: Any) -> bool:
        """
        Answer the question currently waiting for input.

        Returns False when no question is waiting or the value is empty. The
        answer is recorded on the machine before the next reveal starts.
        """
        if not self.accepting_input:
            logger.debug("Answer ignored: no question is waiting for input")
            return False

        index = self.current_question
        try:
            stored = self.machine.record_answer(index, value)
        except InvalidTransitionError as e:
            logger.debug(f"Answer rejected: {e}")
            return False

        self._turn.clear()
        message = ChatMessage(
            kind=MessageKind.ANSWER,
            text=stored,
            question_index=index,
            displayed=stored,
            complete=True
        )
        self.messages.append(message)
        self._emit(RevealEventKind.MESSAGE_ADDED, message)
        self._pending_answer.set_result(stored)
        return True

    def skip_all(self) -> LifecycleState:
        """Answer every remaining question with not_sure and hand off to the summary."""
        state = self.machine.skip_remaining()
        self.cancel()
        return state

    # ------------------------------------------------------------------
    # Conversation
    # ------------------------------------------------------------------

    def _emit(self, kind: RevealEventKind, message: Optional[ChatMessage] = None, delta: str = ""):
        if self._cancelled or self.listener is None:
            return
        self.listener(RevealEvent(kind=kind, message=message, delta=delta))

    async def _pause(self, seconds: float):
        # Always yield so a cancel() issued meanwhile is honoured
        await asyncio.sleep(seconds if seconds > 0 else 0)

    async def _reveal(self, message: ChatMessage, interval: float):
        self.messages.append(message)
        self._emit(RevealEventKind.MESSAGE_ADDED, message)

        text = message.reveal_text
        if interval <= 0:
            message.displayed = text
            if text:
                self._emit(RevealEventKind.MESSAGE_PROGRESS, message, text)
        else:
            for i, char in enumerate(text):
                await asyncio.sleep(interval)
                message.displayed = text[:i + 1]
                self._emit(RevealEventKind.MESSAGE_PROGRESS, message, char)

        message.complete = True
        self._emit(RevealEventKind.MESSAGE_COMPLETE, message)

    async def _think(self, seconds: float):
        self.thinking = True
        self._emit(RevealEventKind.THINKING_STARTED)
        try:
            await self._pause(seconds)
        finally:
            self.thinking = False
        self._emit(RevealEventKind.THINKING_STOPPED)

    async def _run(self):
        timing = self.timing
        analysis = self.machine.draft.ai_response
        questions = list(analysis.clarifying_questions)

        try:
            if analysis.summary:
                await self._reveal(
                    ChatMessage(kind=MessageKind.INTRO, text=analysis.summary),
                    timing.intro_char_interval
                )
                await self._pause(timing.intro_settle)

            if analysis.context:
                await self._reveal(
                    ChatMessage(
                        kind=MessageKind.CONTEXT,
                        text=analysis.context,
                        preview=context_preview(analysis.context, timing.context_preview_chars)
                    ),
                    timing.context_char_interval
                )
                await self._pause(timing.context_settle)

            for index, question in enumerate(questions):
                if index in self.machine.draft.answers:
                    continue

                self.current_question = index
                await self._reveal(
                    ChatMessage(kind=MessageKind.QUESTION, text=question, question_index=index),
                    timing.question_char_interval
                )

                self._pending_answer = asyncio.get_running_loop().create_future()
                self._turn.set()
                self._emit(RevealEventKind.AWAITING_ANSWER, self.messages[-1])
                await self._pending_answer
                self._pending_answer = None

                await self._pause(timing.answer_pause)
                is_last = index == len(questions) - 1
                await self._think(timing.final_thinking_delay if is_last else timing.thinking_delay)

            self.current_question = None
            if not self._cancelled and self.machine.state is LifecycleState.CHAT:
                self.machine.finish_chat()
            self._emit(RevealEventKind.FINISHED)
        except asyncio.CancelledError:
            logger.debug("Conversation reveal cancelled")
            raise
        finally:
            self._turn.set()

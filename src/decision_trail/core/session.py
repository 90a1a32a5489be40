# src/decision_trail/core/session.py
"""
New Decision session - the surface a UI layer drives.

MIXED: sync for the user triggers that only touch local state, async for the
ones that wait on the analysis service or the store. Starts a fresh reveal
engine whenever the machine enters Chat and cancels it when it leaves.
"""

import logging
from typing import List, Optional, Any

from decision_trail.api.client import AnalysisError
from decision_trail.core.config import RevealTiming
from decision_trail.core.models import DecisionDraft, LifecycleState
from decision_trail.core.projection import AreaProjection, project
from decision_trail.core.reveal_engine import (
    ChatMessage,
    ConversationRevealEngine,
    MessageKind,
    RevealListener,
)
from decision_trail.core.state_machine import DecisionStateMachine
from decision_trail.integrations.ports import AnalysisGateway, ImpactRecordResult, ImpactStore

logger = logging.getLogger(__name__)


class DecisionSession:
    """One user's New Decision flow: state machine plus conversation."""

    def __init__(
            self,
            workspace_id: str,
            gateway: AnalysisGateway,
            store: ImpactStore,
            timing: Optional[RevealTiming] = None,
            reveal_listener: Optional[RevealListener] = None
    ):
        self.machine = DecisionStateMachine(workspace_id, gateway, store)
        self.timing = timing or RevealTiming()
        self.reveal_listener = reveal_listener
        self.engine: Optional[ConversationRevealEngine] = None
        self.machine.add_listener(self._on_transition)

        logger.info(f"DecisionSession opened for workspace {workspace_id}")

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def state(self) -> Optional[LifecycleState]:
        return self.machine.state

    @property
    def draft(self) -> Optional[DecisionDraft]:
        return self.machine.draft

    @property
    def last_error(self) -> Optional[AnalysisError]:
        return self.machine.last_error

    @property
    def created_record_id(self) -> Optional[str]:
        return self.machine.created_record_id

    @property
    def messages(self) -> List[ChatMessage]:
        return list(self.engine.messages) if self.engine else []

    @property
    def thinking(self) -> bool:
        return bool(self.engine and self.engine.thinking)

    def summary(self) -> AreaProjection:
        """Grouped areas and labelled actions for the summary stage."""
        draft = self.machine.draft
        if draft is None or draft.ai_response is None:
            raise ValueError("No analysis available for a summary")
        return project(draft.ai_response)

    # ------------------------------------------------------------------
    # Engine wiring
    # ------------------------------------------------------------------

    def _on_transition(self, old: Optional[LifecycleState], new: Optional[LifecycleState]):
        if old is LifecycleState.CHAT and new is not LifecycleState.CHAT and self.engine:
            self.engine.cancel()
            if new is LifecycleState.INPUT:
                self.engine.truncate()
        if new is LifecycleState.CHAT:
            if self.engine:
                self.engine.cancel()
            self.engine = ConversationRevealEngine(
                self.machine, self.timing, listener=self.reveal_listener
            )
            self.engine.start()

    async def wait_for_turn(self):
        """Wait until the conversation expects an answer or has handed off."""
        if self.engine is not None and self.state is LifecycleState.CHAT:
            await self.engine.wait_for_turn()

    def close(self):
        """Tear down: no reveal step may run after this."""
        if self.engine:
            self.engine.cancel()
        self.machine.remove_listener(self._on_transition)

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    async def submit(self, text: str) -> LifecycleState:
        return await self.machine.submit(text)

    async def retry(self) -> LifecycleState:
        return await self.machine.retry()

    def continue_without_ai(self) -> LifecycleState:
        return self.machine.continue_without_ai()

    def answer(self, value: Any) -> bool:
        if self.engine is None or self.state is not LifecycleState.CHAT:
            return False
        return self.engine.answer(value)

    def skip_all(self) -> LifecycleState:
        if self.engine is not None:
            return self.engine.skip_all()
        return self.machine.skip_remaining()

    def back(self) -> LifecycleState:
        return self.machine.back()

    def toggle_context(self) -> bool:
        """Expand or collapse the full context message."""
        for message in self.messages:
            if message.kind is MessageKind.CONTEXT:
                return message.toggle_expanded()
        return False

    async def create(self) -> ImpactRecordResult:
        return await self.machine.create()

# src/decision_trail/core/state_machine.py
"""
Decision State Machine - lifecycle of one in-progress decision.

Input -> Processing -> Chat -> Summary -> Creating, with Error as the
recoverable detour when the analysis call fails.

Single writer: every transition runs on the owning event loop. The only
suspension points are the analysis call (submit/retry) and the persistence
commit (create). Late analysis results are matched against the draft
generation and dropped when the draft has moved on.
"""

import logging
from typing import Callable, List, Optional, Any

from decision_trail.api.client import AnalysisError, ServiceError
from decision_trail.core.models import (
    AIAnalysis,
    AnswerToken,
    DecisionDraft,
    InvalidTransitionError,
    LifecycleState,
    normalize_answer,
    validate_free_text,
)
from decision_trail.core.projection import to_area_states
from decision_trail.integrations.ports import (
    AnalysisGateway,
    ImpactRecordResult,
    ImpactStore,
    NewImpactRecord,
)

logger = logging.getLogger(__name__)

TransitionListener = Callable[[LifecycleState, Optional[LifecycleState]], None]

MAX_FALLBACK_TITLE_CHARS = 200


class DecisionStateMachine:
    """Owns one DecisionDraft and guards every transition on it."""

    def __init__(self, workspace_id: str, gateway: AnalysisGateway, store: ImpactStore):
        self.gateway = gateway
        self.store = store
        self.draft: Optional[DecisionDraft] = DecisionDraft(workspace_id=workspace_id)
        self.last_error: Optional[AnalysisError] = None
        self.created_record_id: Optional[str] = None
        self._listeners: List[TransitionListener] = []

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        """True once the draft was turned into a permanent record."""
        return self.draft is None

    @property
    def state(self) -> Optional[LifecycleState]:
        return self.draft.lifecycle_state if self.draft else None

    def add_listener(self, listener: TransitionListener):
        self._listeners.append(listener)

    def remove_listener(self, listener: TransitionListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require(self, trigger: str, *allowed: LifecycleState) -> DecisionDraft:
        if self.draft is None:
            raise InvalidTransitionError(None, trigger, "decision already created")
        if self.draft.lifecycle_state not in allowed:
            raise InvalidTransitionError(self.draft.lifecycle_state, trigger)
        return self.draft

    def _move(self, new_state: Optional[LifecycleState], old_state: Optional[LifecycleState] = None):
        old_state = old_state or self.state
        if new_state is not None:
            self.draft.lifecycle_state = new_state
            self.draft.check_invariants()
        logger.debug(f"Transition {old_state} -> {new_state}")
        for listener in list(self._listeners):
            listener(old_state, new_state)

    def _enter_analysis(self, analysis: AIAnalysis):
        self.draft.ai_response = analysis
        self.draft.answers.clear()
        self.last_error = None
        # Chat even with zero questions; the conversation hands off right after the context
        self._move(LifecycleState.CHAT)

    async def _run_analysis(self) -> LifecycleState:
        draft = self.draft
        draft.generation += 1
        generation = draft.generation
        self.last_error = None
        self._move(LifecycleState.PROCESSING)

        try:
            analysis = await self.gateway.analyze(draft.original_text, draft.workspace_id)
        except AnalysisError as e:
            outcome = e
        except Exception as e:
            # The gateway contract only allows AnalysisError; normalize anything else
            logger.error(f"Unexpected analysis failure: {e}")
            outcome = ServiceError(f"Analysis failed: {e}", code="UNEXPECTED")
        else:
            outcome = analysis

        if (self.draft is not draft or draft.generation != generation
                or draft.lifecycle_state is not LifecycleState.PROCESSING):
            logger.info(f"Discarding stale analysis result for generation {generation}")
            return self.state

        if isinstance(outcome, AnalysisError):
            logger.warning(f"Analysis failed ({outcome.kind.value}): {outcome}")
            self.last_error = outcome
            self._move(LifecycleState.ERROR)
        else:
            self._enter_analysis(outcome)
        return self.state

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    async def submit(self, text: str) -> LifecycleState:
        """Input -> Processing -> Chat | Error. Too short or too long text is a no-op."""
        draft = self._require("submit", LifecycleState.INPUT)
        free_text = validate_free_text(text)
        if free_text is None:
            logger.debug("Submit ignored: text outside length bounds")
            return draft.lifecycle_state

        draft.original_text = free_text
        return await self._run_analysis()

    async def retry(self) -> LifecycleState:
        """Error -> Processing, re-issuing the same text."""
        self._require("retry", LifecycleState.ERROR)
        return await self._run_analysis()

    def continue_without_ai(self) -> LifecycleState:
        """Error -> Summary with a neutral analysis (no questions to ask)."""
        draft = self._require("continue without AI", LifecycleState.ERROR)
        analysis = AIAnalysis.empty()
        draft.ai_response = analysis
        draft.answers.clear()
        self.last_error = None
        if analysis.question_count:
            self._move(LifecycleState.CHAT)
        else:
            self._move(LifecycleState.SUMMARY)
        return self.state

    def record_answer(self, question_index: int, value: Any) -> str:
        """Store the answer for one clarifying question. Returns the stored value."""
        draft = self._require("answer", LifecycleState.CHAT)
        if not 0 <= question_index < draft.ai_response.question_count:
            raise InvalidTransitionError(
                draft.lifecycle_state, "answer", f"no question at index {question_index}"
            )
        if question_index in draft.answers:
            raise InvalidTransitionError(
                draft.lifecycle_state, "answer", f"question {question_index} already answered"
            )
        answer = normalize_answer(value)
        if answer is None:
            raise InvalidTransitionError(draft.lifecycle_state, "answer", "empty answer")

        draft.answers[question_index] = answer
        return answer

    def finish_chat(self) -> LifecycleState:
        """Chat -> Summary once every question has an answer."""
        draft = self._require("finish chat", LifecycleState.CHAT)
        if not draft.all_answered:
            raise InvalidTransitionError(
                draft.lifecycle_state, "finish chat",
                f"unanswered questions {draft.unanswered_indices}"
            )
        self._move(LifecycleState.SUMMARY)
        return self.state

    def skip_remaining(self) -> LifecycleState:
        """Chat -> Summary, answering every open question with not_sure."""
        draft = self._require("skip questions", LifecycleState.CHAT)
        for index in draft.unanswered_indices:
            draft.answers[index] = AnswerToken.NOT_SURE.value
        self._move(LifecycleState.SUMMARY)
        return self.state

    def back(self) -> LifecycleState:
        """
        Navigate back one step.

        Chat -> Input drops the analysis and answers. Summary -> Chat clears
        the answers so the conversation replays. Processing/Error -> Input
        abandons the in-flight request; its result is discarded on arrival.
        """
        draft = self._require(
            "go back",
            LifecycleState.PROCESSING,
            LifecycleState.ERROR,
            LifecycleState.CHAT,
            LifecycleState.SUMMARY,
        )
        state = draft.lifecycle_state

        if state is LifecycleState.SUMMARY:
            draft.answers.clear()
            self._move(LifecycleState.CHAT)
        elif state in (LifecycleState.CHAT, LifecycleState.ERROR, LifecycleState.PROCESSING):
            # Bumping the generation invalidates any request still in flight
            draft.generation += 1
            draft.ai_response = None
            draft.answers.clear()
            self.last_error = None
            self._move(LifecycleState.INPUT)
        else:
            raise InvalidTransitionError(state, "go back")
        return self.state

    def build_record(self) -> NewImpactRecord:
        """Translate the current draft into the record handed to the store."""
        draft = self.draft
        analysis = draft.ai_response
        title = analysis.summary or draft.original_text[:MAX_FALLBACK_TITLE_CHARS]
        return NewImpactRecord(
            workspace_id=draft.workspace_id,
            title=title,
            context=analysis.context,
            area_states=to_area_states(analysis),
            actions=list(analysis.suggested_actions),
            generated_by_ai=analysis.generated_by_ai,
            description=draft.original_text
        )

    async def create(self) -> ImpactRecordResult:
        """
        Summary -> Creating -> closed.

        On failure the draft goes back to Summary untouched so no answers are lost.
        """
        self._require("create", LifecycleState.SUMMARY)
        record = self.build_record()
        self._move(LifecycleState.CREATING)

        try:
            result = await self.store.create_impact_record(record)
        except Exception as e:
            logger.error(f"Persistence failed: {e}")
            result = ImpactRecordResult(ok=False, error=str(e))

        if not result.ok:
            logger.warning(f"Impact creation failed: {result.error}")
            self._move(LifecycleState.SUMMARY)
            return result

        logger.info(f"Impact {result.record_id} created in workspace {record.workspace_id}")
        self.created_record_id = result.record_id
        self.draft = None
        self._move(None, old_state=LifecycleState.CREATING)
        return result

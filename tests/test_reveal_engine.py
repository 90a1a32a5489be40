# FILE: tests/test_reveal_engine.py
"""
Tests for the conversational reveal engine.
"""

import asyncio
from dataclasses import replace

import pytest

from decision_trail.core.config import RevealTiming
from decision_trail.core.models import AnswerToken, InvalidTransitionError, LifecycleState
from decision_trail.core.reveal_engine import (
    ConversationRevealEngine,
    MessageKind,
    RevealEventKind,
    context_preview,
)
from decision_trail.core.state_machine import DecisionStateMachine

from conftest import DECISION_TEXT, FakeGateway, FakeStore, make_analysis


async def chat_machine(analysis=None):
    machine = DecisionStateMachine("ws-1", FakeGateway(analysis or make_analysis()), FakeStore())
    await machine.submit(DECISION_TEXT)
    assert machine.state is LifecycleState.CHAT
    return machine


def kinds(engine):
    return [m.kind for m in engine.messages]


class TestOrdering:
    @pytest.mark.asyncio
    async def test_intro_context_then_first_question(self):
        machine = await chat_machine()
        engine = ConversationRevealEngine(machine, RevealTiming.instant())
        engine.start()

        await engine.wait_for_turn()
        assert kinds(engine) == [MessageKind.INTRO, MessageKind.CONTEXT, MessageKind.QUESTION]
        assert engine.current_question == 0
        assert engine.accepting_input
        assert all(m.complete for m in engine.messages)
        engine.cancel()

    @pytest.mark.asyncio
    async def test_full_conversation_hands_off_to_summary(self):
        machine = await chat_machine()
        events = []
        engine = ConversationRevealEngine(machine, RevealTiming.instant(), listener=events.append)
        engine.start()

        await engine.wait_for_turn()
        assert engine.answer(AnswerToken.YES)
        await engine.wait_for_turn()
        assert engine.messages[-1].question_index == 1
        assert engine.answer("Everyone by Q2")
        await engine.wait_for_turn()

        assert machine.state is LifecycleState.SUMMARY
        assert dict(machine.draft.answers) == {0: "yes", 1: "Everyone by Q2"}
        assert kinds(engine) == [
            MessageKind.INTRO,
            MessageKind.CONTEXT,
            MessageKind.QUESTION,
            MessageKind.ANSWER,
            MessageKind.QUESTION,
            MessageKind.ANSWER,
        ]
        assert events[-1].kind is RevealEventKind.FINISHED
        assert [e.kind for e in events].count(RevealEventKind.AWAITING_ANSWER) == 2

    @pytest.mark.asyncio
    async def test_zero_questions_goes_straight_to_summary(self):
        machine = await chat_machine(make_analysis(clarifying_questions=[]))
        engine = ConversationRevealEngine(machine, RevealTiming.instant())
        engine.start()

        await engine.wait_for_turn()
        assert machine.state is LifecycleState.SUMMARY
        assert kinds(engine) == [MessageKind.INTRO, MessageKind.CONTEXT]

    @pytest.mark.asyncio
    async def test_empty_intro_and_context_skipped(self):
        machine = await chat_machine(make_analysis(summary="", ai_context=""))
        engine = ConversationRevealEngine(machine, RevealTiming.instant())
        engine.start()

        await engine.wait_for_turn()
        assert kinds(engine) == [MessageKind.QUESTION]
        engine.cancel()

    @pytest.mark.asyncio
    async def test_start_requires_chat(self):
        machine = DecisionStateMachine("ws-1", FakeGateway(), FakeStore())
        engine = ConversationRevealEngine(machine, RevealTiming.instant())
        with pytest.raises(InvalidTransitionError):
            engine.start()


class TestGating:
    @pytest.mark.asyncio
    async def test_no_answer_before_question_is_revealed(self):
        machine = await chat_machine()
        timing = replace(RevealTiming.instant(), intro_char_interval=0.01)
        engine = ConversationRevealEngine(machine, timing)
        engine.start()

        await asyncio.sleep(0.02)
        assert not engine.accepting_input
        assert not engine.answer("yes")
        assert machine.draft.answers == {}
        engine.cancel()

    @pytest.mark.asyncio
    async def test_second_answer_while_thinking_rejected(self):
        machine = await chat_machine()
        timing = replace(RevealTiming.instant(), thinking_delay=0.05)
        engine = ConversationRevealEngine(machine, timing)
        engine.start()

        await engine.wait_for_turn()
        assert engine.answer("yes")
        assert not engine.answer("no")
        await asyncio.sleep(0.01)
        assert engine.thinking
        assert not engine.answer("no")
        assert dict(machine.draft.answers) == {0: "yes"}
        engine.cancel()

    @pytest.mark.asyncio
    async def test_empty_answer_rejected(self):
        machine = await chat_machine()
        engine = ConversationRevealEngine(machine, RevealTiming.instant())
        engine.start()

        await engine.wait_for_turn()
        assert not engine.answer("   ")
        assert engine.accepting_input
        engine.cancel()


class TestSkipAndCancel:
    @pytest.mark.asyncio
    async def test_skip_all_backfills_not_sure(self):
        machine = await chat_machine()
        engine = ConversationRevealEngine(machine, RevealTiming.instant())
        engine.start()

        await engine.wait_for_turn()
        engine.answer("yes")
        await engine.wait_for_turn()
        assert engine.skip_all() is LifecycleState.SUMMARY
        assert dict(machine.draft.answers) == {0: "yes", 1: "not_sure"}

        await asyncio.sleep(0.01)
        assert engine.finished
        assert not engine.accepting_input

    @pytest.mark.asyncio
    async def test_cancel_stops_all_mutation(self):
        machine = await chat_machine()
        timing = replace(RevealTiming.instant(), intro_char_interval=0.005)
        events = []
        engine = ConversationRevealEngine(machine, timing, listener=events.append)
        engine.start()

        await asyncio.sleep(0.03)
        engine.cancel()
        displayed = engine.messages[0].displayed
        count = len(events)
        assert 0 < len(displayed) < len(engine.messages[0].text)

        await asyncio.sleep(0.05)
        assert engine.messages[0].displayed == displayed
        assert len(engine.messages) == 1
        assert len(events) == count
        assert machine.state is LifecycleState.CHAT

    @pytest.mark.asyncio
    async def test_cancel_is_idempotent(self):
        machine = await chat_machine()
        engine = ConversationRevealEngine(machine, RevealTiming.instant())
        engine.start()
        engine.cancel()
        engine.cancel()
        await asyncio.sleep(0.01)
        assert engine.finished


class TestContextPreview:
    def test_preview_truncates_long_context(self):
        assert context_preview("a" * 200, 150) == "a" * 150 + "..."
        assert context_preview("short", 150) == "short"

    @pytest.mark.asyncio
    async def test_reveals_preview_and_expands_to_full_text(self):
        long_context = "Retention rules differ per region. " * 10
        machine = await chat_machine(make_analysis(ai_context=long_context))
        engine = ConversationRevealEngine(machine, RevealTiming.instant())
        engine.start()

        await engine.wait_for_turn()
        context = engine.messages[1]
        assert context.kind is MessageKind.CONTEXT
        assert context.displayed == long_context[:150] + "..."
        assert context.truncated
        assert context.toggle_expanded()
        assert context.visible_text == long_context
        assert not context.toggle_expanded()
        assert context.visible_text == context.displayed
        engine.cancel()

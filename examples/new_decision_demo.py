#!/usr/bin/env python3
"""
New Decision Demo - drives the whole flow against in-memory collaborators.
"""

import asyncio
import sys
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from decision_trail.core.config import RevealTiming
from decision_trail.core.models import AnswerToken, LifecycleState
from decision_trail.core.reveal_engine import RevealEventKind
from decision_trail.core.sanitizer import sanitize
from decision_trail.core.session import DecisionSession
from decision_trail.integrations.ports import ImpactRecordResult

DEMO_RESPONSE = {
    "summary": "Migrate internal messaging from Slack to Microsoft Teams",
    "ai_context": "Changing the messaging platform touches integrations, retention rules "
                  "and every team's daily habits.",
    "clarifying_questions": [
        "Will the Slack history be archived?",
        "Who needs to be trained, and by when?"
    ],
    "area_suggestions": {
        "asset_tools": "likely_impacted",
        "information_data": "likely_impacted",
        "access_privileges": "to_review",
        "process_controls": "to_review",
        "risk_impact": "not_sure",
        "policies_docs": "to_review",
        "people_awareness": "likely_impacted"
    },
    "suggested_actions": [
        {"description": "Inventory Slack integrations", "area_key": "asset_tools"},
        {"description": "Plan Teams training", "area_key": "people_awareness"},
        {"description": "Communicate the timeline", "area_key": None}
    ]
}


class DemoGateway:
    async def analyze(self, text, workspace_id):
        await asyncio.sleep(0.2)
        return sanitize(DEMO_RESPONSE)


class DemoStore:
    async def list_workspaces_for_user(self):
        return []

    async def create_impact_record(self, record):
        print(f"   storing '{record.title}' with {len(record.actions)} action(s)")
        return ImpactRecordResult(ok=True, record_id="demo-1")


def show(event):
    if event.kind is RevealEventKind.MESSAGE_COMPLETE:
        print(f"🤖 {event.message.displayed}")
    elif event.kind is RevealEventKind.AWAITING_ANSWER:
        print("   (waiting for an answer)")


async def demo_new_decision():
    print("🧭 Decision Trail - New Decision Demo")
    print("=" * 50)

    session = DecisionSession("ws-demo", DemoGateway(), DemoStore(),
                              timing=RevealTiming.instant(), reveal_listener=show)

    print("1. Submitting the decision...")
    await session.submit("We are moving from Slack to Teams next quarter")

    print("\n2. Answering clarifying questions...")
    for answer in (AnswerToken.YES, "Everyone by Q2"):
        await session.wait_for_turn()
        session.answer(answer)
        print(f"💬 {answer.value if isinstance(answer, AnswerToken) else answer}")

    while session.state is LifecycleState.CHAT:
        await asyncio.sleep(0.01)

    print("\n3. Summary:")
    projection = session.summary()
    print(f"   impacted:  {[k.value for k in projection.impacted]}")
    print(f"   to review: {[k.value for k in projection.to_review]}")
    for action in projection.actions:
        print(f"   • {action.description} ({action.label})")

    print("\n4. Creating the decision...")
    result = await session.create()
    print(f"✅ Created: {result.record_id}")
    session.close()


if __name__ == "__main__":
    asyncio.run(demo_new_decision())

"""
Full Workflow Example — HIVE Product Team End-to-End
======================================================

This example runs one request through the default thirteen-member team:

    Router → ProductManager → Designer → Planner → Builder → Router → FINISH

The router's tier-0 provider and the shared agent provider are both
MockLLMProviders, so the run is deterministic and offline:

    - router_llm answers who acts next, one JSON decision per routing turn
    - agent_llm answers for each specialist in the order they run

The ProductManager hands off directly to the Designer ("Handoff: Designer")
to show a turn that skips the router.

Usage:
    python examples/full_workflow.py
"""

from __future__ import annotations

import asyncio

from hive import Hive
from hive.core.config import HiveConfig
from hive.core.enums import EventType
from hive.infrastructure.logging import configure_logging
from hive.integrations.llm.mock import MockLLMProvider


# =============================================================================
# Mock LLM Responses
# =============================================================================

ROUTER_DECISIONS = [
    '{"next": "ProductManager", "reasoning": "A new product needs a PRD first"}',
    '{"next": "Planner", "reasoning": "PRD and design exist; plan the build"}',
    '{"next": "Builder", "reasoning": "The plan is ready to implement"}',
    '{"next": "FINISH", "reasoning": "The login form has been built"}',
]

PM_RESPONSE = """\
Here is the PRD for the login form.

```json
{"kind": "PRD", "title": "Login Form", "goal": "Let users sign in securely",
 "successMetrics": ["sign-in success rate", "time to sign in"]}
```

Handoff: Designer
"""

DESIGNER_RESPONSE = """\
The form is a single card with email, password and a submit button.

```json
{"kind": "DesignSpec", "title": "Login Card",
 "components": [{"name": "LoginCard", "description": "Email, password, submit"}]}
```
"""

PLANNER_RESPONSE = """\
Two steps: the form component, then the session endpoint.

```json
{"kind": "TechPlan", "title": "Login Plan", "overview": "React form posting to /api/session",
 "implementationSteps": [{"order": 1, "task": "Build LoginCard"},
                         {"order": 2, "task": "Wire POST /api/session"}]}
```
"""

BUILDER_RESPONSE = """\
Implemented `LoginCard.tsx` and the `/api/session` handler.
"""


async def main() -> None:
    """Run one request and print every event."""
    configure_logging(level="WARNING", fmt="console")

    router_llm = MockLLMProvider()
    for decision in ROUTER_DECISIONS:
        router_llm.queue_response(decision)

    agent_llm = MockLLMProvider()
    for reply in (PM_RESPONSE, DESIGNER_RESPONSE, PLANNER_RESPONSE, BUILDER_RESPONSE):
        agent_llm.queue_response(reply)

    async with Hive(HiveConfig(), provider=agent_llm, primary=router_llm) as hive:
        print("=" * 60)
        print("  HIVE — Full Team Run")
        print("=" * 60)

        conversation_id = "example-login-form"
        async for event in hive.run([], "Please build a login form", conversation_id):
            if event.type == EventType.HANDOFF:
                print(f"[turn {event.turn_count:2d}] {event.from_agent} → {event.to_agent}")
            elif event.type == EventType.CHUNK:
                first_line = (event.content or "").strip().splitlines()[0]
                print(f"           {event.agent}: {first_line}")
            elif event.type == EventType.COMPLETE:
                print(f"[turn {event.turn_count:2d}] FINISH ({event.content})")

        state = await hive.get_conversation(conversation_id)
        stats = await hive.cache_stats()

        print()
        print(f"Contributors : {', '.join(state.contributors)}")
        print(f"Artifacts    : {', '.join(k.value for k in state.artifact_store.available())}")
        print(f"Turns        : {state.turn_count}")
        print(f"Cache        : {stats.entries} entries, hit rate {stats.hit_rate:.0%}")
        print(f"Router       : {hive.metrics_snapshot()['router']}")


if __name__ == "__main__":
    asyncio.run(main())

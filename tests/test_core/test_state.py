"""
Tests for hive.core.state
===========================

These tests verify the workflow state record and its reducer:
    - WorkflowState: defaults, immutability, is_finished
    - merge_state:   every row of the merge table, purity, replay determinism
    - initial_state: history + new request, conversation id handling

All tests are unit tests: pure data, no I/O.
"""

import pytest

from hive.core.enums import ArtifactKind
from hive.core.exceptions import StateError
from hive.core.messages import Message
from hive.core.state import StateUpdate, WorkflowState, initial_state, merge_state
from hive.infrastructure.artifact_store import ArtifactStore
from tests.conftest import sample_design_spec, sample_prd


# =============================================================================
# Test: WorkflowState
# =============================================================================
class TestWorkflowState:
    """Tests for the WorkflowState model."""

    def test_defaults(self) -> None:
        """A fresh state starts at the router with nothing recorded."""
        state = WorkflowState()
        assert state.next == "Router"
        assert state.turn_count == 0
        assert state.messages == []
        assert state.contributors == []
        assert state.agent_retries == {}
        assert state.needs_retry is False
        assert state.last_error is None
        assert state.artifact_store.available() == []

    def test_conversation_ids_are_unique(self) -> None:
        assert WorkflowState().conversation_id != WorkflowState().conversation_id
        assert WorkflowState().conversation_id.startswith("conv-")

    def test_is_frozen(self) -> None:
        """States are replaced, never mutated."""
        state = WorkflowState()
        with pytest.raises(Exception):
            state.turn_count = 5  # type: ignore[misc]

    def test_is_finished(self) -> None:
        assert WorkflowState(next="FINISH").is_finished is True
        assert WorkflowState(next="Planner").is_finished is False


# =============================================================================
# Test: merge_state
# =============================================================================
class TestMergeState:
    """Tests for the pure reducer."""

    def test_messages_append(self) -> None:
        state = WorkflowState(messages=[Message.user("hi")])
        merged = merge_state(state, StateUpdate(messages=[Message.from_agent("Planner", "plan")]))
        assert [m.content for m in merged.messages] == ["hi", "plan"]

    def test_next_last_write_wins(self) -> None:
        merged = merge_state(WorkflowState(), StateUpdate(next="Designer"))
        assert merged.next == "Designer"

    def test_contributors_union_keeps_first_appearance_order(self) -> None:
        state = WorkflowState(contributors=["ProductManager", "Designer"])
        merged = merge_state(state, StateUpdate(contributors=["Designer", "Planner"]))
        assert merged.contributors == ["ProductManager", "Designer", "Planner"]

    def test_contributors_never_shrink(self) -> None:
        state = WorkflowState(contributors=["ProductManager"])
        merged = merge_state(state, StateUpdate(contributors=[]))
        assert merged.contributors == ["ProductManager"]

    def test_artifacts_append(self) -> None:
        merged = merge_state(WorkflowState(), StateUpdate(artifacts=[sample_prd()]))
        merged = merge_state(merged, StateUpdate(artifacts=[sample_prd()]))
        assert len(merged.artifacts) == 2

    def test_artifact_store_merges_by_slot(self) -> None:
        state = WorkflowState(
            artifact_store=ArtifactStore().store(sample_prd(), "ProductManager", now=1.0)
        )
        incoming = ArtifactStore().store(sample_design_spec(), "Designer", now=2.0)
        merged = merge_state(state, StateUpdate(artifact_store=incoming))
        assert merged.artifact_store.available() == [ArtifactKind.PRD, ArtifactKind.DESIGN_SPEC]
        assert merged.artifact_store.producers[ArtifactKind.DESIGN_SPEC] == "Designer"

    def test_turn_count_none_increments(self) -> None:
        """Passing turn_count=None explicitly means "current + 1"."""
        state = WorkflowState(turn_count=4)
        merged = merge_state(state, StateUpdate(turn_count=None))
        assert merged.turn_count == 5

    def test_turn_count_absent_is_untouched(self) -> None:
        state = WorkflowState(turn_count=4)
        merged = merge_state(state, StateUpdate(next="Planner"))
        assert merged.turn_count == 4

    def test_turn_count_explicit_value(self) -> None:
        merged = merge_state(WorkflowState(turn_count=4), StateUpdate(turn_count=9))
        assert merged.turn_count == 9

    def test_turn_count_cannot_decrease(self) -> None:
        with pytest.raises(StateError) as exc_info:
            merge_state(WorkflowState(turn_count=4), StateUpdate(turn_count=3))
        assert exc_info.value.error_code == "TURN_COUNT_DECREASED"

    def test_agent_retries_merge_per_key(self) -> None:
        state = WorkflowState(agent_retries={"Builder": 2, "Tester": 1})
        merged = merge_state(state, StateUpdate(agent_retries={"Builder": 0}))
        assert merged.agent_retries == {"Builder": 0, "Tester": 1}

    def test_last_error_can_be_cleared(self) -> None:
        state = WorkflowState(last_error="boom")
        assert merge_state(state, StateUpdate(last_error=None)).last_error is None
        assert merge_state(state, StateUpdate(next="Router")).last_error == "boom"

    def test_needs_retry_last_write_wins(self) -> None:
        merged = merge_state(WorkflowState(), StateUpdate(needs_retry=True))
        assert merged.needs_retry is True

    def test_empty_update_returns_same_state(self) -> None:
        state = WorkflowState()
        assert merge_state(state, StateUpdate()) is state

    def test_inputs_are_not_mutated(self) -> None:
        state = WorkflowState(messages=[Message.user("hi")], contributors=["Founder"])
        update = StateUpdate(
            messages=[Message.from_agent("Planner", "plan")],
            contributors=["Planner"],
            turn_count=None,
        )
        before_state = state.model_dump()
        before_update = update.model_dump()
        merge_state(state, update)
        assert state.model_dump() == before_state
        assert update.model_dump() == before_update

    def test_replay_is_deterministic(self) -> None:
        """Replaying the same updates from the same state gives equal results."""
        state = WorkflowState(conversation_id="conv-fixed")
        updates = [
            StateUpdate(next="Planner", turn_count=None),
            StateUpdate(messages=[Message.from_agent("Planner", "p")], contributors=["Planner"]),
            StateUpdate(agent_retries={"Planner": 1}, last_error="x"),
            StateUpdate(next="Router", turn_count=None),
        ]

        def replay() -> WorkflowState:
            current = state
            for update in updates:
                current = merge_state(current, update)
            return current

        assert replay() == replay()
        assert replay().turn_count == 2


# =============================================================================
# Test: initial_state
# =============================================================================
class TestInitialState:
    """Tests for building the first state of a request."""

    def test_appends_request_to_history(self) -> None:
        history = [Message.user("earlier"), Message.from_agent("Founder", "vision")]
        state = initial_state("build it", history)
        assert [m.content for m in state.messages] == ["earlier", "vision", "build it"]
        assert state.next == "Router"

    def test_keeps_given_conversation_id(self) -> None:
        assert initial_state("hi", conversation_id="conv-42").conversation_id == "conv-42"

    def test_custom_entry(self) -> None:
        assert initial_state("hi", entry="Planner").next == "Planner"

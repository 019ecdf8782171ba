"""Tests for the interaction session state machine."""

from __future__ import annotations

import asyncio

import pytest

from assignment_studio.core.errors import SessionStateError, UpstreamError
from assignment_studio.core.session import InteractionSession, SessionState

from conftest import FakeCompletionClient, evaluation_response, fenced

ESSAY_TEXT = "Consumers share responsibility for what they buy."


class GatedCompletionClient(FakeCompletionClient):
    """Holds every completion until ``gate`` is set"""

    def __init__(self, responses):
        super().__init__(responses)
        self.gate = None

    async def complete(self, prompt: str, max_output_tokens: int) -> str:
        await self.gate.wait()
        return await super().complete(prompt, max_output_tokens)


def _displaying_session(essay_data, *responses):
    client = FakeCompletionClient([fenced(essay_data), *responses])
    session = InteractionSession(client)
    asyncio.run(session.generate("labor rights", "essay"))
    return session


def test_full_round_trip(essay_data):
    session = InteractionSession(FakeCompletionClient([fenced(essay_data), evaluation_response(20, 15)]))
    assert session.state is SessionState.IDLE

    assignment = asyncio.run(session.generate("  labor rights ", "essay"))
    assert session.state is SessionState.DISPLAYING
    assert session.assignment is assignment
    assert session.topic == "labor rights"
    assert session.kind.value == "essay"

    session.begin_submission()
    assert session.state is SessionState.SUBMITTING

    result = asyncio.run(session.submit({"type": "essay", "text": ESSAY_TEXT}))
    assert session.state is SessionState.SHOWING_RESULTS
    assert session.result is result
    assert result.percentage == 70

    session.back()
    assert session.state is SessionState.DISPLAYING
    assert session.result is None
    assert session.assignment is assignment


def test_failed_generation_returns_to_idle_with_error():
    session = InteractionSession(FakeCompletionClient(["not json at all"]))

    assert asyncio.run(session.generate("tides", "essay")) is None
    assert session.state is SessionState.IDLE
    assert "couldn't be parsed" in session.error
    assert session.assignment is None


def test_invalid_generation_input_sets_error_without_llm_call():
    client = FakeCompletionClient()
    session = InteractionSession(client)

    asyncio.run(session.generate("", "essay"))

    assert session.state is SessionState.IDLE
    assert session.error == "Please provide a search query to generate an assignment."
    assert client.calls == []


def test_failed_evaluation_returns_to_submitting_with_error(essay_data):
    session = _displaying_session(essay_data)
    session.client.error = UpstreamError("The AI service is temporarily unavailable", upstream_status=503)
    session.begin_submission()

    assert asyncio.run(session.submit({"type": "essay", "text": ESSAY_TEXT})) is None
    assert session.state is SessionState.SUBMITTING
    assert session.error == "The AI service is temporarily unavailable"
    assert session.assignment is not None


def test_incomplete_submission_stays_in_submitting(essay_data):
    session = _displaying_session(essay_data)
    session.begin_submission()

    asyncio.run(session.submit({"type": "essay", "text": ""}))

    assert session.state is SessionState.SUBMITTING
    assert "provide your submission" in session.error


def test_cancel_submission_returns_to_displaying(essay_data):
    session = _displaying_session(essay_data)
    session.begin_submission()
    session.cancel_submission()

    assert session.state is SessionState.DISPLAYING


def test_start_new_clears_everything(essay_data):
    session = _displaying_session(essay_data)

    session.start_new()

    assert session.state is SessionState.IDLE
    assert session.assignment is None
    assert session.topic is None
    assert session.kind is None


def test_start_new_during_generation_drops_late_result(essay_data):
    client = GatedCompletionClient([fenced(essay_data)])
    session = InteractionSession(client)

    async def scenario():
        client.gate = asyncio.Event()
        pending = asyncio.create_task(session.generate("labor rights", "essay"))
        await asyncio.sleep(0)
        assert session.state is SessionState.GENERATING

        session.start_new()
        client.gate.set()
        return await pending

    assert asyncio.run(scenario()) is None
    assert session.state is SessionState.IDLE
    assert session.assignment is None


def test_start_new_during_evaluation_drops_late_result(essay_data):
    client = GatedCompletionClient([fenced(essay_data), evaluation_response(20, 20)])
    session = InteractionSession(client)

    async def scenario():
        client.gate = asyncio.Event()
        client.gate.set()
        await session.generate("labor rights", "essay")
        session.begin_submission()

        client.gate.clear()
        pending = asyncio.create_task(session.submit({"type": "essay", "text": ESSAY_TEXT}))
        await asyncio.sleep(0)
        assert session.state is SessionState.EVALUATING

        session.start_new()
        client.gate.set()
        return await pending

    assert asyncio.run(scenario()) is None
    assert session.state is SessionState.IDLE
    assert session.result is None


@pytest.mark.parametrize("action", ["begin_submission", "cancel_submission", "back"])
def test_illegal_transitions_from_idle_raise(action):
    session = InteractionSession(FakeCompletionClient())

    with pytest.raises(SessionStateError, match="while idle"):
        getattr(session, action)()


def test_submit_requires_submitting_state(essay_data):
    session = _displaying_session(essay_data)

    with pytest.raises(SessionStateError):
        asyncio.run(session.submit({"type": "essay", "text": ESSAY_TEXT}))
    assert session.state is SessionState.DISPLAYING


def test_generate_requires_idle_state(essay_data):
    session = _displaying_session(essay_data)

    with pytest.raises(SessionStateError, match="while displaying"):
        asyncio.run(session.generate("tides", "essay"))

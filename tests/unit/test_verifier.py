"""
tests/unit/test_verifier.py
Local success signal and oracle confirmation.
"""
import json

import pytest

from revcore.agent.verifier import GoalVerifier, has_local_signal, is_affirmative
from revcore.base.models import Action, Goal, Run
from revcore.errors import OracleUnavailable

GOAL = Goal(target="https://example.com", objective="Find all API endpoints")


@pytest.mark.parametrize("result, expected", [
    ({"success": True}, True),
    ({"data": [1, 2]}, True),
    ({"found": "/api/users"}, True),
    ({"data": []}, True),
    ({"data": {}}, True),
    ({"found": []}, True),
    ({"success": False, "data": []}, True),
    ({"success": False, "data": None}, False),
    ({"success": False, "found": None}, False),
    ({"captured": 3}, False),
    ({}, False),
    (None, False),
    ("success", False),
    ([{"success": True}], False),
])
def test_has_local_signal(result, expected):
    assert has_local_signal(result) is expected


@pytest.mark.parametrize("text, expected", [
    ("Yes, the endpoints were found.", True),
    ("The goal has been accomplished.", True),
    ("Success: all APIs are mapped", True),
    ("The run was successful", True),
    ("No, nothing was found yet.", False),
    ("The goal has not been accomplished.", False),
    ("It was not successful", False),
    ("The attempt was unsuccessful", False),
    ("Yes, the goal has been accomplished; one request was unsuccessful.", True),
    ("Yes. All endpoints were found, although the script injection was not successful.", True),
    ("The endpoints were mapped successfully, but the injection was not successful.", True),
    ("No. The earlier step succeeded but nothing was found.", False),
    ("The goal has not yet been accomplished.", False),
    ("Keep going, more steps are needed", False),
    ("", False),
])
def test_is_affirmative(text, expected):
    assert is_affirmative(text) is expected


def _run_with_steps(count: int) -> Run:
    run = Run(goal=GOAL)
    for i in range(count):
        run.record(Action("intercept", f"tool-{i}", {"url": GOAL.target}), result={"i": i}, succeeded=True)
    return run


@pytest.mark.asyncio
async def test_verify_uses_oracle_confidence(scripted_oracle):
    oracle, backend = scripted_oracle(verify="Yes, accomplished.", verify_confidence=0.8)
    run = _run_with_steps(1)

    verification = await GoalVerifier(oracle).verify(GOAL, run.steps)

    assert verification.success
    assert verification.confidence == 0.8
    assert verification.result == {"i": 0}
    assert "Has the goal been accomplished?" in backend.prompts[0]


@pytest.mark.asyncio
async def test_verify_prompt_summarizes_last_three_steps(scripted_oracle):
    oracle, backend = scripted_oracle(verify="no")
    run = _run_with_steps(5)

    await GoalVerifier(oracle, window=10).verify(GOAL, run.steps)

    steps_line = next(line for line in backend.prompts[0].splitlines() if line.startswith("Steps taken: "))
    summaries = json.loads(steps_line[len("Steps taken: "):])
    assert [s["tool"] for s in summaries] == ["tool-2", "tool-3", "tool-4"]


@pytest.mark.asyncio
async def test_verify_negative_answer(scripted_oracle):
    oracle, _ = scripted_oracle(verify="The goal has not been accomplished.", verify_confidence=0.9)
    verification = await GoalVerifier(oracle).verify(GOAL, _run_with_steps(2).steps)
    assert not verification.success
    assert verification.confidence == 0.9


@pytest.mark.asyncio
async def test_verify_with_failed_oracle_is_neutral(raising_oracle):
    oracle, _ = raising_oracle(OracleUnavailable("down"))
    verification = await GoalVerifier(oracle).verify(GOAL, _run_with_steps(1).steps)
    assert not verification.success
    assert verification.confidence == 0.5


@pytest.mark.asyncio
async def test_verify_offline_never_succeeds(offline_oracle):
    verification = await GoalVerifier(offline_oracle).verify(GOAL, [])
    assert not verification.success
    assert verification.result is None
    assert verification.confidence == 0.5


@pytest.mark.asyncio
async def test_non_authoritative_accepts_local_signal(raising_oracle):
    oracle, backend = raising_oracle(OracleUnavailable("down"))
    run = Run(goal=GOAL)
    run.record(Action("analyze", "dom-analyzer"), result={"success": True, "data": {}}, succeeded=True)

    verification = await GoalVerifier(oracle).verify(GOAL, run.steps, authoritative=False)

    assert verification.success
    assert backend.calls == 0


def test_local_check_requires_successful_step():
    run = Run(goal=GOAL)
    step = run.record(Action("analyze", "dom-analyzer"), result={"success": True}, succeeded=False)
    assert not GoalVerifier(None).local_check(step)

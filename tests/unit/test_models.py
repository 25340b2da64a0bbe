"""
tests/unit/test_models.py
Run state machine and step bookkeeping.
"""
import pytest

from revcore.base.models import ALLOWED_TRANSITIONS, Action, Goal, Run, RunStatus, Specialization
from revcore.errors import InvalidTransition


def _goal():
    return Goal(target="https://example.com", objective="Find all API endpoints")


def test_goal_template_key_defaults_to_general():
    assert _goal().template_key is Specialization.GENERAL
    goal = Goal("https://example.com", "x", Specialization.UI_REPLICATION)
    assert goal.template_key is Specialization.UI_REPLICATION
    assert goal.to_dict()["specialization"] == "ui-replication"


def test_new_run_starts_planning_with_nothing_decided():
    run = Run(goal=_goal())
    assert run.status is RunStatus.PLANNING
    assert run.transitions == [RunStatus.PLANNING]
    assert run.result is None
    assert run.confidence is None
    assert not run.finished


def test_record_assigns_consecutive_indices():
    run = Run(goal=_goal())
    action = Action("intercept", "network-monitor", {"url": "https://example.com"})
    for _ in range(4):
        run.record(action, succeeded=True)
    run.strategy = "alternative-1"
    step = run.record(action, error="boom")
    assert [s.index for s in run.steps] == [1, 2, 3, 4, 5]
    assert step.strategy == "alternative-1"
    assert run.successful_steps == 4


def test_terminal_states_have_no_exits():
    assert ALLOWED_TRANSITIONS[RunStatus.COMPLETED] == frozenset()
    assert ALLOWED_TRANSITIONS[RunStatus.FAILED] == frozenset()


def test_completed_run_cannot_return_to_planning():
    run = Run(goal=_goal())
    run.transition(RunStatus.EXECUTING)
    run.transition(RunStatus.VERIFYING)
    run.complete({"found": True}, 0.8)
    assert run.finished and run.finished_at is not None

    with pytest.raises(InvalidTransition):
        run.transition(RunStatus.PLANNING)
    assert run.transitions == [RunStatus.PLANNING, RunStatus.EXECUTING, RunStatus.VERIFYING, RunStatus.COMPLETED]


def test_fail_is_terminal_and_keeps_result_unset():
    run = Run(goal=_goal())
    run.transition(RunStatus.EXECUTING)
    run.fail()
    assert run.status is RunStatus.FAILED
    assert run.finished and run.finished_at is not None
    assert run.result is None

    with pytest.raises(InvalidTransition):
        run.complete({"found": True}, 0.9)
    assert run.confidence is None


def test_planning_cannot_skip_to_verifying():
    run = Run(goal=_goal())
    with pytest.raises(InvalidTransition):
        run.transition(RunStatus.VERIFYING)


def test_same_status_is_a_no_op():
    run = Run(goal=_goal())
    run.transition(RunStatus.PLANNING)
    assert run.transitions == [RunStatus.PLANNING]


@pytest.mark.parametrize("raw, expected", [(1.7, 1.0), (-0.2, 0.0), (0.42, 0.42)])
def test_complete_clamps_confidence(raw, expected):
    run = Run(goal=_goal())
    run.transition(RunStatus.EXECUTING)
    run.complete("done", raw)
    assert run.confidence == expected


def test_to_dict_is_json_friendly():
    run = Run(goal=_goal())
    run.record(Action("analyze", "dom-analyzer", {"url": "https://example.com"}), result={"data": {"x": 1}},
               succeeded=True)
    data = run.to_dict()
    assert data["status"] == "planning"
    assert data["steps"][0]["action"]["capability"] == "dom-analyzer"
    assert data["transitions"] == ["planning"]


def test_step_summary_truncates_result():
    run = Run(goal=_goal())
    step = run.record(Action("analyze", "dom-analyzer"), result={"blob": "a" * 1000}, succeeded=True)
    summary = step.summary(preview_chars=50)
    assert summary["step"] == 1
    assert summary["tool"] == "dom-analyzer"
    assert len(summary["result_preview"]) == 50

"""
tests/unit/test_planner.py
Action planner: keyword rules, never-empty plans and the fallback pair.
"""
import json
import re

import pytest

from revcore.agent.planner import (
    BASE_RULES,
    ActionPlanner,
    ActionRule,
    build_context,
    extract_script,
    fallback_actions,
    serialize_context,
)
from revcore.ai.oracle import OracleVerdict
from revcore.base.models import Action, Goal, Run, Specialization
from revcore.errors import OracleUnavailable

GOAL = Goal(target="https://example.com", objective="Find all API endpoints")


def _answer(text: str) -> OracleVerdict:
    return OracleVerdict(verdict=text, content=text, confidence=0.7)


def _capabilities(actions):
    return [a.capability for a in actions]


@pytest.fixture
def planner(offline_oracle):
    return ActionPlanner(offline_oracle)


@pytest.mark.parametrize("text, expected", [
    ("Watch the network tab", ["network-monitor"]),
    ("Call the API directly", ["network-monitor"]),
    ("Enumerate each endpoint", ["network-monitor"]),
    ("Inject a small JavaScript hook", ["script-injector"]),
    ("Walk the DOM and extract every form element", ["dom-analyzer"]),
    ("Look for an auth token or API key", ["network-monitor", "api-key-finder"]),
])
def test_single_and_combined_triggers(planner, text, expected):
    assert _capabilities(planner.parse(_answer(text), GOAL)) == expected


def test_all_triggers_fire_in_rule_order(planner):
    text = "Inject a script, capture network calls, extract DOM elements and hunt for tokens"
    actions = planner.parse(_answer(text), GOAL)
    assert _capabilities(actions) == [r.capability for r in BASE_RULES]
    assert [a.kind for a in actions] == ["intercept", "inject", "analyze", "discover"]
    assert all(a.parameters["url"] == GOAL.target for a in actions)


def test_trigger_words_need_word_boundaries(planner):
    # "capital", "monkey", "random" and "keyboard" must not look like api/key/dom
    actions = planner.parse(_answer("Check the capital, the monkey, a random keyboard"), GOAL)
    assert _capabilities(actions) == ["general-explorer"]


@pytest.mark.parametrize("text", ["", "Nothing obvious to do here."])
def test_no_trigger_yields_single_explore_action(planner, text):
    actions = planner.parse(_answer(text), GOAL)
    assert len(actions) == 1
    assert actions[0].kind == "explore"
    assert actions[0].rationale == text
    assert actions[0].parameters == {"url": GOAL.target, "objective": GOAL.objective}


def test_fenced_script_becomes_injection_parameter(planner):
    text = "Inject this:\n```javascript\nwindow.__hits = [];\n```\n"
    actions = planner.parse(_answer(text), GOAL)
    injector = next(a for a in actions if a.capability == "script-injector")
    assert injector.parameters["script"] == "window.__hits = [];"


def test_script_comes_from_first_js_block_not_earlier_fence(planner):
    text = "Inject a hook. Config first:\n```json\n{}\n```\nthen run it\n```js\nconsole.log(1)```"
    actions = planner.parse(_answer(text), GOAL)
    injector = next(a for a in actions if a.capability == "script-injector")
    assert injector.parameters["script"] == "console.log(1)"


@pytest.mark.parametrize("text, expected", [
    ("```\nwindow.x = 1;\n```", "window.x = 1;"),
    ("```python\nprint(1)\n```\n```\nwindow.x = 1;\n```", "window.x = 1;"),
    ("```\nplain\n```\n```JavaScript\nwindow.y = 2;\n```", "window.y = 2;"),
    ("```json\n{}\n```", None),
    ("no code at all", None),
])
def test_extract_script(text, expected):
    assert extract_script(text) == expected


def test_specialization_rules_append_after_base(planner):
    goal = Goal("https://example.com", "List routes", Specialization.ENDPOINT_ENUMERATION)
    actions = planner.parse(_answer("Check the network for every route"), goal)
    assert _capabilities(actions) == ["network-monitor", "endpoint-enumerator"]


def test_ui_replication_rule_carries_selectors(planner):
    goal = Goal("https://example.com", "Clone the header", Specialization.UI_REPLICATION)
    actions = planner.parse(_answer("Copy the CSS of each component"), goal)
    ui = next(a for a in actions if a.kind == "extract")
    assert ui.capability == "dom-analyzer"
    assert "button" in ui.parameters["selectors"]


def test_other_specializations_only_use_base_rules(planner):
    goal = Goal("https://example.com", "x", Specialization.DATA_EXTRACTION)
    assert _capabilities(planner.parse(_answer("every route and css component"), goal)) == ["general-explorer"]


def test_extra_rules_extend_a_specialization(offline_oracle):
    storage = ActionRule(
        name="storage",
        pattern=re.compile(r"localstorage|cookie", re.IGNORECASE),
        kind="extract",
        capability="storage-reader",
        rationale="Read client-side storage",
        parameters={"scope": "all"},
    )
    planner = ActionPlanner(offline_oracle, extra_rules={Specialization.DATA_EXTRACTION: [storage]})
    goal = Goal("https://example.com", "Pull saved carts", Specialization.DATA_EXTRACTION)

    actions = planner.parse(_answer("Check the network and every cookie"), goal)

    assert _capabilities(actions) == ["network-monitor", "storage-reader"]
    assert actions[1].parameters == {"url": goal.target, "scope": "all"}
    # The module-level table is left alone
    assert _capabilities(ActionPlanner(offline_oracle).parse(_answer("cookie"), goal)) == ["general-explorer"]


@pytest.mark.asyncio
async def test_plan_uses_specialization_template_and_context(scripted_oracle):
    oracle, backend = scripted_oracle(plan="Monitor the network")
    goal = Goal("https://example.com", "Find the login bypass", Specialization.AUTHENTICATION_BYPASS)
    run = Run(goal=goal, strategy="brute-force", attempts=2)

    actions = await ActionPlanner(oracle).plan(goal, build_context(run))

    assert _capabilities(actions) == ["network-monitor"]
    assert "authentication bypass agent" in backend.prompts[0]
    context = json.loads(backend.contexts[0])
    assert context == {"previous_steps": [], "current_strategy": "brute-force", "attempts": 2}


@pytest.mark.asyncio
async def test_plan_falls_back_when_oracle_fails(raising_oracle):
    oracle, backend = raising_oracle(OracleUnavailable("oracle down"))
    actions = await ActionPlanner(oracle).plan(GOAL, {})

    assert backend.calls == 1
    assert _capabilities(actions) == ["network-monitor", "dom-analyzer"]
    assert [a.kind for a in actions] == ["intercept", "analyze"]


@pytest.mark.asyncio
async def test_plan_falls_back_when_offline(planner):
    assert _capabilities(await planner.plan(GOAL, {})) == _capabilities(fallback_actions(GOAL))


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "   ", "zzz", "Inject", "network DOM key script"])
async def test_plan_is_never_empty(scripted_oracle, text):
    oracle, _ = scripted_oracle(plan=text)
    assert await ActionPlanner(oracle).plan(GOAL, {})


def test_fallback_actions_are_fresh_objects():
    first, second = fallback_actions(GOAL), fallback_actions(GOAL)
    first[0].parameters["url"] = "changed"
    assert second[0].parameters["url"] == GOAL.target


def test_serialize_context_keeps_latest_tail():
    run = Run(goal=GOAL)
    for _ in range(50):
        run.record(Action("intercept", "network-monitor", {"url": GOAL.target}), result={"x": "y" * 100})
    text = serialize_context(build_context(run), max_chars=500)
    assert len(text) == 500
    assert text.startswith("...")
    assert text.endswith('"attempts": 0}')

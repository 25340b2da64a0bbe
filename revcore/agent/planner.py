"""
Action Planner.

Asks the oracle what to do next and turns the free-text answer into Actions.

Parsing is an ordered list of independent rules (predicate -> Action). Every
rule is evaluated against the answer; several can fire for one answer and
they are emitted in rule order. Specializations append their own rules after
the base four, so adding one never reorders the others.

Guarantees:
- a working oracle always yields at least one Action (generic "explore")
- a failed/degraded oracle yields the fixed two-Action fallback
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Pattern

from revcore.agent.prompts import planning_prompt
from revcore.ai.oracle import OracleAdapter, OracleVerdict
from revcore.base.models import Action, Goal, Run, Specialization
from revcore.toolkit import (
    API_KEY_FINDER,
    DOM_ANALYZER,
    ENDPOINT_ENUMERATOR,
    GENERAL_EXPLORER,
    NETWORK_MONITOR,
    SCRIPT_INJECTOR,
)

logger = logging.getLogger(__name__)

_FENCED_BLOCK_RE = re.compile(r"```(?P<lang>[\w+#.-]*)[ \t]*\n(?P<code>.*?)```", re.DOTALL)
_SCRIPT_LANGS = ("js", "javascript")


def extract_script(text: str) -> Optional[str]:
    """First fenced block tagged js/javascript, else the first untagged block."""
    untagged = None
    for block in _FENCED_BLOCK_RE.finditer(text or ""):
        lang = block.group("lang").lower()
        if lang in _SCRIPT_LANGS:
            return block.group("code").strip()
        if not lang and untagged is None:
            untagged = block.group("code").strip()
    return untagged


def _words(*alternatives: str) -> Pattern:
    """Case-insensitive match of whole words (letters around the hit break it)."""
    joined = "|".join(alternatives)
    return re.compile(rf"(?<![a-z])(?:{joined})(?![a-z])", re.IGNORECASE)


@dataclass(frozen=True)
class ActionRule:
    """
    One keyword trigger.

    Attributes:
        name: Rule identifier (logged)
        pattern: Searched in the oracle's answer
        kind: Action.kind emitted when the rule fires
        capability: Registry key the Action targets
        rationale: Action.rationale
        parameters: Extra parameters merged over {"url": target}
    """
    name: str
    pattern: Pattern
    kind: str
    capability: str
    rationale: str
    parameters: Mapping[str, Any] = field(default_factory=dict)

    def matches(self, text: str) -> bool:
        return bool(self.pattern.search(text))

    def build(self, goal: Goal) -> Action:
        params: Dict[str, Any] = {"url": goal.target}
        params.update(self.parameters)
        return Action(kind=self.kind, capability=self.capability, parameters=params, rationale=self.rationale)


BASE_RULES: List[ActionRule] = [
    ActionRule(
        name="network",
        pattern=re.compile(r"network|endpoint|(?<![a-z])apis?(?![a-z])", re.IGNORECASE),
        kind="intercept",
        capability=NETWORK_MONITOR,
        rationale="Monitor network traffic to discover APIs",
    ),
    ActionRule(
        name="script",
        pattern=re.compile(r"script|inject", re.IGNORECASE),
        kind="inject",
        capability=SCRIPT_INJECTOR,
        rationale="Inject scripts to discover functionality",
    ),
    ActionRule(
        name="markup",
        pattern=re.compile(r"element|extract|(?<![a-z])dom(?![a-z])", re.IGNORECASE),
        kind="analyze",
        capability=DOM_ANALYZER,
        rationale="Analyze DOM structure",
    ),
    ActionRule(
        name="secrets",
        pattern=re.compile(r"token|auth|(?<![a-z])keys?(?![a-z])", re.IGNORECASE),
        kind="discover",
        capability=API_KEY_FINDER,
        rationale="Find API keys and tokens",
    ),
]

SPECIALIZATION_RULES: Dict[Specialization, List[ActionRule]] = {
    Specialization.ENDPOINT_ENUMERATION: [
        ActionRule(
            name="endpoint-scrape",
            pattern=_words("routes?", "paths?", "endpoints?", "urls?"),
            kind="enumerate",
            capability=ENDPOINT_ENUMERATOR,
            rationale="Scrape endpoint patterns from page scripts",
        ),
    ],
    Specialization.API_DISCOVERY: [
        ActionRule(
            name="endpoint-scrape",
            pattern=_words("fetch", "axios", "xhr", "ajax", "graphql"),
            kind="enumerate",
            capability=ENDPOINT_ENUMERATOR,
            rationale="Scrape client-side API call sites",
        ),
    ],
    Specialization.UI_REPLICATION: [
        ActionRule(
            name="ui-components",
            pattern=_words("ui", "css", "styles?", "components?", "layout"),
            kind="extract",
            capability=DOM_ANALYZER,
            rationale="Extract interactive UI components",
            parameters={"selectors": ["button", "a", "input", "select", "textarea"]},
        ),
    ],
}


def build_context(run: Run, preview_chars: int = 300) -> Dict[str, Any]:
    """Planning context for the next attempt of `run`."""
    return {
        "previous_steps": [s.summary(preview_chars) for s in run.steps],
        "current_strategy": run.strategy,
        "attempts": run.attempts,
    }


def serialize_context(context: Dict[str, Any], max_chars: int = 8000) -> str:
    text = json.dumps(context, default=str)
    if max_chars and len(text) > max_chars:
        # Keep the tail: the latest steps matter most
        text = "..." + text[-(max_chars - 3):]
    return text


def fallback_actions(goal: Goal) -> List[Action]:
    """Fixed plan used whenever the oracle could not be consulted."""
    return [
        Action(
            kind="intercept",
            capability=NETWORK_MONITOR,
            parameters={"url": goal.target},
            rationale="Default: Start with network monitoring",
        ),
        Action(
            kind="analyze",
            capability=DOM_ANALYZER,
            parameters={"url": goal.target},
            rationale="Default: Analyze page structure",
        ),
    ]


class ActionPlanner:
    def __init__(self, oracle: OracleAdapter, max_context_chars: int = 8000,
                 extra_rules: Optional[Dict[Specialization, List[ActionRule]]] = None):
        self.oracle = oracle
        self.max_context_chars = max_context_chars
        self.specialization_rules: Dict[Specialization, List[ActionRule]] = {
            key: list(rules) for key, rules in SPECIALIZATION_RULES.items()
        }
        for key, rules in (extra_rules or {}).items():
            self.specialization_rules.setdefault(key, []).extend(rules)

    def rules_for(self, specialization: Specialization) -> List[ActionRule]:
        return BASE_RULES + self.specialization_rules.get(specialization, [])

    async def plan(self, goal: Goal, context: Dict[str, Any]) -> List[Action]:
        serialized = serialize_context(context, self.max_context_chars)
        prompt = planning_prompt(goal.template_key, goal.target, goal.objective, serialized)

        answer = await self.oracle.reason(prompt, serialized)
        if answer.degraded:
            logger.warning(f"[Planner] Oracle unavailable ({answer.error}); using fallback plan")
            return fallback_actions(goal)

        actions = self.parse(answer, goal)
        logger.info(f"[Planner] Planned {len(actions)} action(s): {[a.capability for a in actions]}")
        return actions

    def parse(self, answer: OracleVerdict, goal: Goal) -> List[Action]:
        """Run every rule over the answer; never returns an empty list."""
        text = answer.verdict or answer.content or ""
        actions: List[Action] = []

        for rule in self.rules_for(goal.template_key):
            if rule.matches(text):
                actions.append(rule.build(goal))

        script = extract_script(answer.content or text)
        if script:
            for action in actions:
                if action.capability == SCRIPT_INJECTOR:
                    action.parameters["script"] = script

        if not actions:
            actions.append(Action(
                kind="explore",
                capability=GENERAL_EXPLORER,
                parameters={"url": goal.target, "objective": goal.objective},
                rationale=text,
            ))

        return actions

"""
Goal Verifier.

Two tiers, cheapest first:

1. Local signal: a step result that is a non-empty mapping with a truthy
   "success", or a "data" or "found" key that is present and not None. No
   oracle call.
2. Oracle confirmation: the objective plus the last few steps go to the
   oracle. A leading "yes" or "no" decides; otherwise any affirmative word
   ("accomplished", "success", ...) that is not itself negated counts as
   success, with the oracle's confidence.

A degraded oracle answer never confirms anything and reports 0.5.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence

from revcore.agent.prompts import VERIFICATION_TEMPLATE
from revcore.ai.oracle import OracleAdapter
from revcore.base.models import Goal, Step

logger = logging.getLogger(__name__)

UNAVAILABLE_CONFIDENCE = 0.5
PRESENCE_SIGNAL_KEYS = ("data", "found")

_LEADING_YES_RE = re.compile(r"^\W*yes(?![a-z])", re.IGNORECASE)
_LEADING_NO_RE = re.compile(r"^\W*no(?![a-z])", re.IGNORECASE)
_AFFIRMATIVE_RE = re.compile(r"(?<![a-z])(?:yes|accomplished|success(?:ful(?:ly)?)?|succeeded)(?![a-z])", re.IGNORECASE)
# Matched against the text right before an affirmative word
_NEGATION_TAIL_RE = re.compile(
    r"(?<![a-z])(?:not|never|hasn't|has not|wasn't|was not|isn't|is not)\s+(?:(?:yet|been|fully|entirely)\s+)*$",
    re.IGNORECASE,
)


@dataclass
class Verification:
    success: bool
    result: Any = None
    confidence: float = 0.0


def has_local_signal(result: Any) -> bool:
    """True when a step result on its own indicates the goal's evidence was found."""
    if not isinstance(result, Mapping) or not result:
        return False
    if result.get("success"):
        return True
    return any(result.get(key) is not None for key in PRESENCE_SIGNAL_KEYS)


def is_affirmative(text: str) -> bool:
    if not text:
        return False
    if _LEADING_YES_RE.search(text):
        return True
    if _LEADING_NO_RE.search(text):
        return False
    return any(
        not _NEGATION_TAIL_RE.search(text[:m.start()])
        for m in _AFFIRMATIVE_RE.finditer(text)
    )


class GoalVerifier:
    def __init__(self, oracle: OracleAdapter, window: int = 3):
        self.oracle = oracle
        self.window = max(1, min(3, window))

    def local_check(self, step: Step) -> bool:
        return step.succeeded and has_local_signal(step.result)

    def _summaries(self, steps: Sequence[Step]) -> List[dict]:
        return [
            {
                "action": s.action.kind,
                "tool": s.action.capability,
                "success": s.succeeded,
                "error": s.error,
            }
            for s in steps[-self.window:]
        ]

    async def verify(self, goal: Goal, steps: Sequence[Step], authoritative: bool = True) -> Verification:
        """
        Decide whether the goal has been met.

        Args:
            goal: The run's goal
            steps: Every step recorded so far
            authoritative: When False, a local signal on the latest step is
                accepted without asking the oracle
        """
        last_result: Optional[Any] = steps[-1].result if steps else None

        if not authoritative and steps and self.local_check(steps[-1]):
            return Verification(success=True, result=last_result, confidence=UNAVAILABLE_CONFIDENCE)

        prompt = VERIFICATION_TEMPLATE.format(
            objective=goal.objective,
            target=goal.target,
            steps=json.dumps(self._summaries(steps), default=str),
        )
        answer = await self.oracle.reason(prompt)

        if answer.degraded:
            logger.warning(f"[Verifier] Oracle unavailable ({answer.error}); goal not confirmed")
            return Verification(success=False, result=last_result, confidence=UNAVAILABLE_CONFIDENCE)

        success = is_affirmative(answer.verdict or answer.content)
        logger.info(f"[Verifier] Oracle says success={success} (confidence {answer.confidence:.2f})")
        return Verification(success=success, result=last_result, confidence=answer.confidence)

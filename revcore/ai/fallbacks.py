#
# PURPOSE:
# Heuristic oracle backend for when no reasoning oracle is configured.
# Implements the same reason() contract as the remote backend so the agent
# always has *something* to act on.
#
# HOW IT DECIDES:
# An ordered list of keyword rules is matched against the prompt; the first
# rule whose markers appear wins. The answer text is fixed per rule, so the
# same prompt always yields the same verdict.
#
# KEY CONCEPTS:
# - Graceful Degradation: never raise, never hang
# - Every verdict is flagged degraded: planners fall back to their fixed
#   action sequence, verifiers never report success on offline evidence
#

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from revcore.ai.oracle import OracleVerdict, ReasoningBackend
from revcore.base.config import PROVIDER_OFFLINE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HeuristicRule:
    """
    One offline answer.

    Attributes:
        name: Rule identifier (logged)
        markers: Lowercase phrases; any of them in the prompt selects the rule
        verdict: Fixed answer text
        confidence: Reported confidence (0.0-1.0)
    """
    name: str
    markers: Tuple[str, ...]
    verdict: str
    confidence: float


class HeuristicRules:
    """
    Static rule table, most specific first.

    Philosophy: when in doubt, capture traffic and read the page structure.
    """

    RULES: List[HeuristicRule] = [
        HeuristicRule(
            name="verification",
            markers=("has the goal been accomplished",),
            verdict="Offline mode: unable to confirm the objective without a reasoning oracle.",
            confidence=0.3,
        ),
        HeuristicRule(
            name="strategy",
            markers=("alternative strategy",),
            verdict="",
            confidence=0.0,
        ),
    ]

    DEFAULT = HeuristicRule(
        name="planning",
        markers=(),
        verdict="Start by monitoring network traffic on the target, then analyze the DOM structure of the page.",
        confidence=0.3,
    )

    @classmethod
    def match(cls, prompt: str) -> HeuristicRule:
        lowered = (prompt or "").lower()
        for rule in cls.RULES:
            if any(marker in lowered for marker in rule.markers):
                return rule
        return cls.DEFAULT


class OfflineBackend(ReasoningBackend):
    """Deterministic keyword-matched stand-in for the reasoning oracle."""

    name = PROVIDER_OFFLINE
    model = "heuristic"

    async def reason(self, prompt: str, context: Optional[str] = None) -> OracleVerdict:
        rule = HeuristicRules.match(prompt)
        logger.debug(f"[Oracle] Offline rule '{rule.name}' answered")
        return OracleVerdict(
            verdict=rule.verdict,
            content=rule.verdict,
            confidence=rule.confidence,
            degraded=True,
            error="no reasoning oracle configured",
        )

#
# PURPOSE:
# Drives one goal to a terminal status: plan -> execute -> verify, retried
# under a different strategy label until the attempt budget runs out.
#
# STATE MACHINE (see revcore/base/models.py ALLOWED_TRANSITIONS):
#   planning -> executing -> verifying -> planning | completed | failed
#   executing -> completed      local-signal short-circuit
#   executing -> planning       an attempt raised; counts as a failed attempt
#
# KEY CONCEPTS:
# - Attempt: one full planning/executing/verifying pass under one strategy
# - Step: one dispatched Action; recorded whether it succeeded or raised
# - The Run is an explicit value owned by a single run() call. The
#   orchestrator itself only holds read-only collaborators, so several runs
#   can share one orchestrator, registry and oracle concurrently.
#
# FAILURE POLICY:
# A capability failure becomes Step.error and the attempt moves on to its
# next Action. Anything else raised inside an attempt is logged and the
# attempt is counted as failed. Callers always get a Run with a terminal
# status back; only a malformed Goal is raised.
#

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from revcore.agent.dispatcher import ActionDispatcher
from revcore.agent.planner import ActionPlanner, build_context
from revcore.agent.prompts import STRATEGY_TEMPLATE
from revcore.agent.verifier import GoalVerifier
from revcore.ai.oracle import OracleAdapter
from revcore.base.config import RevConfig, get_config
from revcore.base.models import Goal, Run, RunStatus, Step
from revcore.errors import ErrorCode, RevError
from revcore.toolkit.registry import CapabilityLike, CapabilityRegistry
from revcore.utils.observer import Signal

logger = logging.getLogger(__name__)

DEFAULT_STRATEGIES = ("primary", "alternative-1", "alternative-2", "brute-force", "deep-analysis")
FALLBACK_STRATEGY = "fallback"
MAX_STRATEGY_CHARS = 80

SHORT_CIRCUIT_BASE = 0.5
SHORT_CIRCUIT_SPAN = 0.45
SHORT_CIRCUIT_CEILING = 0.95


def short_circuit_confidence(run: Run) -> float:
    """Confidence for a run completed by a local signal, from its step success ratio."""
    total = len(run.steps)
    if not total:
        return SHORT_CIRCUIT_BASE
    ratio = run.successful_steps / total
    return min(SHORT_CIRCUIT_CEILING, SHORT_CIRCUIT_BASE + ratio * SHORT_CIRCUIT_SPAN)


def strategy_label(text: str) -> Optional[str]:
    """First non-empty line of an oracle answer, stripped of markdown, max 80 chars."""
    for line in (text or "").splitlines():
        label = line.strip().strip("#*`->\"' ").strip()
        if label:
            return label[:MAX_STRATEGY_CHARS]
    return None


def validate_goal(goal: Goal) -> None:
    if not isinstance(goal, Goal):
        raise RevError(ErrorCode.RUN_INVALID_GOAL, f"Expected a Goal, got {type(goal).__name__}")
    if not (goal.target or "").strip():
        raise RevError(ErrorCode.RUN_INVALID_GOAL, "Goal target must not be empty", details=goal.to_dict())
    if not (goal.objective or "").strip():
        raise RevError(ErrorCode.RUN_INVALID_GOAL, "Goal objective must not be empty", details=goal.to_dict())


class StrategyOrchestrator:
    """
    Runs goals against a capability registry with the help of an oracle.

    Progress is published on `progress` as (run, event, payload) with
    event in {"status", "strategy", "step"}.
    """

    def __init__(
        self,
        registry: CapabilityRegistry,
        oracle: Optional[OracleAdapter] = None,
        config: Optional[RevConfig] = None,
        strategies: Sequence[str] = DEFAULT_STRATEGIES,
    ):
        self.config = config or get_config()
        self.registry = registry
        self.oracle = oracle or OracleAdapter.from_config(self.config.oracle)
        self.strategies = tuple(strategies)

        agent = self.config.agent
        self.planner = ActionPlanner(self.oracle, max_context_chars=agent.max_context_chars)
        self.dispatcher = ActionDispatcher(timeout=agent.capability_timeout)
        self.verifier = GoalVerifier(self.oracle, window=agent.verification_window)

        self.progress = Signal()

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _set_status(self, run: Run, status: RunStatus) -> None:
        if run.status == status:
            return
        previous = run.status
        run.transition(status)
        logger.info(f"[Orchestrator] {previous.value} -> {status.value}")
        self.progress.emit(run, "status", {"status": status.value, "attempt": run.attempts + 1})

    def _record(self, run: Run, action, result: Any = None, succeeded: bool = False,
                error: Optional[str] = None) -> Step:
        step = run.record(action, result=result, succeeded=succeeded, error=error)
        self.progress.emit(run, "step", step.summary())
        return step

    def strategy_for(self, attempt_index: int, overrides: Mapping[int, str]) -> str:
        if attempt_index in overrides:
            return overrides[attempt_index]
        if attempt_index < len(self.strategies):
            return self.strategies[attempt_index]
        return FALLBACK_STRATEGY

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    async def run(self, goal: Goal, attempt_budget: Optional[int] = None) -> Run:
        """
        Drive `goal` to completed or failed.

        Raises:
            RevError(RUN_INVALID_GOAL): the goal has no target or objective
        """
        validate_goal(goal)
        budget = self.config.agent.attempt_budget if attempt_budget is None else attempt_budget
        run = Run(goal=goal)
        overrides: Dict[int, str] = {}

        logger.info(f"[Orchestrator] Run started: {goal.objective!r} on {goal.target} (budget {budget})")

        while run.attempts < budget and not run.finished:
            run.strategy = self.strategy_for(run.attempts, overrides)
            run.strategies.append(run.strategy)
            self.progress.emit(run, "strategy", {"strategy": run.strategy, "attempt": run.attempts + 1})
            logger.info(f"[Orchestrator] Attempt {run.attempts + 1}/{budget} with strategy '{run.strategy}'")

            try:
                if await self._attempt(run):
                    break
            except Exception as e:
                logger.error(f"[Orchestrator] Attempt {run.attempts + 1} raised: {e}", exc_info=True)

            run.attempts += 1
            if run.attempts >= budget:
                break

            if self.config.agent.suggest_strategies:
                suggestion = await self.suggest_strategy(run)
                if suggestion:
                    overrides[run.attempts] = suggestion

            self._set_status(run, RunStatus.PLANNING)

        if not run.finished:
            previous = run.status
            run.fail()
            logger.info(f"[Orchestrator] {previous.value} -> {run.status.value}")
            self.progress.emit(run, "status", {"status": run.status.value, "attempt": run.attempts})
            logger.warning(f"[Orchestrator] Run failed after {run.attempts} attempt(s), {len(run.steps)} step(s)")
        else:
            logger.info(f"[Orchestrator] Run completed (confidence {run.confidence:.2f})")
        return run

    async def _attempt(self, run: Run) -> bool:
        """One planning/executing/verifying pass. Returns True when the run completed."""
        goal = run.goal
        actions = await self.planner.plan(goal, build_context(run))

        self._set_status(run, RunStatus.EXECUTING)
        for action in actions:
            try:
                result = await self.dispatcher.execute(action, self.registry)
            except Exception as e:
                logger.warning(f"[Orchestrator] {action.capability} failed: {e}")
                self._record(run, action, succeeded=False, error=str(e) or type(e).__name__)
                continue

            step = self._record(run, action, result=result, succeeded=True)
            if self.verifier.local_check(step):
                logger.info(f"[Orchestrator] Step {step.index} ({action.capability}) carries a success signal")
                run.complete(result, short_circuit_confidence(run))
                self.progress.emit(run, "status", {"status": run.status.value, "attempt": run.attempts + 1})
                return True

        self._set_status(run, RunStatus.VERIFYING)
        verification = await self.verifier.verify(goal, run.steps)
        if verification.success:
            run.complete(verification.result, verification.confidence)
            self.progress.emit(run, "status", {"status": run.status.value, "attempt": run.attempts + 1})
            return True
        return False

    async def suggest_strategy(self, run: Run) -> Optional[str]:
        """Ask the oracle to name the next strategy. None keeps the default label."""
        window = self.config.agent.verification_window
        prompt = STRATEGY_TEMPLATE.format(
            objective=run.goal.objective,
            steps=json.dumps([s.summary() for s in run.steps[-window:]], default=str),
        )
        answer = await self.oracle.reason(prompt)
        if answer.degraded:
            return None
        label = strategy_label(answer.verdict or answer.content)
        if label:
            logger.info(f"[Orchestrator] Oracle suggested strategy '{label}'")
        return label


async def run_orchestration(
    goal: Goal,
    capabilities: Union[CapabilityRegistry, Mapping[str, CapabilityLike]],
    attempt_budget: int = 5,
    *,
    oracle: Optional[OracleAdapter] = None,
    config: Optional[RevConfig] = None,
) -> Run:
    """
    Run one goal to a terminal status.

    Args:
        goal: What to achieve and where
        capabilities: A registry or a {name: capability-or-callable} mapping
        attempt_budget: Maximum planning/executing/verifying passes
        oracle: Shared adapter; built from configuration when omitted
        config: Overrides the global configuration

    Returns:
        The Run, with status completed or failed
    """
    if isinstance(capabilities, CapabilityRegistry):
        registry = capabilities
    else:
        registry = CapabilityRegistry.from_mapping(capabilities)
    orchestrator = StrategyOrchestrator(registry, oracle=oracle, config=config)
    return await orchestrator.run(goal, attempt_budget)

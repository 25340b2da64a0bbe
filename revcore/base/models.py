"""
revcore/base/models.py
Goal, Action, Step and Run: the values one orchestration call threads through
the planner, dispatcher and verifier.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from revcore.errors import InvalidTransition


class Specialization(str, Enum):
    """Selects the planning prompt template and the extra heuristic rules."""
    API_DISCOVERY = "api-discovery"
    VULNERABILITY_SCANNING = "vulnerability-scanning"
    SCRIPT_GENERATION = "script-generation"
    UI_REPLICATION = "ui-replication"
    AUTHENTICATION_BYPASS = "authentication-bypass"
    DATA_EXTRACTION = "data-extraction"
    ENDPOINT_ENUMERATION = "endpoint-enumeration"
    GENERAL = "general"


class RunStatus(str, Enum):
    PLANNING = "planning"
    EXECUTING = "executing"
    VERIFYING = "verifying"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)


# Forward-only state machine. executing -> completed is the local-signal
# short-circuit; executing -> planning/failed covers an attempt that raised.
ALLOWED_TRANSITIONS: Dict[RunStatus, frozenset] = {
    RunStatus.PLANNING: frozenset({RunStatus.EXECUTING, RunStatus.FAILED}),
    RunStatus.EXECUTING: frozenset({
        RunStatus.VERIFYING, RunStatus.COMPLETED, RunStatus.PLANNING, RunStatus.FAILED,
    }),
    RunStatus.VERIFYING: frozenset({RunStatus.PLANNING, RunStatus.COMPLETED, RunStatus.FAILED}),
    RunStatus.COMPLETED: frozenset(),
    RunStatus.FAILED: frozenset(),
}


@dataclass(frozen=True)
class Goal:
    """What a run is trying to achieve. Immutable for the lifetime of the run."""
    target: str
    objective: str
    specialization: Optional[Specialization] = None

    @property
    def template_key(self) -> Specialization:
        return self.specialization or Specialization.GENERAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "objective": self.objective,
            "specialization": self.specialization.value if self.specialization else None,
        }


@dataclass
class Action:
    kind: str  # e.g. "intercept", "inject", "analyze", "discover", "explore"
    capability: str  # registry key, e.g. "network-monitor"
    parameters: Dict[str, Any] = field(default_factory=dict)
    rationale: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "capability": self.capability,
            "parameters": dict(self.parameters),
            "rationale": self.rationale,
        }


@dataclass
class Step:
    """Recorded outcome of dispatching one Action. Index is 1-based."""
    index: int
    action: Action
    result: Any = None
    succeeded: bool = False
    error: Optional[str] = None
    strategy: str = ""
    recorded_at: float = field(default_factory=time.time)

    def summary(self, preview_chars: int = 300) -> Dict[str, Any]:
        """Compact view of the step for prompts: no full result payloads."""
        preview = None
        if self.result is not None:
            preview = json.dumps(self.result, default=str)[:preview_chars]
        return {
            "step": self.index,
            "action": self.action.kind,
            "tool": self.action.capability,
            "success": self.succeeded,
            "error": self.error,
            "result_preview": preview,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "action": self.action.to_dict(),
            "result": self.result,
            "succeeded": self.succeeded,
            "error": self.error,
            "strategy": self.strategy,
            "recorded_at": self.recorded_at,
        }


@dataclass
class Run:
    """
    One orchestration call's state.

    Owned by exactly one call to run_orchestration and mutated only by the
    orchestrator and the components it awaits within that call. Steps only
    grow; status only moves forward (see ALLOWED_TRANSITIONS).
    """
    goal: Goal
    steps: List[Step] = field(default_factory=list)
    strategy: str = "initial"
    status: RunStatus = RunStatus.PLANNING
    result: Any = None
    confidence: Optional[float] = None
    attempts: int = 0
    strategies: List[str] = field(default_factory=list)
    transitions: List[RunStatus] = field(default_factory=lambda: [RunStatus.PLANNING])
    started_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None

    def transition(self, status: RunStatus) -> None:
        if status == self.status:
            return
        if status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransition(self.status.value, status.value)
        self.status = status
        self.transitions.append(status)
        if status.terminal:
            self.finished_at = time.time()

    def record(self, action: Action, result: Any = None, succeeded: bool = False,
               error: Optional[str] = None) -> Step:
        """Append a Step; its index is its 1-based position in the history."""
        step = Step(
            index=len(self.steps) + 1,
            action=action,
            result=result,
            succeeded=succeeded,
            error=error,
            strategy=self.strategy,
        )
        self.steps.append(step)
        return step

    def complete(self, result: Any, confidence: float) -> None:
        self.transition(RunStatus.COMPLETED)
        self.result = result
        self.confidence = max(0.0, min(1.0, float(confidence)))

    def fail(self) -> None:
        self.transition(RunStatus.FAILED)

    @property
    def successful_steps(self) -> int:
        return sum(1 for s in self.steps if s.succeeded)

    @property
    def finished(self) -> bool:
        return self.status.terminal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "goal": self.goal.to_dict(),
            "status": self.status.value,
            "strategy": self.strategy,
            "strategies": list(self.strategies),
            "attempts": self.attempts,
            "result": self.result,
            "confidence": self.confidence,
            "steps": [s.to_dict() for s in self.steps],
            "transitions": [t.value for t in self.transitions],
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }

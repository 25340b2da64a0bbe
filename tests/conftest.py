"""Pytest configuration for revforge."""
import os
from typing import Any, Dict, List, Optional

import pytest

from revcore.ai.oracle import OracleAdapter, OracleVerdict, ReasoningBackend
from revcore.base.config import set_config


def pytest_configure():
    # Never reach a real oracle from the test suite.
    os.environ["REVFORGE_ORACLE_PROVIDER"] = "offline"
    os.environ.pop("REVFORGE_OPENROUTER_API_KEY", None)


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch):
    monkeypatch.delenv("REVFORGE_OPENROUTER_API_KEY", raising=False)
    monkeypatch.setenv("REVFORGE_ORACLE_PROVIDER", "offline")
    set_config(None)
    yield
    set_config(None)


class ScriptedBackend(ReasoningBackend):
    """Remote-looking backend answering by prompt type."""

    name = "scripted"
    model = "fake"

    def __init__(self, plan: str = "", verify: str = "no", verify_confidence: float = 0.5,
                 strategy: str = "", plan_confidence: float = 0.7):
        self.plan = plan
        self.verify = verify
        self.verify_confidence = verify_confidence
        self.strategy = strategy
        self.plan_confidence = plan_confidence
        self.prompts: List[str] = []
        self.contexts: List[Optional[str]] = []

    @property
    def remote(self) -> bool:
        return True

    async def reason(self, prompt: str, context: Optional[str] = None) -> OracleVerdict:
        self.prompts.append(prompt)
        self.contexts.append(context)
        lowered = prompt.lower()
        if "has the goal been accomplished" in lowered:
            text, confidence = self.verify, self.verify_confidence
        elif "alternative strategy" in lowered:
            text, confidence = self.strategy, 0.6
        else:
            text, confidence = self.plan, self.plan_confidence
        return OracleVerdict(verdict=text, content=text, confidence=confidence)


class RaisingBackend(ReasoningBackend):
    name = "broken"
    model = "none"

    def __init__(self, error: Exception):
        self.error = error
        self.calls = 0

    @property
    def remote(self) -> bool:
        return True

    async def reason(self, prompt: str, context: Optional[str] = None) -> OracleVerdict:
        self.calls += 1
        raise self.error


@pytest.fixture
def scripted_oracle():
    """Factory: scripted_oracle(plan=..., verify=...) -> (adapter, backend)."""
    def make(**kwargs: Any):
        backend = ScriptedBackend(**kwargs)
        return OracleAdapter(backend=backend), backend
    return make


@pytest.fixture
def raising_oracle():
    def make(error: Exception):
        backend = RaisingBackend(error)
        return OracleAdapter(backend=backend), backend
    return make


@pytest.fixture
def offline_oracle():
    return OracleAdapter()


@pytest.fixture
def capability_log():
    """Records (name, parameters) for every fake capability call."""
    calls: List[Dict[str, Any]] = []
    return calls

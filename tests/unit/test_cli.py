"""
tests/unit/test_cli.py
"""
import json

import pytest

from revcore.toolkit.registry import CapabilityRegistry
from revforge.cli import rev


@pytest.fixture
def fake_toolkit(monkeypatch):
    registry = CapabilityRegistry.from_mapping({
        "network-monitor": lambda params: {"captured": 0},
        "dom-analyzer": lambda params: {"success": True, "data": {"title": "Example"}},
    })
    monkeypatch.setattr(rev, "default_capabilities", lambda *args, **kwargs: registry)
    return registry


def test_parser_rejects_unknown_specialization():
    with pytest.raises(SystemExit):
        rev.build_parser().parse_args(["run", "https://example.com", "x", "--specialization", "nope"])


def test_tools_lists_builtin_capabilities(capsys):
    assert rev.main(["tools"]) == 0
    out = capsys.readouterr().out
    assert "network-monitor" in out
    assert "script-injector" in out


def test_status_reports_offline_oracle(capsys):
    assert rev.main(["status"]) == 0
    status = json.loads(capsys.readouterr().out)
    assert status["provider"] == "offline"
    assert status["configured"] is False
    assert status["models"] == []


def test_run_json_prints_completed_run(capsys, fake_toolkit):
    code = rev.main(["run", "https://example.com", "Map the page", "--offline", "--json", "--attempts", "2"])
    run = json.loads(capsys.readouterr().out)

    assert code == 0
    assert run["status"] == "completed"
    assert [s["action"]["capability"] for s in run["steps"]] == ["network-monitor", "dom-analyzer"]
    assert run["goal"]["target"] == "https://example.com"


def test_run_prints_progress(capsys, fake_toolkit):
    code = rev.main(["run", "https://example.com", "Map the page", "--offline", "--specialization", "ui-replication"])
    out = capsys.readouterr().out

    assert code == 0
    assert "strategy primary" in out
    assert "dom-analyzer" in out
    assert "Completed after 1 attempt(s)" in out

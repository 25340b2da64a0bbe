"""
tests/unit/test_config.py
Environment-driven configuration.
"""
import logging

from revcore.base.config import (
    PROVIDER_OFFLINE,
    PROVIDER_OPENROUTER,
    RevConfig,
    get_config,
    set_config,
    setup_logging,
)


def test_defaults_without_key_are_offline(monkeypatch):
    monkeypatch.delenv("REVFORGE_ORACLE_PROVIDER", raising=False)
    cfg = RevConfig.from_env()
    assert cfg.oracle.provider == PROVIDER_OFFLINE
    assert not cfg.oracle.configured
    assert cfg.agent.attempt_budget == 5
    assert cfg.agent.verification_window == 3


def test_api_key_selects_openrouter(monkeypatch):
    monkeypatch.delenv("REVFORGE_ORACLE_PROVIDER", raising=False)
    monkeypatch.setenv("REVFORGE_OPENROUTER_API_KEY", "sk-or-test")
    monkeypatch.setenv("REVFORGE_ORACLE_MODEL", "anthropic/claude-3.5-sonnet")
    cfg = RevConfig.from_env()
    assert cfg.oracle.provider == PROVIDER_OPENROUTER
    assert cfg.oracle.configured
    assert cfg.oracle.model == "anthropic/claude-3.5-sonnet"


def test_explicit_offline_wins_over_key(monkeypatch):
    monkeypatch.setenv("REVFORGE_OPENROUTER_API_KEY", "sk-or-test")
    monkeypatch.setenv("REVFORGE_ORACLE_PROVIDER", "OFFLINE")
    assert RevConfig.from_env().oracle.provider == PROVIDER_OFFLINE


def test_agent_overrides(monkeypatch):
    monkeypatch.setenv("REVFORGE_ATTEMPT_BUDGET", "2")
    monkeypatch.setenv("REVFORGE_CAPABILITY_TIMEOUT", "0")
    monkeypatch.setenv("REVFORGE_SUGGEST_STRATEGIES", "false")
    cfg = RevConfig.from_env()
    assert cfg.agent.attempt_budget == 2
    assert cfg.agent.capability_timeout == 0
    assert cfg.agent.suggest_strategies is False


def test_singleton_and_reset(monkeypatch):
    first = get_config()
    assert get_config() is first

    monkeypatch.setenv("REVFORGE_ATTEMPT_BUDGET", "9")
    set_config(None)
    assert get_config().agent.attempt_budget == 9


def test_setup_logging_writes_rotating_file(monkeypatch, tmp_path):
    log_file = tmp_path / "logs" / "rev.log"
    monkeypatch.setenv("REVFORGE_LOG_FILE_ENABLED", "true")
    monkeypatch.setenv("REVFORGE_LOG_FILE", str(log_file))
    cfg = RevConfig.from_env()

    setup_logging(cfg)
    logging.getLogger("revcore.test").warning("hello")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert log_file.exists()
    assert "hello" in log_file.read_text()

    for handler in list(logging.getLogger().handlers):
        handler.close()
        logging.getLogger().removeHandler(handler)

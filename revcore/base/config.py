# ============================================================================
# revcore/base/config.py
# Application Configuration Management
# ============================================================================
#
# PURPOSE:
# Every tunable of the agent engine lives here: which reasoning oracle to
# talk to, how many attempts a run gets, how long a capability may hang,
# and how logging is wired.
#
# KEY CONCEPTS:
# 1. Frozen dataclasses: one immutable section per concern
# 2. Environment variables: REVFORGE_* overrides, read once by from_env()
# 3. Singleton: get_config() hands every caller the same instance
#
# ORACLE SELECTION:
# The oracle backend is picked here, once, from configuration. If no API key
# is configured the provider defaults to "offline" (the deterministic
# heuristic backend) instead of probing the environment at call time.
#
# ============================================================================

from __future__ import annotations

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

PROVIDER_OPENROUTER = "openrouter"
PROVIDER_OFFLINE = "offline"


# ============================================================================
# Reasoning Oracle Configuration
# ============================================================================

@dataclass(frozen=True)
class OracleConfig:
    # "openrouter" = remote chat-completions service, "offline" = heuristic backend
    provider: str = PROVIDER_OFFLINE

    # OpenRouter speaks the OpenAI chat-completions dialect under this prefix
    base_url: str = "https://openrouter.ai/api/v1"

    # Bearer credential; empty means the remote oracle cannot be used
    api_key: str = ""

    model: str = "openai/gpt-4o"

    temperature: float = 0.7
    max_tokens: int = 2000

    # Seconds to wait for one completion before treating the oracle as down
    request_timeout: float = 60.0

    # Sent as X-Title so the provider dashboard can attribute usage
    app_title: str = "revforge - Reverse Engineering Agent"

    @property
    def configured(self) -> bool:
        return self.provider == PROVIDER_OPENROUTER and bool(self.api_key)


# ============================================================================
# Orchestration Configuration
# ============================================================================

@dataclass(frozen=True)
class AgentConfig:
    # How many planning -> executing -> verifying passes one run may take
    attempt_budget: int = 5

    # How many of the latest steps the verification prompt summarizes (max 3)
    verification_window: int = 3

    # Host-supplied ceiling for a single capability call (seconds, 0 = none)
    capability_timeout: float = 30.0

    # Serialized run context is cut to this many characters before prompting
    max_context_chars: int = 8000

    # Ask the oracle to rename the next strategy slot after a failed attempt
    suggest_strategies: bool = True


# ============================================================================
# Built-in Toolkit Configuration
# ============================================================================

@dataclass(frozen=True)
class ToolkitConfig:
    http_timeout: float = 15.0

    # Pages larger than this are truncated before analysis
    max_body_bytes: int = 2 * 1024 * 1024

    user_agent: str = "Mozilla/5.0 (compatible; revforge/0.3)"

    follow_redirects: bool = True


# ============================================================================
# Logging Configuration
# ============================================================================

@dataclass(frozen=True)
class LogConfig:
    level: str = "INFO"

    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    # File logging is opt-in; a library should not write files on import
    file_enabled: bool = False

    file_path: Path = field(default_factory=lambda: Path.home() / ".revforge" / "revforge.log")

    max_file_size_mb: int = 10

    backup_count: int = 5


# ============================================================================
# Master Configuration Container
# ============================================================================

@dataclass(frozen=True)
class RevConfig:
    oracle: OracleConfig = field(default_factory=OracleConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)
    toolkit: ToolkitConfig = field(default_factory=ToolkitConfig)
    log: LogConfig = field(default_factory=LogConfig)
    debug: bool = False

    @classmethod
    def from_env(cls) -> "RevConfig":
        """Build a RevConfig from REVFORGE_* environment variables."""
        api_key = os.getenv("REVFORGE_OPENROUTER_API_KEY", "")
        # Without a key the only sensible default is the offline backend
        default_provider = PROVIDER_OPENROUTER if api_key else PROVIDER_OFFLINE

        oracle = OracleConfig(
            provider=os.getenv("REVFORGE_ORACLE_PROVIDER", default_provider).lower(),
            base_url=os.getenv("REVFORGE_OPENROUTER_URL", "https://openrouter.ai/api/v1"),
            api_key=api_key,
            model=os.getenv("REVFORGE_ORACLE_MODEL", "openai/gpt-4o"),
            temperature=float(os.getenv("REVFORGE_ORACLE_TEMPERATURE", "0.7")),
            max_tokens=int(os.getenv("REVFORGE_ORACLE_MAX_TOKENS", "2000")),
            request_timeout=float(os.getenv("REVFORGE_ORACLE_TIMEOUT", "60")),
        )

        agent = AgentConfig(
            attempt_budget=int(os.getenv("REVFORGE_ATTEMPT_BUDGET", "5")),
            verification_window=int(os.getenv("REVFORGE_VERIFICATION_WINDOW", "3")),
            capability_timeout=float(os.getenv("REVFORGE_CAPABILITY_TIMEOUT", "30")),
            max_context_chars=int(os.getenv("REVFORGE_MAX_CONTEXT_CHARS", "8000")),
            suggest_strategies=os.getenv("REVFORGE_SUGGEST_STRATEGIES", "true").lower() == "true",
        )

        toolkit = ToolkitConfig(
            http_timeout=float(os.getenv("REVFORGE_HTTP_TIMEOUT", "15")),
            max_body_bytes=int(os.getenv("REVFORGE_MAX_BODY_BYTES", str(2 * 1024 * 1024))),
        )

        log_kwargs = {
            "level": os.getenv("REVFORGE_LOG_LEVEL", "INFO"),
            "file_enabled": os.getenv("REVFORGE_LOG_FILE_ENABLED", "false").lower() == "true",
        }
        log_file = os.getenv("REVFORGE_LOG_FILE")
        if log_file:
            log_kwargs["file_path"] = Path(log_file)
        log = LogConfig(**log_kwargs)

        return cls(
            oracle=oracle,
            agent=agent,
            toolkit=toolkit,
            log=log,
            debug=os.getenv("REVFORGE_DEBUG", "false").lower() == "true",
        )


# ============================================================================
# Global Configuration Singleton
# ============================================================================

_config: Optional[RevConfig] = None


def get_config() -> RevConfig:
    """
    Get the global configuration instance.

    Returns:
        The shared RevConfig instance (created from the environment on first use)
    """
    global _config
    if _config is None:
        _config = RevConfig.from_env()
    return _config


def set_config(config: Optional[RevConfig]) -> None:
    """
    Replace the global configuration (mainly used for testing).

    Passing None drops the cached instance so the next get_config() re-reads
    the environment.
    """
    global _config
    _config = config


def setup_logging(config: Optional[RevConfig] = None) -> None:
    """
    Configure Python's logging system based on our settings.

    Call this once at application startup (the CLI does).
    """
    cfg = config or get_config()

    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if cfg.log.file_enabled:
        from logging.handlers import RotatingFileHandler
        cfg.log.file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            cfg.log.file_path,
            maxBytes=cfg.log.max_file_size_mb * 1024 * 1024,
            backupCount=cfg.log.backup_count,
        )
        handlers.append(file_handler)

    level = "DEBUG" if cfg.debug else cfg.log.level.upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=cfg.log.format,
        handlers=handlers,
        force=True,
    )

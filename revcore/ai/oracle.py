"""Module oracle: the reasoning oracle adapter and its remote backend."""
#
# PURPOSE:
# Turns a text prompt into a free-text verdict plus a confidence score. The
# agent never talks to a model directly; it only sees OracleVerdict values.
#
# HOW IT WORKS:
# - A backend is chosen ONCE from configuration: "openrouter" (remote chat
#   completions over httpx) or "offline" (deterministic keyword heuristics,
#   see revcore/ai/fallbacks.py)
# - OracleAdapter.reason() never raises: network errors, timeouts, bad auth
#   and garbage responses all come back as a degraded verdict
# - Confidence is recovered from the model's free text: an embedded JSON
#   fragment first, then a "confidence: N" mention, clamped to [0, 1]
#
# KEY CONCEPTS:
# - Verdict: short answer (<= 500 chars) the planner/verifier parse
# - Content: the full raw answer
# - Degraded: the answer did not come from a working oracle; callers treat
#   it like a failed call (planner falls back, verifier stays negative)
#

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from revcore.base.config import OracleConfig, PROVIDER_OPENROUTER, get_config
from revcore.errors import AuthenticationError, ErrorCode, OracleError, OracleUnavailable
from revcore.utils.async_helpers import await_with_timeout

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.7
MAX_VERDICT_CHARS = 500

SYSTEM_PROMPT = (
    "You are an expert reverse engineering agent. Analyze the problem and provide structured "
    "reasoning with a clear verdict, detailed content, and confidence score (0-1)."
)


@dataclass
class OracleVerdict:
    verdict: str
    content: str
    confidence: float
    degraded: bool = False
    error: Optional[str] = None

    @classmethod
    def degraded_answer(cls, error: str, confidence: float = 0.0) -> "OracleVerdict":
        return cls(verdict="", content="", confidence=confidence, degraded=True, error=error)


# ============================================================================
# Wire models (OpenAI-compatible chat completions)
# ============================================================================

class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: str
    content: Optional[str] = None


class ChatChoice(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: ChatMessage
    finish_reason: Optional[str] = None


class ChatCompletion(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    model: Optional[str] = None
    choices: List[ChatChoice] = []


class ReasoningFragment(BaseModel):
    """The structured block a well-behaved model embeds in its answer."""
    model_config = ConfigDict(extra="ignore")

    verdict: Optional[str] = None
    answer: Optional[str] = None
    confidence: Optional[float] = None


# ============================================================================
# Free-text parsing
# ============================================================================

_JSON_BLOCK_RE = re.compile(r"\{[\s\S]*\}")
_CONFIDENCE_RE = re.compile(r"confidence[\"']?\s*[:=]?\s*(\d+(?:\.\d+)?|\.\d+)", re.IGNORECASE)


def _normalize_confidence(value: float) -> float:
    # Models sometimes answer "85" or "85%" meaning 0.85
    if value > 1:
        value = value / 100
    return max(0.0, min(1.0, value))


def parse_reasoning(content: str) -> Tuple[str, float]:
    """
    Recover (verdict, confidence) from a model's free-text answer.

    1. Embedded JSON fragment: verdict/answer and confidence fields
    2. Otherwise a "confidence: N" mention anywhere in the text
    3. Otherwise DEFAULT_CONFIDENCE

    Returns:
        Verdict truncated to MAX_VERDICT_CHARS and a confidence in [0, 1]
    """
    verdict = content
    confidence: Optional[float] = None

    match = _JSON_BLOCK_RE.search(content)
    if match:
        try:
            fragment = ReasoningFragment.model_validate(json.loads(match.group(0)))
            verdict = fragment.verdict or fragment.answer or content
            confidence = fragment.confidence
        except (ValueError, ValidationError, TypeError):
            # Not valid JSON, use content as-is
            pass

    if confidence is None:
        mention = _CONFIDENCE_RE.search(content)
        if mention:
            try:
                confidence = float(mention.group(1))
            except ValueError:
                confidence = None

    if confidence is None:
        confidence = DEFAULT_CONFIDENCE

    return verdict[:MAX_VERDICT_CHARS], _normalize_confidence(float(confidence))


# ============================================================================
# Backends
# ============================================================================

class ReasoningBackend(ABC):
    """Something that can answer a prompt. May raise; the adapter absorbs it."""

    name: str = "backend"
    model: str = ""

    @property
    def remote(self) -> bool:
        return False

    @abstractmethod
    async def reason(self, prompt: str, context: Optional[str] = None) -> OracleVerdict:
        ...


class OpenRouterBackend(ReasoningBackend):
    """
    HTTP client for the OpenRouter chat-completions API.

    One AsyncClient per call: nothing is shared between concurrent runs
    except the immutable settings below.
    """

    name = PROVIDER_OPENROUTER

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        config: Optional[OracleConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise AuthenticationError("OpenRouter API key is required")
        self.config = config or get_config().oracle
        self.api_key = api_key
        self.model = model or self.config.model
        self.base_url = self.config.base_url.rstrip("/")
        self._transport = transport

    @property
    def remote(self) -> bool:
        return True

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": self.config.app_title,
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.config.request_timeout, transport=self._transport)

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"OpenRouter rejected credentials ({response.status_code})",
                details={"status": response.status_code},
            )
        if response.status_code == 429:
            raise OracleError("OpenRouter rate limit exceeded", code=ErrorCode.AI_RATE_LIMIT_EXCEEDED)
        if response.status_code >= 500:
            raise OracleUnavailable(f"OpenRouter API error: {response.status_code} {response.text[:200]}")
        if response.status_code != 200:
            raise OracleError(f"OpenRouter API error: {response.status_code} {response.text[:200]}")

    async def chat(self, messages: List[Dict[str, str]]) -> ChatCompletion:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        async with self._client() as client:
            response = await client.post(f"{self.base_url}/chat/completions", json=payload, headers=self._headers())
        self._raise_for_status(response)
        try:
            return ChatCompletion.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise OracleError(f"Malformed completion payload: {e}") from e

    async def reason(self, prompt: str, context: Optional[str] = None) -> OracleVerdict:
        if context:
            user = f"Context: {context}\n\nProblem: {prompt}\n\nProvide reasoning with verdict, content, and confidence."
        else:
            user = f"Problem: {prompt}\n\nProvide reasoning with verdict, content, and confidence."

        completion = await self.chat([
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user},
        ])
        content = ""
        if completion.choices:
            content = completion.choices[0].message.content or ""

        verdict, confidence = parse_reasoning(content)
        return OracleVerdict(verdict=verdict, content=content, confidence=confidence)

    async def available_models(self) -> List[str]:
        async with self._client() as client:
            response = await client.get(f"{self.base_url}/models", headers=self._headers())
        self._raise_for_status(response)
        names: List[str] = []
        for item in response.json().get("data") or []:
            model_id = item.get("id")
            if model_id:
                names.append(str(model_id))
        return names


# ============================================================================
# Adapter
# ============================================================================

class OracleAdapter:
    """
    The only oracle surface the agent sees.

    Wraps one backend (remote or offline) and guarantees reason() always
    returns a structurally valid OracleVerdict.
    """

    def __init__(
        self,
        backend: Optional[ReasoningBackend] = None,
        config: Optional[OracleConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        from revcore.ai.fallbacks import OfflineBackend

        self.config = config or get_config().oracle
        self._transport = transport
        self.backend: ReasoningBackend = backend or OfflineBackend()

    @classmethod
    def from_config(
        cls,
        config: Optional[OracleConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "OracleAdapter":
        cfg = config or get_config().oracle
        adapter = cls(config=cfg, transport=transport)
        if cfg.provider == PROVIDER_OPENROUTER:
            if cfg.api_key:
                adapter.initialize(cfg.api_key, cfg.model)
            else:
                logger.warning("[Oracle] openrouter selected but no API key configured; using offline heuristics")
        return adapter

    @property
    def configured(self) -> bool:
        return self.backend.remote

    def initialize(self, credentials: Optional[str], model_hint: Optional[str] = None) -> None:
        """
        Connect the adapter to the remote oracle.

        Re-initializing an already connected adapter only switches the model.

        Raises:
            AuthenticationError: credentials are missing
        """
        if self.configured:
            if model_hint:
                self.backend.model = model_hint
            return
        if not credentials:
            raise AuthenticationError("OpenRouter API key is required")
        self.backend = OpenRouterBackend(credentials, model_hint, self.config, self._transport)
        logger.info(f"[Oracle] Using {self.backend.name} model {self.backend.model}")

    async def reason(self, prompt: str, context: Optional[str] = None) -> OracleVerdict:
        try:
            verdict = await await_with_timeout(
                self.backend.reason(prompt, context),
                self.config.request_timeout,
                name=f"oracle:{self.backend.name}",
            )
        except Exception as e:
            # Unreachable/broken oracle must never crash the caller
            logger.warning(f"[Oracle] {self.backend.name} call failed: {e!r}")
            return OracleVerdict.degraded_answer(str(e) or type(e).__name__)

        verdict.confidence = max(0.0, min(1.0, float(verdict.confidence)))
        return verdict

    async def available_models(self) -> List[str]:
        if not isinstance(self.backend, OpenRouterBackend):
            return []
        try:
            return await self.backend.available_models()
        except (OracleError, httpx.HTTPError, ValueError) as exc:
            logger.warning("Failed to fetch available models: %s", exc)
            return []

    def status(self) -> Dict[str, object]:
        return {
            "provider": self.backend.name,
            "model": self.backend.model,
            "configured": self.configured,
            "base_url": self.config.base_url if self.configured else None,
        }

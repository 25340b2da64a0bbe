"""
Pattern miners used by the built-in capabilities.

Two sweeps over page markup and inline script text:
- scan_endpoints(): fetch/axios/xhr/$.ajax call sites and API-looking literals
- scan_secrets(): known credential formats plus a high-entropy sweep

Both are fast regex heuristics (no JS execution). Secret values are ALWAYS
redacted before they leave this module.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

_HTTP_METHODS = {"GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"}

# ---------------------------------------------------------------------------
# Endpoint patterns
# ---------------------------------------------------------------------------

_FETCH_RE = re.compile(r"""\bfetch\s*\(\s*(?P<q>["'`])(?P<url>[^"'`]{1,500})(?P=q)""")

_AXIOS_RE = re.compile(
    r"""\baxios\.(?P<verb>get|post|put|patch|delete|request)\s*\(\s*(?P<q>["'`])(?P<url>[^"'`]{1,500})(?P=q)""",
    re.IGNORECASE,
)

_XHR_OPEN_RE = re.compile(
    r"""\.open\s*\(\s*(?P<qv>["'`])(?P<verb>GET|POST|PUT|PATCH|DELETE|OPTIONS|HEAD)(?P=qv)\s*,\s*"""
    r"""(?P<q>["'`])(?P<url>[^"'`]{1,500})(?P=q)"""
)

_AJAX_URL_RE = re.compile(
    r"""\.ajax\s*\(\s*\{[^}]*?\burl\s*:\s*(?P<q>["'`])(?P<url>[^"'`]{1,500})(?P=q)""",
    re.IGNORECASE | re.DOTALL,
)

# Literal strings that look like API routes (lower confidence)
_API_PATH_RE = re.compile(r"""(?P<q>["'`])(?P<url>/(?:api|v\d+|graphql|rest)(?:/[^"'`\s]*)?)(?P=q)""")
_API_URL_RE = re.compile(r"""(?P<q>["'`])(?P<url>https?://[^"'`\s]*api[^"'`\s]*)(?P=q)""", re.IGNORECASE)

_HIDDEN_HINT_RE = re.compile(r"(?:/admin\b|/internal\b|/debug\b|/dev\b|/private\b|/graphql\b)", re.IGNORECASE)


@dataclass(frozen=True)
class EndpointHit:
    url: str
    method: Optional[str] = None
    confidence: int = 50
    hidden: bool = False
    source: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "method": self.method,
            "confidence": self.confidence,
            "hidden": self.hidden,
            "source": self.source,
        }


def scan_endpoints(text: str) -> List[EndpointHit]:
    hits: List[EndpointHit] = []
    seen = set()

    def add(url: str, method: Optional[str], confidence: int, source: str) -> None:
        url = url.strip()
        if not url or url.lower().startswith("javascript:"):
            return
        key = (url, method or "")
        if key in seen:
            return
        seen.add(key)
        hidden = bool(_HIDDEN_HINT_RE.search(url))
        # Promote "hidden" ones to a higher confidence signal
        if hidden:
            confidence = max(confidence, 60)
        hits.append(EndpointHit(url=url, method=method, confidence=confidence, hidden=hidden, source=source))

    for m in _XHR_OPEN_RE.finditer(text):
        add(m.group("url"), m.group("verb").upper(), 80, "xhr")

    for m in _AXIOS_RE.finditer(text):
        verb = m.group("verb").upper()
        add(m.group("url"), verb if verb in _HTTP_METHODS else None, 75, "axios")

    for m in _FETCH_RE.finditer(text):
        add(m.group("url"), None, 70, "fetch")

    for m in _AJAX_URL_RE.finditer(text):
        add(m.group("url"), None, 65, "ajax")

    for m in _API_URL_RE.finditer(text):
        add(m.group("url"), None, 45, "literal")

    for m in _API_PATH_RE.finditer(text):
        add(m.group("url"), None, 40, "literal")

    return hits


# ---------------------------------------------------------------------------
# Secret patterns
# ---------------------------------------------------------------------------

# (secret_type, pattern, confidence). The value is group "v" when present.
_SECRET_RULES = [
    ("private_key_pem_header", re.compile(r"-----BEGIN (?:RSA |EC |OPENSSH )?PRIVATE KEY-----"), 95),
    ("aws_access_key_id", re.compile(r"\b(?P<v>(?:AKIA|ASIA)[0-9A-Z]{16})\b"), 90),
    ("github_token", re.compile(r"\b(?P<v>(?:ghp|gho|ghu|ghs|ghr)_[A-Za-z0-9]{30,200})\b"), 90),
    ("slack_token", re.compile(r"\b(?P<v>xox[baprs]-[A-Za-z0-9-]{10,200})\b"), 85),
    ("stripe_live_secret", re.compile(r"\b(?P<v>sk_live_[A-Za-z0-9]{10,200})\b"), 92),
    ("google_api_key", re.compile(r"\b(?P<v>AIza[0-9A-Za-z_\-]{35})\b"), 85),
    ("api_key_assignment", re.compile(r"api[_-]?key[\"'\s:=]+(?P<v>[a-zA-Z0-9_\-]{20,})", re.IGNORECASE), 70),
    ("secret_key_assignment", re.compile(r"secret[_-]?key[\"'\s:=]+(?P<v>[a-zA-Z0-9_\-]{20,})", re.IGNORECASE), 70),
    ("access_token_assignment", re.compile(r"access[_-]?token[\"'\s:=]+(?P<v>[a-zA-Z0-9_\-.]{20,})", re.IGNORECASE), 70),
    ("bearer_token", re.compile(r"Bearer\s+(?P<v>[A-Za-z0-9_\-.=]{20,})"), 65),
]

# Generic high-entropy candidates (many false positives; low confidence)
_BASE64ISH_RE = re.compile(r"\b[A-Za-z0-9+/=_-]{28,256}\b")
_ENTROPY_THRESHOLD = 4.2


@dataclass(frozen=True)
class SecretHit:
    secret_type: str
    confidence: int
    redacted_preview: str
    evidence: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.secret_type,
            "confidence": self.confidence,
            "value": self.redacted_preview,
            "location": self.evidence,
        }


def shannon_entropy(s: str) -> float:
    if not s:
        return 0.0
    freq: Dict[str, int] = {}
    for ch in s:
        freq[ch] = freq.get(ch, 0) + 1
    ent = 0.0
    n = len(s)
    for c in freq.values():
        p = c / n
        ent -= p * math.log2(p)
    return ent


def redact(s: str, keep: int = 4) -> str:
    if len(s) <= keep * 2:
        return "*" * len(s)
    return f"{s[:keep]}...{s[-keep:]}"


def _evidence(text: str, start: int, end: int) -> Dict[str, Any]:
    return {"start": start, "end": end, "line": text.count("\n", 0, start) + 1}


def scan_secrets(text: str) -> List[SecretHit]:
    hits: List[SecretHit] = []
    seen = set()

    def add(secret_type: str, value: str, confidence: int, start: int, end: int) -> None:
        if value in seen:
            return
        seen.add(value)
        hits.append(
            SecretHit(
                secret_type=secret_type,
                confidence=confidence,
                redacted_preview=redact(value),
                evidence=_evidence(text, start, end),
            )
        )

    for secret_type, pattern, confidence in _SECRET_RULES:
        for m in pattern.finditer(text):
            value = m.groupdict().get("v") or m.group(0)
            add(secret_type, value, confidence, m.start(), m.end())

    for m in _BASE64ISH_RE.finditer(text):
        cand = m.group(0)
        lowered = cand.lower()
        if lowered.startswith("http") or lowered.startswith("webpack"):
            continue
        if shannon_entropy(cand) >= _ENTROPY_THRESHOLD:
            add("high_entropy_string", cand, 40, m.start(), m.end())

    return hits

"""
Built-in headless capabilities.

HTTP-only counterparts of the browser tools the agent plans for. There is no
JS execution here: pages are fetched with httpx and parsed with the stdlib
HTMLParser. Tools that genuinely need a browser (script injection) raise
CapabilityUnavailable so the run records a failed Step and moves on.

Every tool returns the standard result mapping:
{
    "success": bool,     # the tool produced something useful
    "data": Any,         # tool-specific payload
    "metadata": dict,    # counts, url, timings
}
"""

from __future__ import annotations

import logging
from html.parser import HTMLParser
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urljoin, urlparse

import httpx

from revcore.base.config import ToolkitConfig, get_config
from revcore.errors import CapabilityUnavailable, ErrorCode, RevError
from revcore.toolkit import (
    API_KEY_FINDER,
    DOM_ANALYZER,
    ENDPOINT_ENUMERATOR,
    GENERAL_EXPLORER,
    HEX_ANALYZER,
    IFRAME_DETECTOR,
    NETWORK_MONITOR,
    REQUEST_SIMULATOR,
    SCRIPT_INJECTOR,
)
from revcore.toolkit.patterns import scan_endpoints, scan_secrets
from revcore.toolkit.registry import Capability, CapabilityRegistry

logger = logging.getLogger(__name__)

_VOID_TAGS = {
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "param", "source", "track", "wbr",
}
_INTERACTIVE_TAGS = ("button", "a", "input", "select", "textarea", "form")


# ============================================================================
# Markup extraction
# ============================================================================

def _parse_selector(selector: str) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """Split 'tag', 'tag.class', '.class', '#id', 'tag#id' into parts."""
    tag, cls, ident = selector.strip(), None, None
    if "#" in tag:
        tag, ident = tag.split("#", 1)
    if "." in tag:
        tag, cls = tag.split(".", 1)
    return (tag.lower() or None), cls, ident


class MarkupExtractor(HTMLParser):
    """
    Single pass over an HTML document collecting the structure the analyzers
    report: title, meta tags, headings, links, scripts, forms, iframes, and
    the elements matching simple selectors.
    """

    def __init__(self, base_url: str, selectors: Optional[List[str]] = None):
        super().__init__(convert_charrefs=True)
        self.base_url = base_url
        self.title = ""
        self.meta: List[Dict[str, Optional[str]]] = []
        self.headings: Dict[str, List[str]] = {"h1": [], "h2": []}
        self.links: List[Dict[str, str]] = []
        self.scripts: List[Dict[str, Any]] = []
        self.forms: List[Dict[str, Any]] = []
        self.iframes: List[Dict[str, Optional[str]]] = []
        self.counts: Dict[str, int] = {tag: 0 for tag in _INTERACTIVE_TAGS}
        self.selectors = {s: _parse_selector(s) for s in (selectors or []) if s.strip()}
        self.selected: Dict[str, List[Dict[str, Any]]] = {s: [] for s in self.selectors}
        # Open text captures: (tag, start sequence number, sink dict)
        self._captures: List[Tuple[str, int, Dict[str, Any]]] = []
        # Per tag, the sequence numbers of start tags not yet closed
        self._open: Dict[str, List[int]] = {}
        self._seq = 0

    # -- helpers ------------------------------------------------------------

    def _open_capture(self, tag: str, sink: Dict[str, Any], key: str = "text") -> None:
        sink.setdefault(key, "")
        self._captures.append((tag, self._seq, sink))

    def _matches(self, tag: str, attrs: Dict[str, str], selector: Tuple[Optional[str], Optional[str], Optional[str]]) -> bool:
        want_tag, want_cls, want_id = selector
        if want_tag and want_tag != tag:
            return False
        if want_cls and want_cls not in (attrs.get("class") or "").split():
            return False
        if want_id and attrs.get("id") != want_id:
            return False
        return True

    # -- HTMLParser hooks ---------------------------------------------------

    def handle_starttag(self, tag, attrs):
        attr_dict = {k: (v or "") for k, v in attrs}
        self._seq += 1
        if tag not in _VOID_TAGS:
            self._open.setdefault(tag, []).append(self._seq)
        if tag in self.counts:
            self.counts[tag] += 1

        if tag == "title":
            self._open_capture(tag, {"kind": "title"})
        elif tag in self.headings:
            self._open_capture(tag, {"kind": tag})
        elif tag == "meta":
            self.meta.append({
                "name": attr_dict.get("name") or attr_dict.get("property"),
                "content": attr_dict.get("content"),
            })
        elif tag == "a" and attr_dict.get("href"):
            href = attr_dict["href"].strip()
            if not href.startswith(("javascript:", "mailto:", "tel:")):
                link = {"href": urljoin(self.base_url, href), "text": ""}
                self.links.append(link)
                self._open_capture(tag, link)
        elif tag == "script":
            src = attr_dict.get("src")
            script = {
                "src": urljoin(self.base_url, src) if src else None,
                "type": attr_dict.get("type", ""),
                "inline": None if src else "",
            }
            self.scripts.append(script)
            if not src:
                self._open_capture(tag, script, key="inline")
        elif tag == "form":
            self.forms.append({
                "action": urljoin(self.base_url, attr_dict.get("action", "")),
                "method": attr_dict.get("method", "get").upper(),
                "inputs": [],
            })
        elif tag == "iframe":
            src = attr_dict.get("src", "").strip()
            self.iframes.append({
                "src": urljoin(self.base_url, src) if src else "",
                "id": attr_dict.get("id", ""),
                "name": attr_dict.get("name", ""),
                "title": attr_dict.get("title", ""),
                "sandbox": attr_dict.get("sandbox"),
                "width": attr_dict.get("width", ""),
                "height": attr_dict.get("height", ""),
            })
        elif tag in ("input", "select", "textarea") and self.forms:
            self.forms[-1]["inputs"].append({
                "type": attr_dict.get("type", tag),
                "name": attr_dict.get("name", ""),
                "id": attr_dict.get("id", ""),
            })

        for selector, parsed in self.selectors.items():
            if self._matches(tag, attr_dict, parsed):
                element = {
                    "tag": tag.upper(),
                    "attributes": [{"name": k, "value": v} for k, v in attrs],
                }
                self.selected[selector].append(element)
                if tag not in _VOID_TAGS:
                    self._open_capture(tag, element)

    def handle_data(self, data):
        for tag, _, sink in self._captures:
            key = "inline" if tag == "script" else "text"
            sink[key] = (sink.get(key) or "") + data

    def handle_endtag(self, tag):
        stack = self._open.get(tag)
        if not stack:
            return
        seq = stack.pop()
        # Close every capture opened by the matching start tag
        still_open = []
        for open_tag, open_seq, sink in self._captures:
            if open_seq != seq:
                still_open.append((open_tag, open_seq, sink))
                continue
            kind = sink.pop("kind", None)
            text = (sink.get("text") or "").strip()
            if kind == "title":
                self.title = text
            elif kind in self.headings:
                self.headings[kind].append(text)
            elif "text" in sink:
                sink["text"] = text[:200]
        self._captures = still_open

    # -- results ------------------------------------------------------------

    def inline_script_text(self) -> str:
        return "\n".join(s["inline"] for s in self.scripts if s.get("inline"))

    def analysis(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "title": self.title,
            "meta_tags": self.meta,
            "headings": self.headings,
            "links": self.links,
            "scripts": [
                {"src": s["src"], "type": s["type"], "inline": (s["inline"] or "")[:500] if s["inline"] is not None else None}
                for s in self.scripts
            ],
            "forms": self.forms,
            "iframes": self.iframes,
            "interactive_elements": {
                "buttons": self.counts["button"],
                "links": self.counts["a"],
                "inputs": self.counts["input"] + self.counts["select"] + self.counts["textarea"],
                "forms": self.counts["form"],
            },
        }
        if self.selectors:
            result["selected"] = self.selected
        return result


def extract_markup(html: str, base_url: str, selectors: Optional[List[str]] = None) -> MarkupExtractor:
    extractor = MarkupExtractor(base_url, selectors)
    extractor.feed(html)
    extractor.close()
    return extractor


# ============================================================================
# HTTP-backed capabilities
# ============================================================================

class HttpCapability(Capability):
    """
    Shared plumbing for tools that fetch the target over HTTP.

    `transport` lets tests (or hosts with a proxy) swap the network layer;
    a fresh AsyncClient is opened per call so concurrent runs share nothing.
    """

    def __init__(self, config: Optional[ToolkitConfig] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config or get_config().toolkit
        self._transport = transport

    def _client(self, **kwargs) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.config.http_timeout,
            follow_redirects=self.config.follow_redirects,
            headers={"User-Agent": self.config.user_agent},
            transport=self._transport,
            **kwargs,
        )

    def _require_url(self, parameters: Dict[str, Any]) -> str:
        url = str(parameters.get("url") or "").strip()
        if not url:
            raise RevError(ErrorCode.TOOL_EXEC_FAILED, f"{self.name} requires a 'url' parameter")
        if not urlparse(url).scheme:
            url = f"https://{url}"
        return url

    def _body(self, response: httpx.Response) -> str:
        return response.text[: self.config.max_body_bytes]

    async def fetch(self, url: str) -> httpx.Response:
        async with self._client() as client:
            response = await client.get(url)
            response.raise_for_status()
            return response


class NetworkMonitor(HttpCapability):
    """Records every request/response exchange made while loading the target."""

    description = "Monitor and record network exchanges made while loading the target"

    @property
    def name(self) -> str:
        return NETWORK_MONITOR

    async def execute(self, parameters: Dict[str, Any]) -> Dict[str, Any]:
        url = self._require_url(parameters)
        exchanges: List[Dict[str, Any]] = []

        async def on_request(request: httpx.Request):
            exchanges.append({
                "type": "request",
                "method": request.method,
                "url": str(request.url),
                "request_headers": {k: v for k, v in request.headers.items() if k.lower() != "authorization"},
            })

        async def on_response(response: httpx.Response):
            exchanges.append({
                "type": "response",
                "method": response.request.method,
                "url": str(response.request.url),
                "status_code": response.status_code,
                "response_headers": dict(response.headers),
            })

        hooks = {"request": [on_request], "response": [on_response]}
        async with self._client(event_hooks=hooks) as client:
            await client.get(url)

        return {
            "success": bool(exchanges),
            "data": exchanges,
            "metadata": {"count": len(exchanges), "url": url},
        }


class DomAnalyzer(HttpCapability):
    description = "Analyze DOM structure and extract information from fetched markup"

    @property
    def name(self) -> str:
        return DOM_ANALYZER

    async def execute(self, parameters: Dict[str, Any]) -> Dict[str, Any]:
        url = self._require_url(parameters)
        response = await self.fetch(url)
        extractor = extract_markup(self._body(response), str(response.url), parameters.get("selectors"))
        analysis = extractor.analysis()
        return {
            "success": True,
            "data": analysis,
            "metadata": {
                "url": str(response.url),
                "link_count": len(analysis["links"]),
                "script_count": len(analysis["scripts"]),
                "form_count": len(analysis["forms"]),
            },
        }


class IframeDetector(HttpCapability):
    description = "Detect and analyze iframes embedded in the page"

    @property
    def name(self) -> str:
        return IFRAME_DETECTOR

    async def execute(self, parameters: Dict[str, Any]) -> Dict[str, Any]:
        url = self._require_url(parameters)
        response = await self.fetch(url)
        iframes = extract_markup(self._body(response), str(response.url)).iframes
        origin = urlparse(str(response.url)).netloc
        cross_origin = [f for f in iframes if f["src"] and urlparse(f["src"]).netloc not in ("", origin)]
        return {
            "success": bool(iframes),
            "data": iframes,
            "metadata": {
                "count": len(iframes),
                "cross_origin": len(cross_origin),
                "sandboxed": sum(1 for f in iframes if f["sandbox"] is not None),
                "url": str(response.url),
            },
        }


class ApiKeyFinder(HttpCapability):
    description = "Find API keys, tokens, and secrets in page markup and inline scripts"

    @property
    def name(self) -> str:
        return API_KEY_FINDER

    async def execute(self, parameters: Dict[str, Any]) -> Dict[str, Any]:
        url = self._require_url(parameters)
        response = await self.fetch(url)
        keys = [hit.to_dict() for hit in scan_secrets(self._body(response))]
        return {
            "success": bool(keys),
            "data": keys,
            "metadata": {"count": len(keys), "url": str(response.url)},
        }


class EndpointEnumerator(HttpCapability):
    description = "Enumerate API endpoints referenced by the page's scripts"

    @property
    def name(self) -> str:
        return ENDPOINT_ENUMERATOR

    async def execute(self, parameters: Dict[str, Any]) -> Dict[str, Any]:
        url = self._require_url(parameters)
        max_scripts = int(parameters.get("max_scripts", 5))

        async with self._client() as client:
            response = await client.get(url)
            response.raise_for_status()
            extractor = extract_markup(self._body(response), str(response.url))
            sources = [extractor.inline_script_text()]

            origin = urlparse(str(response.url)).netloc
            external = [s["src"] for s in extractor.scripts if s.get("src")]
            same_origin = [src for src in external if urlparse(src).netloc == origin][:max_scripts]
            for src in same_origin:
                try:
                    script = await client.get(src)
                    if script.status_code == 200:
                        sources.append(script.text[: self.config.max_body_bytes])
                except httpx.HTTPError as e:
                    logger.debug(f"[EndpointEnumerator] Skipping {src}: {e}")

        endpoints = [hit.to_dict() for hit in scan_endpoints("\n".join(sources))]
        return {
            "success": bool(endpoints),
            "data": endpoints,
            "metadata": {"count": len(endpoints), "scripts_scanned": len(same_origin), "url": str(response.url)},
        }


class RequestSimulator(HttpCapability):
    description = "Send a single request and return status, headers and body"

    @property
    def name(self) -> str:
        return REQUEST_SIMULATOR

    async def execute(self, parameters: Dict[str, Any]) -> Dict[str, Any]:
        url = self._require_url(parameters)
        method = str(parameters.get("method", "GET")).upper()
        async with self._client() as client:
            response = await client.request(
                method,
                url,
                headers=parameters.get("headers") or {},
                content=parameters.get("body"),
            )
        return {
            "success": response.is_success,
            "data": {
                "status": response.status_code,
                "reason": response.reason_phrase,
                "headers": dict(response.headers),
                "body": response.text[:10000],
            },
            "metadata": {"url": url, "method": method},
        }


# ============================================================================
# Host-independent capabilities
# ============================================================================

class ScriptInjector(Capability):
    """Placeholder for hosts without a browser: always unavailable."""

    description = "Inject JavaScript into the live page (requires a browser host)"

    @property
    def name(self) -> str:
        return SCRIPT_INJECTOR

    async def execute(self, parameters: Dict[str, Any]) -> Any:
        raise CapabilityUnavailable(self.name, "script injection requires a browser host")


class HexAnalyzer(Capability):
    description = "Analyze binary data in hex format"

    @property
    def name(self) -> str:
        return HEX_ANALYZER

    async def execute(self, parameters: Dict[str, Any]) -> Dict[str, Any]:
        data = parameters.get("data", b"")
        raw = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        hex_dump = " ".join(f"{b:02x}" for b in raw)
        return {
            "success": True,
            "data": {"hex": hex_dump, "length": len(raw), "preview": hex_dump[:100]},
        }


class GeneralExplorer(Capability):
    """Runs every other registered capability against the URL and aggregates."""

    description = "General exploration tool that combines multiple techniques"

    # Tools that need more than a URL are skipped
    SKIP = {GENERAL_EXPLORER, HEX_ANALYZER, SCRIPT_INJECTOR, REQUEST_SIMULATOR}

    def __init__(self, registry: CapabilityRegistry):
        self.registry = registry

    @property
    def name(self) -> str:
        return GENERAL_EXPLORER

    async def execute(self, parameters: Dict[str, Any]) -> Dict[str, Any]:
        url = parameters.get("url")
        results: Dict[str, Any] = {}
        for tool_name in self.registry.names():
            if tool_name in self.SKIP:
                continue
            try:
                results[tool_name] = await self.registry.resolve(tool_name).execute({"url": url})
            except Exception as e:
                logger.info(f"[GeneralExplorer] {tool_name} failed: {e}")
                results[tool_name] = {"success": False, "error": str(e)}

        return {
            "success": any(isinstance(r, dict) and r.get("success") for r in results.values()),
            "data": results,
            "metadata": {"tools_used": len(results), "objective": parameters.get("objective")},
        }


def default_capabilities(
    config: Optional[ToolkitConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> CapabilityRegistry:
    """Registry holding the full headless toolkit."""
    cfg = config or get_config().toolkit
    registry = CapabilityRegistry([
        NetworkMonitor(cfg, transport),
        DomAnalyzer(cfg, transport),
        ApiKeyFinder(cfg, transport),
        IframeDetector(cfg, transport),
        EndpointEnumerator(cfg, transport),
        RequestSimulator(cfg, transport),
        ScriptInjector(),
        HexAnalyzer(),
    ])
    registry.register(GeneralExplorer(registry))
    return registry

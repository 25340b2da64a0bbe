"""
Capability registry and the built-in headless toolkit.

The names below are the registry keys the planner emits Actions for. Hosts
that bring their own capabilities register them under the same keys.
"""

NETWORK_MONITOR = "network-monitor"
SCRIPT_INJECTOR = "script-injector"
DOM_ANALYZER = "dom-analyzer"
API_KEY_FINDER = "api-key-finder"
GENERAL_EXPLORER = "general-explorer"
ENDPOINT_ENUMERATOR = "endpoint-enumerator"
HEX_ANALYZER = "hex-analyzer"
REQUEST_SIMULATOR = "request-simulator"
IFRAME_DETECTOR = "iframe-detector"

"""
Capability protocol and registry.

A capability is a named, host-supplied unit of work the agent can invoke but
does not implement: network capture, markup analysis, secret scanning, and so
on. The registry is a plain name -> capability mapping. It is filled before a
run and only read during one, so concurrent runs may share it without locks.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Union

from revcore.errors import CapabilityNotFound
from revcore.utils.async_helpers import maybe_await

logger = logging.getLogger(__name__)


class Capability(ABC):
    """
    Base class for everything the dispatcher can invoke.

    Subclasses must implement:
      - name: unique registry key (e.g. "network-monitor")
      - execute(): async, takes the Action parameters, returns an opaque result

    Results are opaque to the engine except for the keys the verifier's
    local check reads: {"success": bool, "data": ..., "found": ...}.
    Failures are raised, never encoded as a sentinel return value.
    """

    description: str = ""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    async def execute(self, parameters: Dict[str, Any]) -> Any:
        ...

    def describe(self) -> Dict[str, str]:
        return {"name": self.name, "description": self.description}


class FunctionCapability(Capability):
    """Adapts a plain (sync or async) callable into a Capability."""

    def __init__(self, name: str, fn: Callable[[Dict[str, Any]], Any], description: str = ""):
        self._name = name
        self._fn = fn
        self.description = description

    @property
    def name(self) -> str:
        return self._name

    async def execute(self, parameters: Dict[str, Any]) -> Any:
        return await maybe_await(self._fn(parameters))

    def __repr__(self) -> str:
        return f"FunctionCapability({self._name!r})"


CapabilityLike = Union[Capability, Callable[[Dict[str, Any]], Any]]


class CapabilityRegistry:
    """Name -> Capability lookup. Last registration under a name wins."""

    def __init__(self, capabilities: Optional[Iterable[Capability]] = None):
        self._capabilities: Dict[str, Capability] = {}
        for capability in capabilities or ():
            self.register(capability)

    @classmethod
    def from_mapping(cls, capabilities: Mapping[str, CapabilityLike]) -> "CapabilityRegistry":
        """
        Build a registry from a host-supplied {name: capability} mapping.

        Bare callables are wrapped; the mapping key is the registry name even
        when it differs from the capability's own name.
        """
        registry = cls()
        for name, capability in capabilities.items():
            if not isinstance(capability, Capability):
                capability = FunctionCapability(name, capability)
            registry.register(capability, name=name)
        return registry

    def register(self, capability: Capability, name: Optional[str] = None) -> None:
        key = name or capability.name
        if key in self._capabilities:
            logger.debug(f"[Registry] Replacing capability {key}")
        self._capabilities[key] = capability

    def resolve(self, name: str) -> Capability:
        try:
            return self._capabilities[name]
        except KeyError:
            raise CapabilityNotFound(name) from None

    def names(self) -> List[str]:
        return sorted(self._capabilities)

    def describe(self) -> List[Dict[str, str]]:
        return [
            {"name": key, "description": cap.description}
            for key, cap in sorted(self._capabilities.items())
        ]

    def __contains__(self, name: object) -> bool:
        return name in self._capabilities

    def __len__(self) -> int:
        return len(self._capabilities)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

"""
revcore/agent/dispatcher.py
Resolves an Action's capability and invokes it with the Action's parameters.
"""

import asyncio
import logging
from typing import Any, Optional

from revcore.base.models import Action
from revcore.errors import CapabilityTimeout
from revcore.toolkit.registry import CapabilityRegistry
from revcore.utils.async_helpers import await_with_timeout

logger = logging.getLogger(__name__)


class ActionDispatcher:
    """
    Thin pass-through between the orchestrator and the registry.

    Nothing is caught here: CapabilityNotFound and anything a capability raises
    reach the orchestrator, which records them on the Step. The only
    translation is a host-configured timeout becoming CapabilityTimeout.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    async def execute(self, action: Action, registry: CapabilityRegistry) -> Any:
        capability = registry.resolve(action.capability)
        logger.info(f"[Dispatcher] {action.kind} -> {action.capability}")
        try:
            return await await_with_timeout(
                capability.execute(dict(action.parameters)),
                self.timeout,
                name=action.capability,
            )
        except asyncio.TimeoutError:
            raise CapabilityTimeout(action.capability, self.timeout) from None

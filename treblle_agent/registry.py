# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Agent registry.

Caches one agent per configuration fingerprint so that adapters registered
several times with the same options share an agent. Owned by application
start-up code and passed to adapters explicitly.
"""

from typing import Any, Optional

import structlog
from pydantic import ValidationError

from .agent import Treblle
from .config import TreblleSettings

logger = structlog.get_logger(__name__)


class AgentRegistry:
    """Explicit cache of ``Treblle`` agents keyed by configuration."""

    def __init__(self) -> None:
        self._agents: dict[str, Treblle] = {}
        self._default: Optional[Treblle] = None

    def __len__(self) -> int:
        return len(self._agents)

    def get(
        self,
        settings: Optional[TreblleSettings] = None,
        context: Optional[str] = None,
        **options: Any,
    ) -> Treblle:
        """Return the agent for ``settings``, creating it on first use.

        Invalid options yield an inert agent that is not cached.
        """
        if settings is None:
            try:
                settings = TreblleSettings(**options)
            except ValidationError:
                return Treblle(**options)
        key = settings.fingerprint()

        agent = self._agents.get(key)
        if agent is None:
            agent = Treblle(settings)
            self._agents[key] = agent
            if self._default is None:
                self._default = agent
            if settings.debug:
                logger.debug("treblle_agent_created", context=context, agents=len(self._agents))

        return agent

    def default(self, context: Optional[str] = None) -> Treblle:
        """First agent created; raises ``LookupError`` when there is none."""
        if self._default is None:
            where = f" in {context}" if context else ""
            raise LookupError(
                f"No Treblle agent found{where}. Create one with options first."
            )
        return self._default

    def latest(self) -> Optional[Treblle]:
        if not self._agents:
            return None
        return next(reversed(self._agents.values()))

    def clear(self) -> None:
        self._agents.clear()
        self._default = None

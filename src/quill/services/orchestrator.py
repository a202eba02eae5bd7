"""Scatter half of the evaluation: run the three analysis agents concurrently."""

import asyncio
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field

from quill.config import Settings
from quill.exceptions import AgentInvocationError
from quill.schemas.evaluation import EvaluationInput
from quill.services.agents import ROLE_ORDER, AgentConfig, AgentRole, AnalysisAgent
from quill.services.decoder import AgentOutput, decode_with_status, fallback_for
from quill.services.llm import ChatBackend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentOutputs:
    content: AgentOutput
    structure: AgentOutput
    language: AgentOutput
    latencies_ms: dict[str, float] = field(default_factory=dict)
    fallbacks: tuple[str, ...] = ()

    @property
    def max_latency_ms(self) -> float:
        return max(self.latencies_ms.values(), default=0.0)


class AgentOrchestrator:
    def __init__(self, agents: Mapping[AgentRole, AnalysisAgent]) -> None:
        missing = [role for role in ROLE_ORDER if role not in agents]
        if missing:
            raise ValueError(f"Missing analysis agents: {', '.join(missing)}")
        self._agents = dict(agents)

    @classmethod
    def from_settings(
        cls, settings: Settings, backends: Mapping[str, ChatBackend]
    ) -> "AgentOrchestrator":
        agents = {}
        for role in ROLE_ORDER:
            config = AgentConfig(**settings.agent_config(role))
            agents[role] = AnalysisAgent(
                role,
                backends[config.backend],
                config,
                timeout=settings.agent_timeout,
            )
        return cls(agents)

    @property
    def agents(self) -> dict[AgentRole, AnalysisAgent]:
        return dict(self._agents)

    async def _run_one(self, role: AgentRole, submission: EvaluationInput) -> tuple[AgentOutput, bool, float]:
        start = time.perf_counter()
        try:
            raw = await self._agents[role].run(submission)
        except AgentInvocationError as e:
            logger.warning("Agent degraded to fallback: %s", e)
            output, used_fallback = fallback_for(role), True
        else:
            try:
                output, used_fallback = decode_with_status(raw, role)
            except Exception as e:
                logger.warning("%s agent output could not be decoded, using fallback: %s", role, e)
                output, used_fallback = fallback_for(role), True
        elapsed = (time.perf_counter() - start) * 1000
        return output, used_fallback, elapsed

    async def dispatch(self, submission: EvaluationInput) -> AgentOutputs:
        """Run all agents concurrently; each branch resolves to an output or its fallback."""
        results = await asyncio.gather(
            *(self._run_one(role, submission) for role in ROLE_ORDER)
        )
        by_role = dict(zip(ROLE_ORDER, results))
        fallbacks = tuple(role.value for role, (_, fb, _) in by_role.items() if fb)
        latencies = {role.value: ms for role, (_, _, ms) in by_role.items()}

        logger.info(
            "Agents resolved: %s (fallbacks: %s)",
            ", ".join(f"{r}={ms:.0f}ms" for r, ms in latencies.items()),
            ", ".join(fallbacks) or "none",
        )
        return AgentOutputs(
            content=by_role[AgentRole.CONTENT][0],
            structure=by_role[AgentRole.STRUCTURE][0],
            language=by_role[AgentRole.LANGUAGE][0],
            latencies_ms=latencies,
            fallbacks=fallbacks,
        )

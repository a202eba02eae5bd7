"""Multi-agent writing evaluation.

Flow for one submission::

    validate -> dispatch 3 agents concurrently (decode / fallback each)
             -> synthesize weighted scores + feedback -> peer estimate
             -> assemble immutable EvaluationResult

Agent failures degrade to role fallbacks and never reach the caller. A
submission that fails validation raises ``ValidationError`` before any
backend is contacted; anything else that breaks after acceptance raises
``EvaluationError`` and produces no partial result.
"""

import asyncio
import json
import logging
import time
from collections.abc import Mapping
from typing import Any

from quill.config import Settings
from quill.exceptions import EvaluationError, ValidationError
from quill.schemas.evaluation import EvaluationInput, EvaluationResult
from quill.services.assembler import assemble
from quill.services.efficiency import compute_writing_efficiency
from quill.services.llm import ChatBackend
from quill.services.orchestrator import AgentOrchestrator
from quill.services.peer import PeerComparator
from quill.services.synthesis import SynthesisEngine
from quill.services.validator import validate_submission
from quill.utils.llm_parse import coerce_str_list, extract_json_array

logger = logging.getLogger(__name__)

REALTIME_MIN_CHARS = 50

_REALTIME_PROMPT = """\
Provide 2-3 quick writing suggestions for this {exam_type} answer in progress:

Context: {context}
Current text: {content}

Suggest improvements for:
- Clarity and flow
- Missing important points
- Better examples or evidence

Respond ONLY with JSON: {{"suggestions": ["suggestion1", "suggestion2", "suggestion3"]}}"""


class WritingEvaluationService:
    def __init__(
        self,
        orchestrator: AgentOrchestrator,
        settings: Settings,
        *,
        synthesis: SynthesisEngine | None = None,
        peer: PeerComparator | None = None,
        realtime_backend: ChatBackend | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._synthesis = synthesis or SynthesisEngine(settings)
        self._peer = peer or PeerComparator(settings)
        self._realtime_backend = realtime_backend
        self._realtime_model = settings.realtime_model
        self._realtime_temperature = settings.realtime_temperature
        self._realtime_max_tokens = settings.realtime_max_tokens
        self._realtime_max_suggestions = settings.realtime_max_suggestions
        self._realtime_timeout = settings.realtime_timeout

    @property
    def orchestrator(self) -> AgentOrchestrator:
        return self._orchestrator

    async def evaluate_writing(
        self, submission: EvaluationInput | Mapping[str, Any]
    ) -> EvaluationResult:
        validated = validate_submission(submission)
        started_at = time.perf_counter()

        try:
            outputs = await self._orchestrator.dispatch(validated)
            synthesis = self._synthesis.synthesize(
                validated, outputs.content, outputs.structure, outputs.language
            )
            result = assemble(
                synthesis,
                self._peer.estimate(synthesis.overall_score),
                compute_writing_efficiency(validated.metadata),
                started_at=started_at,
                fallbacks=outputs.fallbacks,
            )
        except (ValidationError, EvaluationError):
            raise
        except Exception as e:
            logger.exception("Writing evaluation failed")
            raise EvaluationError(str(e) or type(e).__name__) from e

        logger.info(
            "Evaluation %s completed for %s - score %d in %.0fms",
            result.id,
            validated.exam_type,
            result.overall_score,
            result.processing_time,
        )
        return result

    async def get_realtime_suggestions(
        self, content: str, context: str, *, exam_type: str = "UPSC Mains"
    ) -> list[str]:
        """Quick suggestions for an answer in progress; failures yield no suggestions."""
        if len(content) < REALTIME_MIN_CHARS or self._realtime_backend is None:
            return []

        prompt = _REALTIME_PROMPT.format(exam_type=exam_type, context=context, content=content)
        try:
            response = await asyncio.wait_for(
                self._realtime_backend.chat(
                    [{"role": "user", "content": prompt}],
                    model=self._realtime_model,
                    temperature=self._realtime_temperature,
                    max_tokens=self._realtime_max_tokens,
                    json_format=True,
                ),
                timeout=self._realtime_timeout,
            )
            data = json.loads(extract_json_array(response.content))
        except Exception as e:
            logger.warning("Realtime suggestions failed: %s", e)
            return []

        if isinstance(data, dict):
            data = data.get("suggestions")
        return coerce_str_list(data)[: self._realtime_max_suggestions]

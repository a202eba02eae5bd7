import time
import uuid
from collections.abc import Iterable
from datetime import datetime, timezone

from quill.schemas.evaluation import (
    EvaluationResult,
    PeerComparison,
    WritingEfficiency,
)
from quill.services.synthesis import Synthesis


def new_evaluation_id() -> str:
    return f"eval_{uuid.uuid4().hex}"


def assemble(
    synthesis: Synthesis,
    comparison: PeerComparison,
    efficiency: WritingEfficiency,
    *,
    started_at: float,
    fallbacks: Iterable[str] = (),
) -> EvaluationResult:
    """Stamp id, timestamp and latency onto a synthesized evaluation.

    ``started_at`` is a ``time.perf_counter()`` reading taken when the
    submission was accepted.
    """
    elapsed_ms = max(0.0, (time.perf_counter() - started_at) * 1000)
    return EvaluationResult(
        id=new_evaluation_id(),
        overall_score=synthesis.overall_score,
        scores=synthesis.scores,
        feedback=synthesis.feedback,
        analytics=synthesis.analytics,
        comparison=comparison,
        writing_efficiency=efficiency,
        fallback_agents=list(fallbacks),
        processing_time=elapsed_ms,
        created_at=datetime.now(timezone.utc),
    )

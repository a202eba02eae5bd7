import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException

from quill.dependencies import get_evaluator, get_result_store
from quill.schemas.evaluation import (
    EvaluationResult,
    RealtimeSuggestionRequest,
    RealtimeSuggestionResponse,
    WritingEfficiency,
    WritingMetadata,
)
from quill.services.efficiency import compute_writing_efficiency
from quill.services.evaluator import WritingEvaluationService
from quill.services.result_store import ResultStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["writing-evaluation"])


@router.post("/writing-evaluation", response_model=EvaluationResult)
async def evaluate_writing(
    payload: Any = Body(...),
    evaluator: WritingEvaluationService = Depends(get_evaluator),
    store: ResultStore = Depends(get_result_store),
) -> EvaluationResult:
    """Run the multi-agent evaluation on one written answer."""
    # validation happens inside the service so bounds errors surface as ValidationError
    result = await evaluator.evaluate_writing(payload)
    store.set(result)
    return result


@router.get("/writing-evaluation")
async def health(
    evaluator: WritingEvaluationService = Depends(get_evaluator),
) -> dict:
    return {
        "status": "healthy",
        "service": "writing-evaluation",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "agents": {
            role.value: {"backend": agent.config.backend, "model": agent.config.model}
            for role, agent in evaluator.orchestrator.agents.items()
        },
    }


@router.get("/writing-evaluation/{evaluation_id}", response_model=EvaluationResult)
async def get_evaluation(
    evaluation_id: str,
    store: ResultStore = Depends(get_result_store),
) -> EvaluationResult:
    result = store.get(evaluation_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Evaluation not found")
    return result


@router.post("/writing-evaluation/realtime", response_model=RealtimeSuggestionResponse)
async def realtime_suggestions(
    request: RealtimeSuggestionRequest,
    evaluator: WritingEvaluationService = Depends(get_evaluator),
) -> RealtimeSuggestionResponse:
    """Quick suggestions while the answer is being typed."""
    suggestions = await evaluator.get_realtime_suggestions(
        request.content,
        request.context,
        exam_type=request.exam_type,
    )
    return RealtimeSuggestionResponse(
        suggestions=suggestions,
        timestamp=datetime.now(timezone.utc),
        content_length=len(request.content),
    )


@router.post("/writing-evaluation/efficiency", response_model=WritingEfficiency)
async def writing_efficiency(metadata: WritingMetadata) -> WritingEfficiency:
    return compute_writing_efficiency(metadata)

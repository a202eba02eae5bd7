from fastapi import Request

from quill.services.evaluator import WritingEvaluationService
from quill.services.result_store import ResultStore


def get_evaluator(request: Request) -> WritingEvaluationService:
    """Retrieve the WritingEvaluationService singleton from app state."""
    return request.app.state.evaluator


def get_result_store(request: Request) -> ResultStore:
    """Retrieve the ResultStore singleton from app state."""
    return request.app.state.result_store

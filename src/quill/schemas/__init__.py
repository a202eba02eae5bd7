"""Quill schemas."""

from quill.schemas.evaluation import (
    EvaluationInput,
    EvaluationResult,
    WritingEfficiency,
    WritingMetadata,
)

__all__ = [
    "EvaluationInput",
    "EvaluationResult",
    "WritingEfficiency",
    "WritingMetadata",
]

"""Submission gate: the only check that runs before any backend call."""

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from quill.exceptions import ValidationError
from quill.schemas.evaluation import CONTENT_MAX_CHARS, CONTENT_MIN_CHARS, EvaluationInput


def _describe(error: dict) -> tuple[str, str]:
    field = ".".join(str(part) for part in error.get("loc", ())) or "submission"
    kind = error.get("type", "")
    if field == "content" and kind in ("string_too_short", "string_too_long"):
        return field, (
            f"must be between {CONTENT_MIN_CHARS} and {CONTENT_MAX_CHARS} characters"
        )
    if kind == "missing":
        return field, "is required"
    if kind == "string_too_short":
        return field, f"must be at least {error['ctx']['min_length']} characters"
    message = error.get("msg", "is invalid")
    return field, message.removeprefix("Value error, ")


def validate_submission(raw: EvaluationInput | Mapping[str, Any]) -> EvaluationInput:
    """Normalize a candidate submission into an EvaluationInput.

    Accepts camelCase (wire) or snake_case keys.

    Raises:
        ValidationError: names the first violated field and constraint
    """
    if isinstance(raw, EvaluationInput):
        return raw
    if not isinstance(raw, Mapping):
        raise ValidationError("submission", "must be an object")
    try:
        return EvaluationInput.model_validate(dict(raw))
    except PydanticValidationError as e:
        field, constraint = _describe(e.errors()[0])
        raise ValidationError(field, constraint) from e

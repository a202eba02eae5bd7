import pytest
from pydantic import ValidationError as PydanticValidationError

from quill.exceptions import ValidationError
from quill.schemas.evaluation import EvaluationInput
from quill.services.validator import validate_submission

from conftest import SAMPLE_ANSWER, SAMPLE_SUBMISSION


class TestValidateSubmission:
    def test_accepts_camel_case_payload(self):
        submission = validate_submission(SAMPLE_SUBMISSION)
        assert submission.question_text.startswith("Discuss")
        assert submission.metadata.word_count == 520
        assert submission.metadata.source == "text"

    def test_applies_defaults(self):
        submission = validate_submission({"content": SAMPLE_ANSWER, "questionText": "Discuss federalism."})
        assert submission.exam_type == "UPSC Mains"
        assert submission.subject == "General Studies"
        assert submission.metadata is None

    def test_passes_through_validated_input(self):
        submission = EvaluationInput.model_validate(SAMPLE_SUBMISSION)
        assert validate_submission(submission) is submission

    @pytest.mark.parametrize("content", ["x" * 99, "x" * 10001])
    def test_rejects_content_outside_bounds(self, content: str):
        with pytest.raises(ValidationError) as exc_info:
            validate_submission({**SAMPLE_SUBMISSION, "content": content})
        assert exc_info.value.field == "content"
        assert "between 100 and 10000" in exc_info.value.constraint

    def test_accepts_boundary_lengths(self):
        for content in ("x" * 100, "x" * 10000):
            assert validate_submission({**SAMPLE_SUBMISSION, "content": content}).content == content

    def test_rejects_missing_question(self):
        payload = {k: v for k, v in SAMPLE_SUBMISSION.items() if k != "questionText"}
        with pytest.raises(ValidationError, match="questionText: is required"):
            validate_submission(payload)

    def test_rejects_blank_question(self):
        with pytest.raises(ValidationError, match="question text is required"):
            validate_submission({**SAMPLE_SUBMISSION, "questionText": " " * 12})

    def test_rejects_short_question(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_submission({**SAMPLE_SUBMISSION, "questionText": "Discuss."})
        assert exc_info.value.field == "questionText"
        assert exc_info.value.constraint == "must be at least 10 characters"

    def test_rejects_unknown_source(self):
        payload = {**SAMPLE_SUBMISSION, "metadata": {**SAMPLE_SUBMISSION["metadata"], "source": "fax"}}
        with pytest.raises(ValidationError) as exc_info:
            validate_submission(payload)
        assert exc_info.value.field == "metadata.source"

    def test_rejects_non_mapping(self):
        with pytest.raises(ValidationError, match="must be an object"):
            validate_submission(["not", "a", "dict"])

    def test_input_is_immutable(self):
        submission = validate_submission(SAMPLE_SUBMISSION)
        with pytest.raises(PydanticValidationError):
            submission.content = "changed"


class TestDerivedFields:
    def test_word_count_prefers_telemetry(self):
        assert validate_submission(SAMPLE_SUBMISSION).word_count == 520

    def test_word_count_falls_back_to_content(self):
        submission = validate_submission({"content": SAMPLE_ANSWER, "questionText": "Discuss federalism."})
        assert submission.word_count == len(SAMPLE_ANSWER.split())

    def test_minutes_spent_falls_back_to_top_level(self):
        submission = validate_submission(
            {"content": SAMPLE_ANSWER, "questionText": "Discuss federalism.", "timeSpent": 12}
        )
        assert submission.minutes_spent == 12

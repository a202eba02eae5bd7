class QuillError(Exception):
    """Base exception for Quill service."""


class ValidationError(QuillError):
    """Raised when a submission violates a bounds or required-field check."""

    def __init__(self, field: str, constraint: str) -> None:
        self.field = field
        self.constraint = constraint
        super().__init__(f"{field}: {constraint}")


class AgentInvocationError(QuillError):
    """Raised when one analysis agent's backend call fails or times out."""

    def __init__(self, role: str, message: str) -> None:
        self.role = role
        super().__init__(f"{role} agent failed: {message}")


class BackendError(QuillError):
    """Raised when a generative-text backend returns an unusable response."""


class EvaluationError(QuillError):
    """Raised when an evaluation fails after the submission was accepted."""

    def __init__(self, cause: str) -> None:
        self.cause = cause
        super().__init__(f"Evaluation failed: {cause}")


class SynthesisError(EvaluationError):
    """Raised when synthesis receives an agent output without a usable score."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from quill.config import Settings
from quill.services.agents import AgentConfig, AgentRole, AnalysisAgent
from quill.services.evaluator import WritingEvaluationService
from quill.services.llm import ChatResponse
from quill.services.orchestrator import AgentOrchestrator
from quill.services.result_store import InMemoryResultStore

CONTENT_JSON = {
    "score": 82,
    "factualAccuracy": 85,
    "relevance": 88,
    "depth": 76,
    "coverage": 74,
    "strengths": ["Accurate constitutional references", "Good use of examples"],
    "weaknesses": ["Limited discussion of fiscal challenges"],
    "missingTopics": ["Cooperative federalism", "Finance Commission"],
    "keywordsDemonstrated": ["Article 356", "Seventh Schedule"],
    "suggestions": ["Cite a recent Supreme Court judgment"],
    "analysis": "Relevant and mostly accurate.",
}

STRUCTURE_JSON = {
    "score": 70,
    "introduction": 72,
    "flow": 68,
    "organization": 75,
    "transitions": 60,
    "conclusion": 70,
    "coherence": 75,
    "strengths": ["Clear introduction"],
    "improvements": ["Use subheadings for each dimension"],
    "structuralSuggestions": ["End with a forward-looking conclusion"],
}

LANGUAGE_JSON = {
    "score": 88,
    "grammar": 90,
    "vocabulary": 85,
    "clarity": 75,
    "style": 85,
    "readabilityScore": 75,
    "vocabularyLevel": "Advanced",
    "sentenceComplexity": "Complex",
    "strengths": ["Precise vocabulary"],
    "errors": ["Minor article misuse"],
    "suggestions": ["Shorten overly long sentences"],
    "tone": "Formal and appropriate",
}

AGENT_REPLIES = {
    AgentRole.CONTENT: CONTENT_JSON,
    AgentRole.STRUCTURE: STRUCTURE_JSON,
    AgentRole.LANGUAGE: LANGUAGE_JSON,
}

SAMPLE_ANSWER = (
    "Indian federalism has been described as quasi-federal because the Constitution "
    "creates a strong Union while distributing legislative powers through the Seventh "
    "Schedule. Articles 249, 250 and 356 allow the centre to act in state domains.\n\n"
    "At the same time, bodies such as the GST Council and the Inter-State Council show "
    "a cooperative turn, and judgments like S.R. Bommai limit the misuse of emergency "
    "provisions, strengthening the federal balance in practice."
)

SAMPLE_SUBMISSION = {
    "content": SAMPLE_ANSWER,
    "questionText": "Discuss whether Indian federalism is quasi-federal in nature.",
    "examType": "UPSC Mains",
    "subject": "General Studies II",
    "metadata": {
        "timeSpent": 52,
        "wordCount": 520,
        "keystrokes": 2900,
        "pauses": [1200, 6000, 800, 7000],
        "source": "text",
    },
}


def reply(payload: dict | str, *, delay: float = 0.0):
    """Build an async chat side effect that answers with ``payload`` after ``delay``."""
    content = payload if isinstance(payload, str) else json.dumps(payload)

    async def _chat(*args, **kwargs) -> ChatResponse:
        if delay:
            await asyncio.sleep(delay)
        return ChatResponse(content=content, model="test-model")

    return _chat


def fail(exc: Exception, *, delay: float = 0.0):
    async def _chat(*args, **kwargs) -> ChatResponse:
        if delay:
            await asyncio.sleep(delay)
        raise exc

    return _chat


@pytest.fixture
def mock_settings() -> Settings:
    return Settings(
        openai_api_key="test-key",
        anthropic_api_key="test-key",
        llm_max_retries=0,
        llm_retry_delay=0.0,
        agent_timeout=2.0,
        feedback_max_items=5,
    )


@pytest.fixture
def backends() -> dict[AgentRole, MagicMock]:
    """One mocked backend per agent role, answering with the sample JSON."""
    mocks = {}
    for role, payload in AGENT_REPLIES.items():
        backend = MagicMock()
        backend.name = f"mock-{role}"
        backend.chat = AsyncMock(side_effect=reply(payload))
        mocks[role] = backend
    return mocks


def build_orchestrator(backends, *, timeout: float = 2.0) -> AgentOrchestrator:
    return AgentOrchestrator(
        {
            role: AnalysisAgent(
                role,
                backend,
                AgentConfig(backend="mock", model=f"{role}-model"),
                timeout=timeout,
            )
            for role, backend in backends.items()
        }
    )


@pytest.fixture
def orchestrator(backends) -> AgentOrchestrator:
    return build_orchestrator(backends)


@pytest.fixture
def realtime_backend() -> MagicMock:
    backend = MagicMock()
    backend.chat = AsyncMock(
        side_effect=reply(
            {
                "suggestions": [
                    "Add a map-based example",
                    "Quote Article 1",
                    "Mention NITI Aayog",
                    "Discuss the Sarkaria Commission",
                ]
            }
        )
    )
    return backend


@pytest.fixture
def evaluator(orchestrator, mock_settings, realtime_backend) -> WritingEvaluationService:
    return WritingEvaluationService(
        orchestrator, mock_settings, realtime_backend=realtime_backend
    )


@pytest.fixture
def test_app(evaluator: WritingEvaluationService):
    """Create a test FastAPI app with mocked backends."""
    from fastapi import FastAPI

    from quill.exceptions import QuillError, ValidationError
    from quill.main import quill_error_handler, validation_error_handler
    from quill.routers.evaluation import router as evaluation_router

    app = FastAPI()
    app.state.evaluator = evaluator
    app.state.result_store = InMemoryResultStore(max_items=10)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(QuillError, quill_error_handler)
    app.include_router(evaluation_router)
    return app


@pytest.fixture
def client(test_app) -> TestClient:
    return TestClient(test_app)

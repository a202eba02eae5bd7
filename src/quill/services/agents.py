"""Analysis agents: one prompt per quality dimension, one backend call each.

Agents are stateless. Each renders its role-specific prompt from the
submission, asks its backend for a JSON object and returns the raw text;
decoding and fallback handling live in :mod:`quill.services.decoder`.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import StrEnum

from quill.exceptions import AgentInvocationError
from quill.schemas.evaluation import EvaluationInput
from quill.services.llm import ChatBackend

logger = logging.getLogger(__name__)


class AgentRole(StrEnum):
    CONTENT = "content"
    STRUCTURE = "structure"
    LANGUAGE = "language"


# Fixed role order: dispatch order, feedback tie-breaking, logging
ROLE_ORDER: tuple[AgentRole, ...] = (
    AgentRole.CONTENT,
    AgentRole.STRUCTURE,
    AgentRole.LANGUAGE,
)

_CONTENT_PROMPT = """\
You are a {exam_type} content expert. Analyze this answer for:

Question: {question}
Subject: {subject}

Answer: {content}

Evaluate:
1. Factual accuracy and correctness
2. Relevance to the question
3. Depth of analysis and insights
4. Coverage of important aspects
5. Use of examples and case studies

Respond ONLY with a JSON object:
{{
  "score": number (0-100),
  "factualAccuracy": number (0-100),
  "relevance": number (0-100),
  "depth": number (0-100),
  "coverage": number (0-100),
  "strengths": ["strength1", "strength2"],
  "weaknesses": ["weakness1", "weakness2"],
  "missingTopics": ["topic1", "topic2"],
  "keywordsDemonstrated": ["keyword1", "keyword2"],
  "suggestions": ["suggestion1", "suggestion2"],
  "analysis": "Detailed explanation of content quality"
}}"""

_STRUCTURE_PROMPT = """\
You are a writing structure expert. Analyze this {exam_type} answer's organization and flow:

Question: {question}

Answer: {content}

Evaluate:
1. Introduction quality and hook
2. Logical flow between paragraphs
3. Body paragraph organization
4. Use of transitions
5. Conclusion effectiveness
6. Overall coherence

Respond ONLY with a JSON object:
{{
  "score": number (0-100),
  "introduction": number (0-100),
  "flow": number (0-100),
  "organization": number (0-100),
  "transitions": number (0-100),
  "conclusion": number (0-100),
  "coherence": number (0-100),
  "strengths": ["strength1", "strength2"],
  "improvements": ["improvement1", "improvement2"],
  "structuralSuggestions": ["suggestion1", "suggestion2"]
}}"""

_LANGUAGE_PROMPT = """\
You are a language expert. Analyze this text for language quality:

Text: {content}

Evaluate:
1. Grammar accuracy and syntax
2. Vocabulary appropriateness for {exam_type}
3. Sentence structure variety
4. Clarity of expression
5. Tone and style appropriateness
6. Readability and flow

Respond ONLY with a JSON object:
{{
  "score": number (0-100),
  "grammar": number (0-100),
  "vocabulary": number (0-100),
  "clarity": number (0-100),
  "style": number (0-100),
  "readabilityScore": number (0-100),
  "vocabularyLevel": "Basic|Intermediate|Advanced|Expert",
  "sentenceComplexity": "Simple|Moderate|Complex|Very Complex",
  "strengths": ["strength1", "strength2"],
  "errors": ["error1", "error2"],
  "suggestions": ["suggestion1", "suggestion2"],
  "tone": "Assessment of tone appropriateness"
}}"""

_PROMPTS: dict[AgentRole, str] = {
    AgentRole.CONTENT: _CONTENT_PROMPT,
    AgentRole.STRUCTURE: _STRUCTURE_PROMPT,
    AgentRole.LANGUAGE: _LANGUAGE_PROMPT,
}


def build_prompt(role: AgentRole, submission: EvaluationInput) -> str:
    return _PROMPTS[role].format(
        exam_type=submission.exam_type,
        subject=submission.subject,
        question=submission.question_text,
        content=submission.content,
    )


@dataclass(frozen=True)
class AgentConfig:
    backend: str
    model: str
    temperature: float = 0.3
    max_tokens: int = 2000


class AnalysisAgent:
    """Evaluates one quality dimension of a submission through one backend."""

    def __init__(
        self,
        role: AgentRole,
        backend: ChatBackend,
        config: AgentConfig,
        *,
        timeout: float = 60.0,
    ) -> None:
        self.role = role
        self.config = config
        self._backend = backend
        self._timeout = timeout

    async def run(self, submission: EvaluationInput) -> str:
        """Return the backend's raw text for this agent's prompt.

        Raises:
            AgentInvocationError: the backend call failed or exceeded the timeout
        """
        messages = [{"role": "user", "content": build_prompt(self.role, submission)}]
        try:
            response = await asyncio.wait_for(
                self._backend.chat(
                    messages,
                    model=self.config.model,
                    temperature=self.config.temperature,
                    max_tokens=self.config.max_tokens,
                    json_format=True,
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise AgentInvocationError(
                self.role, f"timed out after {self._timeout:.1f}s"
            ) from e
        except Exception as e:
            raise AgentInvocationError(self.role, str(e) or type(e).__name__) from e

        logger.debug(
            "%s agent answered via %s/%s (%d chars)",
            self.role,
            self.config.backend,
            response.model,
            len(response.content),
        )
        return response.content

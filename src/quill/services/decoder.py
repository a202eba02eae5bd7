"""Agent output decoding with role-specific fallbacks.

A mangled agent response must never abort an evaluation: anything that does
not parse into a JSON object is replaced by the fallback object of the role
passed in by the caller. Parsed objects are coerced, not validated: scores are
clamped to [0, 100] and list fields are normalized to lists of strings.
"""

import copy
import logging
from typing import Any

from quill.services.agents import AgentRole
from quill.utils.llm_parse import coerce_score, coerce_str_list, loads_object

AgentOutput = dict[str, Any]

logger = logging.getLogger(__name__)

_FALLBACKS: dict[AgentRole, AgentOutput] = {
    AgentRole.CONTENT: {
        "score": 68,
        "factualAccuracy": 70,
        "relevance": 70,
        "depth": 65,
        "coverage": 65,
        "strengths": ["Addresses the central theme of the question"],
        "weaknesses": ["Detailed analysis needed"],
        "missingTopics": [],
        "keywordsDemonstrated": [],
        "suggestions": ["Add more specific examples and case studies"],
        "analysis": "Automated content analysis unavailable; default assessment applied.",
    },
    AgentRole.STRUCTURE: {
        "score": 70,
        "introduction": 75,
        "flow": 65,
        "organization": 70,
        "transitions": 60,
        "conclusion": 70,
        "coherence": 65,
        "strengths": ["Clear thesis statement"],
        "improvements": ["Improve paragraph transitions"],
        "structuralSuggestions": ["Add clearer topic sentences"],
    },
    AgentRole.LANGUAGE: {
        "score": 72,
        "grammar": 75,
        "vocabulary": 70,
        "clarity": 70,
        "style": 70,
        "readabilityScore": 70,
        "vocabularyLevel": "Intermediate",
        "sentenceComplexity": "Moderate",
        "strengths": [],
        "errors": ["Review sentences for grammatical accuracy"],
        "suggestions": ["Vary sentence length to improve readability"],
        "tone": "Appropriate",
    },
}

_SCORE_FIELDS: dict[AgentRole, tuple[str, ...]] = {
    AgentRole.CONTENT: ("factualAccuracy", "relevance", "depth", "coverage"),
    AgentRole.STRUCTURE: (
        "introduction",
        "flow",
        "organization",
        "transitions",
        "conclusion",
        "coherence",
    ),
    AgentRole.LANGUAGE: ("grammar", "vocabulary", "clarity", "style", "readabilityScore"),
}

_LIST_FIELDS: dict[AgentRole, tuple[str, ...]] = {
    AgentRole.CONTENT: (
        "strengths",
        "weaknesses",
        "missingTopics",
        "missingPoints",
        "keywordsDemonstrated",
        "suggestions",
    ),
    AgentRole.STRUCTURE: ("strengths", "improvements", "structuralSuggestions"),
    AgentRole.LANGUAGE: ("strengths", "errors", "suggestions"),
}


def _resolve_role(role: AgentRole | str) -> AgentRole:
    try:
        return AgentRole(role)
    except ValueError:
        logger.warning("Unknown agent role %r, using content fallback shape", role)
        return AgentRole.CONTENT


def fallback_for(role: AgentRole | str) -> AgentOutput:
    """Return a fresh copy of the fallback object for ``role``."""
    return copy.deepcopy(_FALLBACKS[_resolve_role(role)])


def _coerce(data: AgentOutput, role: AgentRole) -> AgentOutput:
    output = dict(data)
    score = coerce_score(output.get("score"))
    if score is None:
        logger.warning("%s agent returned no usable score, using fallback score", role)
        score = _FALLBACKS[role]["score"]
    output["score"] = score

    for key in _SCORE_FIELDS[role]:
        if key in output:
            value = coerce_score(output[key])
            if value is None:
                del output[key]
            else:
                output[key] = value

    for key in _LIST_FIELDS[role]:
        if key in output:
            output[key] = coerce_str_list(output[key])
    return output


def decode_with_status(raw_text: str, role: AgentRole | str) -> tuple[AgentOutput, bool]:
    """Decode one agent response; the flag is True when the fallback was used."""
    resolved = _resolve_role(role)
    try:
        data = loads_object(raw_text or "")
    except (ValueError, RecursionError, TypeError) as e:
        logger.warning(
            "%s agent output unparsable, using fallback: %s | raw: %s",
            resolved,
            e,
            (raw_text or "")[:150],
        )
        return fallback_for(resolved), True
    return _coerce(data, resolved), False


def decode(raw_text: str, role: AgentRole | str) -> AgentOutput:
    """Parse ``raw_text`` into an AgentOutput, degrading to the role fallback."""
    output, _ = decode_with_status(raw_text, role)
    return output

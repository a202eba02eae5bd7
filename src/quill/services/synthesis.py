"""Gather half of the evaluation: weighted scoring and merged feedback.

Synthesis is a pure function of the submission and the three agent outputs.
Category weights are fixed so the same category scores always produce the
same overall score.
"""

import logging
import math
import re
from collections.abc import Sequence
from dataclasses import dataclass

from quill.config import Settings
from quill.exceptions import SynthesisError
from quill.schemas.evaluation import Analytics, CategoryScores, EvaluationInput, Feedback
from quill.services.decoder import AgentOutput
from quill.utils.llm_parse import coerce_score, coerce_str_list

logger = logging.getLogger(__name__)

CATEGORY_WEIGHTS: dict[str, float] = {
    "content": 0.40,
    "structure": 0.25,
    "language": 0.20,
    "presentation": 0.10,
    "time_management": 0.05,
}

# ratio of minutes spent to expected minutes that scores 100
TARGET_PACE_BAND = (0.8, 1.2)

_PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp(value: float) -> int:
    return max(0, min(100, round_half_up(value)))


def weighted_overall(scores: CategoryScores) -> int:
    total = sum(getattr(scores, name) * weight for name, weight in CATEGORY_WEIGHTS.items())
    return _clamp(total)


def count_paragraphs(text: str) -> int:
    return len([p for p in _PARAGRAPH_SPLIT_RE.split(text) if p.strip()])


def merge_ranked(sources: Sequence[Sequence[str]], limit: int) -> list[str]:
    """Merge lists by rank: every source's first item, then every second item, ...

    Sources are given in role order, which breaks ties at equal rank.
    Duplicates (case-insensitive) keep their first position.
    """
    merged: list[str] = []
    seen: set[str] = set()
    depth = max((len(s) for s in sources), default=0)
    for rank in range(depth):
        for source in sources:
            if rank >= len(source):
                continue
            item = source[rank]
            key = item.casefold()
            if key in seen:
                continue
            seen.add(key)
            merged.append(item)
            if len(merged) >= limit:
                return merged
    return merged


@dataclass(frozen=True)
class Synthesis:
    overall_score: int
    scores: CategoryScores
    feedback: Feedback
    analytics: Analytics


class SynthesisEngine:
    def __init__(self, settings: Settings) -> None:
        self._max_items = settings.feedback_max_items
        self._expected_wpm = settings.expected_words_per_minute
        self._default_time_score = settings.default_time_management_score

    # ------------------------------------------------------------------ #
    #  Category scores
    # ------------------------------------------------------------------ #

    @staticmethod
    def _agent_score(output: AgentOutput, role: str) -> float:
        score = coerce_score(output.get("score")) if isinstance(output, dict) else None
        if score is None:
            raise SynthesisError(f"{role} analysis has no numeric score")
        return score

    def presentation_score(
        self, submission: EvaluationInput, structure: AgentOutput, language: AgentOutput
    ) -> int:
        """Formatting heuristic from organization / clarity signals and paragraphing."""
        signals = [
            coerce_score(structure.get("organization")),
            coerce_score(structure.get("coherence")),
            coerce_score(language.get("clarity")),
            coerce_score(language.get("readabilityScore")),
        ]
        present = [s for s in signals if s is not None]
        if present:
            base = sum(present) / len(present)
        else:
            base = (
                self._agent_score(structure, "structure")
                + self._agent_score(language, "language")
            ) / 2

        paragraphs = count_paragraphs(submission.content)
        if paragraphs <= 1:
            base -= 10
        elif 3 <= paragraphs <= 6:
            base += 5
        return _clamp(base)

    def time_management_score(self, submission: EvaluationInput) -> int:
        """Score pace against the expected duration; both rushing and overrunning cost."""
        minutes = submission.minutes_spent
        if not minutes or minutes <= 0:
            return self._default_time_score

        expected = submission.word_count / self._expected_wpm
        if expected <= 0:
            return self._default_time_score

        ratio = minutes / expected
        low, high = TARGET_PACE_BAND
        if ratio < low:
            score = 100 - (low - ratio) / low * 60
        elif ratio > high:
            score = max(30.0, 100 - (ratio - high) * 50)
        else:
            score = 100.0
        return _clamp(score)

    # ------------------------------------------------------------------ #
    #  Feedback & analytics
    # ------------------------------------------------------------------ #

    def _merge(self, *sources: list[str]) -> list[str]:
        return merge_ranked(sources, self._max_items)

    def feedback(
        self, content: AgentOutput, structure: AgentOutput, language: AgentOutput
    ) -> Feedback:
        def items(output: AgentOutput, *keys: str) -> list[str]:
            collected: list[str] = []
            for key in keys:
                collected.extend(coerce_str_list(output.get(key)))
            return collected

        return Feedback(
            strengths=self._merge(
                items(content, "strengths"),
                items(structure, "strengths"),
                items(language, "strengths"),
            ),
            improvements=self._merge(
                items(content, "weaknesses"),
                items(structure, "improvements"),
                items(language, "errors"),
            ),
            suggestions=self._merge(
                items(content, "suggestions"),
                items(structure, "structuralSuggestions"),
                items(language, "suggestions"),
            ),
            missing_keywords=self._merge(items(content, "missingTopics", "missingPoints")),
        )

    @staticmethod
    def _paragraph_structure(paragraphs: int, organization: float | None) -> str:
        if organization is None:
            label = "Not assessed"
        elif organization >= 75 and paragraphs >= 3:
            label = "Well organized"
        elif organization >= 60:
            label = "Adequately organized"
        else:
            label = "Needs clearer organization"
        noun = "paragraph" if paragraphs == 1 else "paragraphs"
        return f"{label} ({paragraphs} {noun})"

    def analytics(
        self,
        submission: EvaluationInput,
        structure: AgentOutput,
        language: AgentOutput,
        language_score: float,
    ) -> Analytics:
        readability = coerce_score(language.get("readabilityScore"))
        vocabulary = language.get("vocabularyLevel")
        complexity = language.get("sentenceComplexity")
        return Analytics(
            readability_score=readability if readability is not None else language_score,
            vocabulary_level=vocabulary if isinstance(vocabulary, str) and vocabulary else "Intermediate",
            sentence_complexity=complexity if isinstance(complexity, str) and complexity else "Moderate",
            paragraph_structure=self._paragraph_structure(
                count_paragraphs(submission.content),
                coerce_score(structure.get("organization")),
            ),
        )

    # ------------------------------------------------------------------ #
    #  Entry point
    # ------------------------------------------------------------------ #

    def synthesize(
        self,
        submission: EvaluationInput,
        content: AgentOutput,
        structure: AgentOutput,
        language: AgentOutput,
    ) -> Synthesis:
        content_score = self._agent_score(content, "content")
        structure_score = self._agent_score(structure, "structure")
        language_score = self._agent_score(language, "language")

        scores = CategoryScores(
            content=_clamp(content_score),
            structure=_clamp(structure_score),
            language=_clamp(language_score),
            presentation=self.presentation_score(submission, structure, language),
            time_management=self.time_management_score(submission),
        )
        overall = weighted_overall(scores)
        logger.info(
            "Synthesized overall=%d (content=%d structure=%d language=%d presentation=%d time=%d)",
            overall,
            scores.content,
            scores.structure,
            scores.language,
            scores.presentation,
            scores.time_management,
        )
        return Synthesis(
            overall_score=overall,
            scores=scores,
            feedback=self.feedback(content, structure, language),
            analytics=self.analytics(submission, structure, language, language_score),
        )

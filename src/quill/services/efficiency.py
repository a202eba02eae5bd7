from quill.schemas.evaluation import PauseAnalysis, WritingEfficiency, WritingMetadata

KEYSTROKES_PER_WORD = 5
LONG_PAUSE_MS = 5000


def _efficiency_label(ratio: float) -> str:
    if ratio > 0.8:
        return "excellent"
    if ratio > 0.6:
        return "good"
    return "needs_improvement"


def _typing_pattern(long_pauses: int) -> str:
    if long_pauses > 3:
        return "hesitant"
    if long_pauses > 1:
        return "thoughtful"
    return "fluent"


def compute_writing_efficiency(metadata: WritingMetadata | None) -> WritingEfficiency:
    """Derive typing metrics from editor telemetry; no telemetry means "unknown"."""
    if metadata is None:
        return WritingEfficiency()

    wpm = round(metadata.word_count / metadata.time_spent) if metadata.time_spent > 0 else 0

    if metadata.keystrokes > 0:
        ideal = metadata.word_count * KEYSTROKES_PER_WORD
        efficiency = _efficiency_label(ideal / metadata.keystrokes)
    else:
        efficiency = "unknown"

    pauses = metadata.pauses
    long_pauses = sum(1 for p in pauses if p > LONG_PAUSE_MS)
    average = sum(pauses) / len(pauses) if pauses else 0.0

    return WritingEfficiency(
        wpm=wpm,
        efficiency=efficiency,
        typing_pattern=_typing_pattern(long_pauses),
        pause_analysis=PauseAnalysis(
            total_pauses=len(pauses),
            long_pauses=long_pauses,
            average_pause_time=average,
        ),
    )

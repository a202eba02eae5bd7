"""Peer comparison estimate.

Placeholder until a population of real scores is available: the percentile
is the overall score jittered within a bounded band. All constants are
settings.
"""

import random

from quill.config import Settings
from quill.schemas.evaluation import PeerComparison


class PeerComparator:
    def __init__(self, settings: Settings, rng: random.Random | None = None) -> None:
        self._average = settings.peer_average_score
        self._top = settings.peer_top_score
        self._jitter = settings.peer_jitter
        self._min = settings.peer_percentile_min
        self._max = settings.peer_percentile_max
        self._rng = rng or random.Random()

    def estimate(self, overall_score: float) -> PeerComparison:
        perturbed = overall_score + self._rng.uniform(-self._jitter, self._jitter)
        percentile = min(self._max, max(self._min, perturbed))
        return PeerComparison(
            peer_percentile=round(percentile, 1),
            average_score=self._average,
            top_performer_gap=max(0.0, self._top - overall_score),
        )

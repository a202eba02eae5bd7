import logging
from typing import Protocol

from quill.schemas.evaluation import EvaluationResult

logger = logging.getLogger(__name__)


class ResultStore(Protocol):
    def get(self, result_id: str) -> EvaluationResult | None: ...

    def set(self, result: EvaluationResult) -> None: ...

    def delete(self, result_id: str) -> bool: ...


class InMemoryResultStore:
    """Bounded in-process store; evicts the oldest results beyond ``max_items``."""

    def __init__(self, max_items: int = 500) -> None:
        self._max_items = max_items
        self._results: dict[str, EvaluationResult] = {}

    def __len__(self) -> int:
        return len(self._results)

    def get(self, result_id: str) -> EvaluationResult | None:
        return self._results.get(result_id)

    def set(self, result: EvaluationResult) -> None:
        self._results.pop(result.id, None)
        self._results[result.id] = result
        self._evict()

    def delete(self, result_id: str) -> bool:
        return self._results.pop(result_id, None) is not None

    def _evict(self) -> None:
        # dict preserves insertion order, so the front holds the oldest results
        excess = len(self._results) - self._max_items
        if excess <= 0:
            return
        for result_id in list(self._results)[:excess]:
            del self._results[result_id]
        logger.info("Evicted %d results, %d remain", excess, len(self._results))

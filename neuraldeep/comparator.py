"""
comparator.py
~~~~~~~~~~~~~

Ranks every version of a base name by its evaluation score.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from gevent.pool import Pool

from neuraldeep.errors import InsufficientModelsError
from neuraldeep.evaluator import Evaluator
from neuraldeep.naming import parse_identity
from neuraldeep.registry import ModelRegistry

logger = logging.getLogger(__name__)


def performance_score(error_rate: float) -> float:
    """Higher is better; 1.0 for a perfect model, never below 0."""
    return max(0.0, 1.0 - error_rate)


@dataclass
class ComparisonEntry:
    identity: str
    version: int
    error_rate: float
    performance_score: float

    def sort_key(self):
        return (-self.performance_score, self.error_rate, self.version)


@dataclass
class ComparisonReport:
    """Entries ordered best first."""

    base_name: str
    entries: List[ComparisonEntry] = field(default_factory=list)

    @property
    def best(self) -> Optional[ComparisonEntry]:
        return self.entries[0] if self.entries else None

    def __iter__(self) -> Iterator[ComparisonEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __getitem__(self, index: int) -> ComparisonEntry:
        return self.entries[index]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'base_name': self.base_name,
            'entries': [vars(entry) for entry in self.entries],
        }


class Comparator:
    """
    Evaluates all versions of a model and ranks them.

    Evaluations are read-only and independent, so they are spread over a
    gevent pool; only the final sort is sequential.
    """

    def __init__(
        self,
        registry: ModelRegistry,
        evaluator: Optional[Evaluator] = None,
        max_workers: int = 4
    ):
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self.registry = registry
        self.evaluator = evaluator or Evaluator()
        self.max_workers = max_workers

    def _score(self, identity: str, test_set) -> ComparisonEntry:
        model = self.registry.load_model(identity)
        report = self.evaluator.evaluate(model, test_set)
        return ComparisonEntry(
            identity=identity,
            version=parse_identity(identity)[1],
            error_rate=report.error_rate,
            performance_score=performance_score(report.error_rate)
        )

    def compare(
        self,
        base_name: str,
        test_set,
        top_k: Optional[int] = None
    ) -> ComparisonReport:
        """
        Rank every stored version of ``base_name`` on ``test_set``.

        Args:
            base_name: Base name whose versions are compared
            test_set: Sequence of (input, target) pairs
            top_k: Number of entries to keep, None for all

        Returns:
            ComparisonReport: Entries sorted by descending performance
            score, then ascending error rate, then ascending version

        Raises:
            InsufficientModelsError: If fewer than two versions exist
            ValueError: If top_k is less than 1
        """
        if top_k is not None and top_k < 1:
            raise ValueError(f"top_k must be at least 1, got {top_k}")

        identities = self.registry.list_versions(base_name)
        if len(identities) < 2:
            raise InsufficientModelsError(base_name, len(identities))

        test_set = list(test_set)
        pool = Pool(self.max_workers)
        entries = pool.map(lambda identity: self._score(identity, test_set), identities)

        entries = sorted(entries, key=ComparisonEntry.sort_key)
        if top_k is not None:
            entries = entries[:top_k]

        logger.info(
            f"Compared {len(identities)} versions of '{base_name}', "
            f"best: {entries[0].identity} (score {entries[0].performance_score:.4f})"
        )
        return ComparisonReport(base_name=base_name, entries=entries)

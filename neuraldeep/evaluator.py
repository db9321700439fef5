"""
evaluator.py
~~~~~~~~~~~~

Scoring of a model against a labeled test set.

Two distance metrics are available:

- ``squared``: mean squared difference between output and target. For
  sigmoid outputs and targets in [0, 1] it ranges from 0 to 1.
- ``classification``: fraction of output components whose prediction,
  thresholded at 0.5, disagrees with the thresholded target. Also 0 to 1.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

import numpy as np

from neuraldeep.errors import EmptyTestSetError
from neuraldeep.examples import prepare_examples
from neuraldeep.network import NetworkModel

logger = logging.getLogger(__name__)

CLASSIFICATION_THRESHOLD = 0.5


def squared_error(predicted: np.ndarray, expected: np.ndarray) -> float:
    return float(np.mean((predicted - expected) ** 2))


def classification_error(predicted: np.ndarray, expected: np.ndarray) -> float:
    mismatches = (predicted >= CLASSIFICATION_THRESHOLD) != (expected >= CLASSIFICATION_THRESHOLD)
    return float(np.mean(mismatches))


# metric name -> (distance function, per-example failure tolerance)
METRICS: Dict[str, tuple] = {
    'squared': (squared_error, 0.05),
    'classification': (classification_error, 0.0),
}


@dataclass
class FailedExample:
    """A test example whose error exceeded the metric tolerance."""

    index: int
    input: List[float]
    predicted: List[float]
    expected: List[float]
    error: float


@dataclass
class EvaluationReport:
    """Aggregate and (optionally) per-example evaluation results."""

    error_rate: float
    example_count: int
    metric: str
    failed_examples: List[FailedExample] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'error_rate': self.error_rate,
            'example_count': self.example_count,
            'metric': self.metric,
            'failed_examples': [vars(failed) for failed in self.failed_examples],
        }


class Evaluator:
    """Computes a model's error rate over a test set."""

    def __init__(self, metric: str = 'squared'):
        if metric not in METRICS:
            raise ValueError(
                f"Unknown metric {metric!r}, expected one of {sorted(METRICS)}"
            )
        self.metric = metric
        self._distance: Callable[[np.ndarray, np.ndarray], float] = METRICS[metric][0]
        self.tolerance: float = METRICS[metric][1]

    def evaluate(
        self,
        model: NetworkModel,
        test_set,
        extensive: bool = False
    ) -> EvaluationReport:
        """
        Score ``model`` on ``test_set``.

        Args:
            model: The model to evaluate
            test_set: Sequence of (input, target) pairs
            extensive: Also collect the examples whose error exceeds the
                metric tolerance, with predicted and expected outputs

        Returns:
            EvaluationReport: Mean error across examples and failures

        Raises:
            EmptyTestSetError: If the test set is empty
            DimensionMismatchError: If an example does not fit the model
            NonFiniteOutputError: If the model produces NaN or inf
        """
        inputs, targets = prepare_examples(model.architecture, test_set)
        if not inputs:
            raise EmptyTestSetError("Test set contains no examples")

        total_error = 0.0
        failed: List[FailedExample] = []
        for index, (x, y) in enumerate(zip(inputs, targets)):
            predicted = model.forward(x)
            error = self._distance(predicted, y)
            total_error += error

            if extensive and error > self.tolerance:
                failed.append(FailedExample(
                    index=index,
                    input=x.tolist(),
                    predicted=predicted.tolist(),
                    expected=y.tolist(),
                    error=error
                ))

        error_rate = total_error / len(inputs)
        logger.info(
            f"Evaluated {model.sizes} on {len(inputs)} examples: "
            f"{self.metric} error_rate={error_rate:.6f}"
            + (f", {len(failed)} failed" if extensive else "")
        )
        return EvaluationReport(
            error_rate=error_rate,
            example_count=len(inputs),
            metric=self.metric,
            failed_examples=failed
        )

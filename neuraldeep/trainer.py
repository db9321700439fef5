"""
trainer.py
~~~~~~~~~~

Online gradient-descent training of feed-forward networks.

Training uses the quadratic cost and per-example (not batched) updates:
after each example the output error is backpropagated through the sigmoid
layers and every weight and bias moves by ``learning_rate * gradient``.
"""

import time
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from neuraldeep.architecture import ArchitectureSpec
from neuraldeep.errors import EmptyTrainingSetError
from neuraldeep.examples import prepare_examples
from neuraldeep.network import NetworkModel, sigmoid_prime_from_activation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrainingOptions:
    """
    Stopping criteria and step size for a training run.

    Attributes:
        max_iterations: Maximum number of epochs
        learning_rate: Step size applied to every gradient
        error_threshold: Training stops once the epoch error is at or
            below this value
    """

    max_iterations: int = 10000
    learning_rate: float = 0.5
    error_threshold: float = 0.001

    def __post_init__(self):
        if isinstance(self.max_iterations, bool) or not isinstance(self.max_iterations, int) \
                or self.max_iterations < 1:
            raise ValueError(
                f"max_iterations must be a positive integer, got {self.max_iterations!r}"
            )
        if not isinstance(self.learning_rate, (int, float)) or self.learning_rate <= 0:
            raise ValueError(
                f"learning_rate must be a positive number, got {self.learning_rate!r}"
            )
        if not isinstance(self.error_threshold, (int, float)) or self.error_threshold < 0:
            raise ValueError(
                f"error_threshold must be non-negative, got {self.error_threshold!r}"
            )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'TrainingOptions':
        data = data or {}
        defaults = cls()
        return cls(
            max_iterations=data.get('max_iterations', defaults.max_iterations),
            learning_rate=data.get('learning_rate', defaults.learning_rate),
            error_threshold=data.get('error_threshold', defaults.error_threshold),
        )


@dataclass
class TrainingResult:
    """Trained model plus what happened while training it."""

    model: NetworkModel
    iterations_run: int
    final_error: float
    converged: bool
    error_history: List[float] = field(default_factory=list)


class Trainer:
    """
    Trains a freshly initialized network on a labeled example set.

    The trainer never touches storage; persisting the result is up to the
    caller (see :class:`neuraldeep.registry.ModelRegistry`).
    """

    def __init__(self, seed: Optional[int] = None):
        """
        Args:
            seed: Seed for weight initialization, None for a random start
        """
        self.seed = seed

    def train(
        self,
        architecture,
        training_set,
        options: Optional[TrainingOptions] = None,
        callback: Optional[Callable[[Dict[str, Any]], None]] = None,
        yield_func: Optional[Callable[[], None]] = None
    ) -> TrainingResult:
        """
        Train a network until it converges or runs out of epochs.

        Args:
            architecture: ArchitectureSpec or raw list of widths
            training_set: Sequence of (input, target) pairs
            options: Stopping criteria and learning rate
            callback: Called after every epoch with a progress dict
                (epoch, total_epochs, error, elapsed_time)
            yield_func: Called after every epoch so cooperative schedulers
                can run other tasks

        Returns:
            TrainingResult: The read-only trained model and its metadata

        Raises:
            EmptyTrainingSetError: If no examples are given
            DimensionMismatchError: If an example does not fit the
                architecture
        """
        architecture = ArchitectureSpec.validate(architecture)
        options = options or TrainingOptions()

        inputs, targets = prepare_examples(architecture, training_set)
        if not inputs:
            raise EmptyTrainingSetError("Training set contains no examples")

        model = NetworkModel.initialize(architecture, self.seed)
        error_history: List[float] = []
        converged = False
        epoch_error = float('inf')
        start = time.time()

        logger.info(
            f"Training {architecture.widths} on {len(inputs)} examples: "
            f"max_iterations={options.max_iterations}, "
            f"lr={options.learning_rate}, threshold={options.error_threshold}"
        )

        for epoch in range(1, options.max_iterations + 1):
            total_error = 0.0
            for x, y in zip(inputs, targets):
                total_error += self._train_example(model, x, y, options.learning_rate)
            epoch_error = total_error / len(inputs)
            error_history.append(epoch_error)

            if callback is not None:
                callback({
                    'epoch': epoch,
                    'total_epochs': options.max_iterations,
                    'error': epoch_error,
                    'elapsed_time': time.time() - start
                })
            if yield_func is not None:
                yield_func()

            if epoch_error <= options.error_threshold:
                converged = True
                break

        iterations_run = len(error_history)
        if converged:
            logger.info(
                f"Converged after {iterations_run} epochs with error {epoch_error:.6f}"
            )
        else:
            logger.warning(
                f"Stopped at max_iterations={options.max_iterations} without reaching "
                f"threshold {options.error_threshold} (error {epoch_error:.6f})"
            )

        return TrainingResult(
            model=model.freeze(),
            iterations_run=iterations_run,
            final_error=float(epoch_error),
            converged=converged,
            error_history=error_history
        )

    @staticmethod
    def _train_example(
        model: NetworkModel,
        x: np.ndarray,
        y: np.ndarray,
        learning_rate: float
    ) -> float:
        """
        Apply one online backpropagation step and return the example's
        squared error measured before the update.
        """
        activations = model.feedforward_trace(x)
        output = activations[-1]
        diff = output - y

        delta = diff * sigmoid_prime_from_activation(output)
        for layer in range(len(model.weights) - 1, -1, -1):
            a_prev = activations[layer]
            # Propagate through the pre-update weights
            if layer > 0:
                next_delta = (model.weights[layer].T @ delta) \
                    * sigmoid_prime_from_activation(a_prev)
            model.weights[layer] -= learning_rate * np.outer(delta, a_prev)
            model.biases[layer] -= learning_rate * delta
            if layer > 0:
                delta = next_delta

        return float(np.mean(diff ** 2))

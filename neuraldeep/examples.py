"""
examples.py
~~~~~~~~~~~

Labeled example handling shared by training and evaluation.
"""

from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from neuraldeep.architecture import ArchitectureSpec
from neuraldeep.errors import DimensionMismatchError
from neuraldeep.network import as_vector


class Example(NamedTuple):
    """An (input, target) pair."""

    input: Sequence[float]
    target: Sequence[float]


def prepare_examples(
    architecture: ArchitectureSpec,
    examples: Optional[Iterable[Tuple[Sequence[float], Sequence[float]]]]
) -> Tuple[List[np.ndarray], List[np.ndarray]]:
    """
    Check every example against ``architecture`` and convert to vectors.

    Args:
        architecture: Architecture the examples must fit
        examples: Iterable of (input, target) pairs; None counts as empty

    Returns:
        tuple: (inputs, targets) as lists of float vectors

    Raises:
        DimensionMismatchError: If a pair is malformed or any vector length
            disagrees with the architecture endpoints
    """
    inputs = []
    targets = []
    if examples is None:
        return inputs, targets
    for index, example in enumerate(examples):
        try:
            x, y = example
        except (TypeError, ValueError):
            raise DimensionMismatchError(
                f"Example {index} must be an (input, target) pair"
            )
        inputs.append(as_vector(x, architecture.input_width, f"Example {index} input"))
        targets.append(as_vector(y, architecture.output_width, f"Example {index} target"))
    return inputs, targets

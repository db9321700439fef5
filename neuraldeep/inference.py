"""
inference.py
~~~~~~~~~~~~

Forward-pass inference over trained models.
"""

import logging

import numpy as np

from neuraldeep.network import NetworkModel

logger = logging.getLogger(__name__)


class InferenceEngine:
    """Runs inputs through a model. Holds no state and caches nothing."""

    def run(self, model: NetworkModel, input_vector) -> np.ndarray:
        """
        Return ``model``'s output for ``input_vector``.

        Raises:
            DimensionMismatchError: If the input length is wrong
            NonFiniteOutputError: If the output is NaN or infinite
        """
        return model.forward(input_vector)

    def run_identity(self, registry, identity: str, input_vector) -> np.ndarray:
        """Load ``identity`` from ``registry`` and run ``input_vector`` through it."""
        model = registry.load_model(identity)
        output = self.run(model, input_vector)
        logger.debug(f"Ran model '{identity}' on input of length {model.input_width}")
        return output

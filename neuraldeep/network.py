"""
network.py
~~~~~~~~~~

Feed-forward network model: weight storage, forward pass and
serialization.

Every layer applies the logistic sigmoid to ``W @ a + b``. Weights are kept
as one C-contiguous ``(out, in)`` float64 matrix per layer and biases as an
``(out,)`` vector, so a forward pass allocates only its activations.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from neuraldeep.architecture import ArchitectureSpec
from neuraldeep.errors import (
    CorruptArtifactError,
    DimensionMismatchError,
    InvalidArchitectureError,
    NonFiniteOutputError,
)

logger = logging.getLogger(__name__)

INIT_LOW = -1.0
INIT_HIGH = 1.0


class NetworkEncoder(json.JSONEncoder):
    """Custom JSON encoder that handles numpy arrays and scalars."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, np.generic):
            return obj.item()
        return super().default(obj)


def sigmoid(z: np.ndarray) -> np.ndarray:
    """The sigmoid function."""
    # exp overflow for very negative z saturates to 0.0, which is correct
    with np.errstate(over='ignore'):
        return 1.0 / (1.0 + np.exp(-z))


def sigmoid_prime_from_activation(a: np.ndarray) -> np.ndarray:
    """Derivative of the sigmoid, expressed through its output."""
    return a * (1.0 - a)


def as_vector(values: Sequence[float], expected: int, label: str) -> np.ndarray:
    """
    Convert ``values`` into a 1-D float vector of length ``expected``.

    Column vectors of shape ``(n, 1)`` are flattened.

    Raises:
        DimensionMismatchError: If the length does not match
    """
    try:
        vector = np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError):
        raise DimensionMismatchError(
            f"{label} must be a numeric vector", expected=expected
        )

    if vector.ndim == 2 and vector.shape[1] == 1:
        vector = vector[:, 0]
    if vector.ndim != 1 or vector.shape[0] != expected:
        actual = int(vector.size)
        raise DimensionMismatchError(
            f"{label} has length {actual}, expected {expected}",
            expected=expected,
            actual=actual,
        )
    return vector


class NetworkModel:
    """
    A fully connected feed-forward network.

    Attributes:
        architecture: The ArchitectureSpec the model was built from
        sizes: Layer widths as a plain list
        weights: One ``(out, in)`` matrix per layer transition
        biases: One ``(out,)`` vector per layer transition
    """

    def __init__(
        self,
        architecture: ArchitectureSpec,
        weights: List[np.ndarray],
        biases: List[np.ndarray]
    ):
        self.architecture = ArchitectureSpec.validate(architecture)
        self.sizes = list(self.architecture.widths)
        self.weights = [np.ascontiguousarray(w, dtype=np.float64) for w in weights]
        self.biases = [np.ascontiguousarray(b, dtype=np.float64) for b in biases]
        self._check_shapes()

    @classmethod
    def initialize(cls, architecture, seed: Optional[int] = None) -> 'NetworkModel':
        """
        Allocate a model with uniformly random weights and biases.

        Args:
            architecture: ArchitectureSpec or raw list of widths
            seed: Seed for the pseudo-random generator; the same seed always
                yields the same model

        Returns:
            NetworkModel: A freshly initialized, writable model
        """
        architecture = ArchitectureSpec.validate(architecture)
        rng = np.random.default_rng(seed)

        weights = []
        biases = []
        for in_width, out_width in architecture.layer_pairs():
            weights.append(rng.uniform(INIT_LOW, INIT_HIGH, size=(out_width, in_width)))
            biases.append(rng.uniform(INIT_LOW, INIT_HIGH, size=out_width))

        logger.debug(f"Initialized network {architecture.widths} with seed {seed}")
        return cls(architecture, weights, biases)

    def _check_shapes(self) -> None:
        pairs = self.architecture.layer_pairs()
        if len(self.weights) != len(pairs) or len(self.biases) != len(pairs):
            raise DimensionMismatchError(
                f"Expected {len(pairs)} layers of parameters, got "
                f"{len(self.weights)} weight matrices and "
                f"{len(self.biases)} bias vectors"
            )
        for index, (in_width, out_width) in enumerate(pairs):
            if self.weights[index].shape != (out_width, in_width):
                raise DimensionMismatchError(
                    f"Layer {index} weights have shape "
                    f"{self.weights[index].shape}, expected {(out_width, in_width)}"
                )
            if self.biases[index].shape != (out_width,):
                raise DimensionMismatchError(
                    f"Layer {index} biases have shape "
                    f"{self.biases[index].shape}, expected {(out_width,)}"
                )

    @property
    def input_width(self) -> int:
        return self.architecture.input_width

    @property
    def output_width(self) -> int:
        return self.architecture.output_width

    @property
    def frozen(self) -> bool:
        return not self.weights[0].flags.writeable

    def freeze(self) -> 'NetworkModel':
        """Mark every parameter array read-only."""
        for array in self.weights + self.biases:
            array.flags.writeable = False
        return self

    def feedforward_trace(self, input_vector) -> List[np.ndarray]:
        """
        Run the forward pass and keep every layer's activations.

        Returns:
            list: Activations for each layer, the input vector first

        Raises:
            DimensionMismatchError: If the input length is wrong
            NonFiniteOutputError: If any activation is NaN or infinite
        """
        activation = as_vector(input_vector, self.input_width, 'Input')
        activations = [activation]
        for w, b in zip(self.weights, self.biases):
            activation = sigmoid(w @ activation + b)
            activations.append(activation)

        if not np.all(np.isfinite(activations[-1])):
            raise NonFiniteOutputError(
                f"Forward pass through {self.sizes} produced non-finite output"
            )
        return activations

    def forward(self, input_vector) -> np.ndarray:
        """
        Return the output of the network for ``input_vector``.

        Args:
            input_vector: Sequence of ``input_width`` numbers

        Returns:
            np.ndarray: Output vector of length ``output_width``
        """
        return self.feedforward_trace(input_vector)[-1]

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            'architecture': self.sizes,
            'layers': [
                {'weights': w, 'biases': b}
                for w, b in zip(self.weights, self.biases)
            ]
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NetworkModel':
        """
        Rebuild a read-only model from :meth:`to_dict` output.

        Raises:
            CorruptArtifactError: If the structure is invalid
        """
        if not isinstance(data, dict):
            raise CorruptArtifactError("Model data must be a JSON object")
        if 'architecture' not in data or 'layers' not in data:
            raise CorruptArtifactError("Model data needs 'architecture' and 'layers'")

        try:
            architecture = ArchitectureSpec.validate(data['architecture'])
        except InvalidArchitectureError as e:
            raise CorruptArtifactError(f"Invalid stored architecture: {e}")

        layers = data['layers']
        if not isinstance(layers, list):
            raise CorruptArtifactError("'layers' must be a list")

        weights = []
        biases = []
        for index, layer in enumerate(layers):
            if not isinstance(layer, dict) or 'weights' not in layer or 'biases' not in layer:
                raise CorruptArtifactError(f"Layer {index} is missing weights or biases")
            try:
                w = np.array(layer['weights'], dtype=np.float64)
                b = np.array(layer['biases'], dtype=np.float64)
            except (TypeError, ValueError) as e:
                raise CorruptArtifactError(f"Layer {index} is not numeric: {e}")
            if not (np.all(np.isfinite(w)) and np.all(np.isfinite(b))):
                raise CorruptArtifactError(f"Layer {index} contains non-finite values")
            weights.append(w)
            biases.append(b)

        try:
            model = cls(architecture, weights, biases)
        except DimensionMismatchError as e:
            raise CorruptArtifactError(f"Stored parameters do not match architecture: {e}")
        return model.freeze()

    def serialize(self) -> bytes:
        """Encode architecture and parameters as UTF-8 JSON."""
        return json.dumps(self.to_dict(), cls=NetworkEncoder).encode('utf-8')

    @classmethod
    def deserialize(cls, blob: bytes) -> 'NetworkModel':
        """
        Decode a model written by :meth:`serialize`.

        Raises:
            CorruptArtifactError: If the blob is not a valid model
        """
        try:
            if isinstance(blob, (bytes, bytearray)):
                blob = blob.decode('utf-8')
            data = json.loads(blob)
        except (TypeError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CorruptArtifactError(f"Model blob is not valid JSON: {e}")
        return cls.from_dict(data)

    def __repr__(self) -> str:
        return f"NetworkModel({self.sizes})"

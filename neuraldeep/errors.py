"""
errors.py
~~~~~~~~~

Typed failures raised by the model lifecycle components.

Every error derives from :class:`NeuralDeepError` so that an outer layer
(the HTTP API, a CLI) can translate them into user-facing responses.
"""

from typing import Optional


class NeuralDeepError(Exception):
    """Base class for all neuraldeep errors."""


class InvalidArchitectureError(NeuralDeepError, ValueError):
    """Layer widths do not describe a valid network."""


class DimensionMismatchError(NeuralDeepError, ValueError):
    """A vector length disagrees with the network architecture."""

    def __init__(
        self,
        message: str,
        expected: Optional[int] = None,
        actual: Optional[int] = None
    ):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class EmptyTrainingSetError(NeuralDeepError, ValueError):
    """Training was requested with no examples."""


class EmptyTestSetError(NeuralDeepError, ValueError):
    """Evaluation was requested with no examples."""


class NonFiniteOutputError(NeuralDeepError, ArithmeticError):
    """A forward pass produced NaN or infinite activations."""


class InvalidNameError(NeuralDeepError, ValueError):
    """A model identity does not follow the ``name`` / ``name_version`` form."""


class ModelNotFoundError(NeuralDeepError, LookupError):
    """No artifact is stored under the requested identity."""

    def __init__(self, identity: str):
        super().__init__(f"Model '{identity}' not found")
        self.identity = identity


class ArtifactExistsError(NeuralDeepError):
    """An artifact already exists under the identity being written."""

    def __init__(self, identity: str):
        super().__init__(f"Artifact '{identity}' already exists")
        self.identity = identity


class CorruptArtifactError(NeuralDeepError, ValueError):
    """A persisted artifact could not be decoded into a model."""


class InsufficientModelsError(NeuralDeepError):
    """Fewer than two versions are available for comparison."""

    def __init__(self, base_name: str, found: int):
        super().__init__(
            f"Comparison of '{base_name}' needs at least 2 models, found {found}"
        )
        self.base_name = base_name
        self.found = found


class InvalidRequestError(NeuralDeepError, ValueError):
    """A service request body is not shaped the way the endpoint expects."""

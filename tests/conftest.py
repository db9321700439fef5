"""
conftest.py
~~~~~~~~~~~

Shared fixtures: truth-table data sets, registries and trained models.
"""

import numpy as np
import pytest

from neuraldeep.network import NetworkModel
from neuraldeep.registry import ModelRegistry
from neuraldeep.store import InMemoryArtifactStore, SQLiteArtifactStore
from neuraldeep.trainer import Trainer, TrainingOptions

AND_DATA = [
    ([0, 0], [0]),
    ([0, 1], [0]),
    ([1, 0], [0]),
    ([1, 1], [1]),
]

OR_DATA = [
    ([0, 0], [0]),
    ([0, 1], [1]),
    ([1, 0], [1]),
    ([1, 1], [1]),
]


@pytest.fixture
def and_data():
    return list(AND_DATA)


@pytest.fixture
def or_data():
    return list(OR_DATA)


@pytest.fixture
def simple_model():
    """A small untrained 3-layer model with a fixed seed."""
    return NetworkModel.initialize([3, 4, 2], seed=7)


@pytest.fixture
def memory_registry():
    return ModelRegistry(InMemoryArtifactStore())


@pytest.fixture
def temp_db_dir(tmp_path):
    """Create a temporary directory for database storage."""
    db_dir = tmp_path / "test_models"
    db_dir.mkdir()
    return str(db_dir)


@pytest.fixture
def sqlite_registry(temp_db_dir):
    return ModelRegistry(SQLiteArtifactStore(f"{temp_db_dir}/artifacts.db"))


@pytest.fixture
def trained_and_result(and_data):
    """AND gate trained to convergence on [2, 3, 1]."""
    options = TrainingOptions(max_iterations=5000, learning_rate=2.0, error_threshold=0.01)
    return Trainer(seed=1).train([2, 3, 1], and_data, options)


def constant_output_model(value: float) -> NetworkModel:
    """
    Build a [1, 1, 1] model whose output saturates to exactly 1.0
    (value > 0) or exactly 0.0 (value < 0) for any input.
    """
    bias = 50.0 if value > 0 else -800.0
    return NetworkModel(
        [1, 1, 1],
        weights=[np.zeros((1, 1)), np.zeros((1, 1))],
        biases=[np.zeros(1), np.array([bias])]
    )

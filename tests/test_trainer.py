"""
test_trainer.py
~~~~~~~~~~~~~~~

Tests for online gradient-descent training.
"""

import numpy as np
import pytest

from neuraldeep.errors import DimensionMismatchError, EmptyTrainingSetError
from neuraldeep.evaluator import Evaluator
from neuraldeep.trainer import Trainer, TrainingOptions


@pytest.mark.unit
class TestTrainingOptions:
    """Test option validation."""

    def test_defaults(self):
        options = TrainingOptions()
        assert options.max_iterations == 10000
        assert options.learning_rate == 0.5
        assert options.error_threshold == 0.001

    @pytest.mark.parametrize("kwargs", [
        {'max_iterations': 0},
        {'max_iterations': 2.5},
        {'learning_rate': 0},
        {'learning_rate': -1.0},
        {'error_threshold': -0.1},
    ])
    def test_invalid_options(self, kwargs):
        with pytest.raises(ValueError):
            TrainingOptions(**kwargs)

    def test_from_dict_fills_defaults(self):
        options = TrainingOptions.from_dict({'learning_rate': 1.5})
        assert options.learning_rate == 1.5
        assert options.max_iterations == 10000


@pytest.mark.unit
class TestTrainerValidation:
    """Test failures raised before any training happens."""

    @pytest.mark.parametrize("training_set", [[], None])
    def test_empty_training_set(self, training_set):
        with pytest.raises(EmptyTrainingSetError):
            Trainer(seed=0).train([2, 3, 1], training_set)

    def test_wrong_input_length(self, and_data):
        data = and_data + [([1, 0, 1], [1])]
        with pytest.raises(DimensionMismatchError):
            Trainer(seed=0).train([2, 3, 1], data)

    def test_wrong_target_length(self, and_data):
        data = and_data + [([1, 0], [1, 0])]
        with pytest.raises(DimensionMismatchError):
            Trainer(seed=0).train([2, 3, 1], data)

    def test_malformed_example(self):
        with pytest.raises(DimensionMismatchError):
            Trainer(seed=0).train([2, 3, 1], [([0, 1],)])


@pytest.mark.integration
class TestTraining:
    """Test convergence behavior on truth tables."""

    def test_error_decreases_on_linearly_separable_data(self, or_data):
        options = TrainingOptions(max_iterations=2000, learning_rate=2.0, error_threshold=0.0)
        result = Trainer(seed=5).train([2, 4, 1], or_data, options)

        history = result.error_history
        assert len(history) == 2000
        assert np.mean(history[:50]) > np.mean(history[-50:])
        assert history[-1] < history[0]

        report = Evaluator().evaluate(result.model, or_data)
        assert report.error_rate < 0.1

    def test_and_converges(self, trained_and_result, and_data):
        result = trained_and_result

        assert result.converged is True
        assert result.final_error <= 0.01
        assert result.iterations_run == len(result.error_history)

        report = Evaluator().evaluate(result.model, and_data)
        assert report.error_rate < 0.1

    def test_non_convergence_is_not_an_error(self, and_data):
        options = TrainingOptions(max_iterations=3, learning_rate=0.1, error_threshold=0.0)
        result = Trainer(seed=0).train([2, 3, 1], and_data, options)

        assert result.converged is False
        assert result.iterations_run == 3
        assert result.final_error == result.error_history[-1]
        assert result.model.forward([1, 1]).shape == (1,)

    def test_same_seed_reproduces_training(self, and_data):
        options = TrainingOptions(max_iterations=50)
        first = Trainer(seed=11).train([2, 3, 1], and_data, options)
        second = Trainer(seed=11).train([2, 3, 1], and_data, options)

        assert first.error_history == second.error_history
        for w1, w2 in zip(first.model.weights, second.model.weights):
            assert np.array_equal(w1, w2)

    def test_trained_model_is_read_only(self, trained_and_result):
        model = trained_and_result.model
        assert model.frozen
        with pytest.raises(ValueError):
            model.biases[0][0] = 0.0

    def test_callback_and_yield_called_every_epoch(self, and_data):
        updates = []
        yields = []
        options = TrainingOptions(max_iterations=10, error_threshold=0.0)

        Trainer(seed=0).train(
            [2, 3, 1], and_data, options,
            callback=updates.append,
            yield_func=lambda: yields.append(True)
        )

        assert [u['epoch'] for u in updates] == list(range(1, 11))
        assert all(u['total_epochs'] == 10 for u in updates)
        assert all('error' in u and 'elapsed_time' in u for u in updates)
        assert len(yields) == 10

    def test_training_set_is_not_modified(self, and_data):
        snapshot = [(list(x), list(y)) for x, y in and_data]
        Trainer(seed=0).train([2, 3, 1], and_data, TrainingOptions(max_iterations=5))
        assert and_data == snapshot

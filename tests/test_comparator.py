"""
test_comparator.py
~~~~~~~~~~~~~~~~~~

Tests for ranking model versions.
"""

import pytest

from conftest import constant_output_model
from neuraldeep.comparator import Comparator, ComparisonEntry, performance_score
from neuraldeep.errors import DimensionMismatchError, InsufficientModelsError
from neuraldeep.evaluator import Evaluator
from neuraldeep.trainer import Trainer, TrainingOptions


@pytest.mark.unit
class TestRanking:
    """Test the score function and sort order."""

    @pytest.mark.parametrize("error_rate, expected", [
        (0.0, 1.0), (0.25, 0.75), (1.0, 0.0), (1.5, 0.0),
    ])
    def test_performance_score(self, error_rate, expected):
        assert performance_score(error_rate) == pytest.approx(expected)

    def test_sort_key_breaks_ties_by_version(self):
        entries = [
            ComparisonEntry("net_3", 3, 0.2, 0.8),
            ComparisonEntry("net_1", 1, 0.2, 0.8),
            ComparisonEntry("net_2", 2, 0.1, 0.9),
        ]
        ranked = sorted(entries, key=ComparisonEntry.sort_key)
        assert [e.identity for e in ranked] == ["net_2", "net_1", "net_3"]

    def test_sort_key_breaks_score_ties_by_error_rate(self):
        # Both clamp to a score of 0.0
        entries = [
            ComparisonEntry("net_1", 1, 1.4, 0.0),
            ComparisonEntry("net_2", 2, 1.1, 0.0),
        ]
        ranked = sorted(entries, key=ComparisonEntry.sort_key)
        assert [e.identity for e in ranked] == ["net_2", "net_1"]


@pytest.mark.unit
class TestComparator:
    """Test comparison over a registry."""

    def test_ranks_known_models(self, memory_registry):
        memory_registry.create("net", constant_output_model(-1.0))  # always 0
        memory_registry.create("net", constant_output_model(1.0))   # always 1
        test_set = [([0], [1]), ([1], [1]), ([2], [0])]

        report = Comparator(memory_registry).compare("net", test_set)

        assert [e.identity for e in report] == ["net_2", "net_1"]
        assert report.best.error_rate == pytest.approx(1 / 3)
        assert report[1].error_rate == pytest.approx(2 / 3)
        assert report.best.performance_score == pytest.approx(2 / 3)

    def test_equal_models_ordered_by_version(self, memory_registry):
        for _ in range(3):
            memory_registry.create("net", constant_output_model(1.0))

        report = Comparator(memory_registry).compare("net", [([0], [1])])
        assert [e.version for e in report] == [1, 2, 3]

    def test_insufficient_models(self, memory_registry):
        memory_registry.create("net", constant_output_model(1.0))

        with pytest.raises(InsufficientModelsError) as exc_info:
            Comparator(memory_registry).compare("net", [([0], [1])])
        assert exc_info.value.found == 1

    def test_no_models(self, memory_registry):
        with pytest.raises(InsufficientModelsError):
            Comparator(memory_registry).compare("net", [([0], [1])])

    def test_invalid_top_k(self, memory_registry):
        with pytest.raises(ValueError):
            Comparator(memory_registry).compare("net", [([0], [1])], top_k=0)

    def test_invalid_worker_count(self, memory_registry):
        with pytest.raises(ValueError):
            Comparator(memory_registry, max_workers=0)

    def test_evaluation_errors_propagate(self, memory_registry):
        memory_registry.create("net", constant_output_model(1.0))
        memory_registry.create("net", constant_output_model(1.0))

        with pytest.raises(DimensionMismatchError):
            Comparator(memory_registry).compare("net", [([0, 1], [1])])

    def test_uses_given_evaluator(self, memory_registry):
        memory_registry.create("net", constant_output_model(1.0))
        memory_registry.create("net", constant_output_model(-1.0))
        test_set = [([0], [0.8])]

        report = Comparator(memory_registry, Evaluator('classification')).compare("net", test_set)
        assert [e.error_rate for e in report] == [0.0, 1.0]

    def test_to_dict(self, memory_registry):
        memory_registry.create("net", constant_output_model(1.0))
        memory_registry.create("net", constant_output_model(1.0))

        data = Comparator(memory_registry).compare("net", [([0], [1])], top_k=1).to_dict()
        assert data["base_name"] == "net"
        assert data["entries"] == [
            {"identity": "net_1", "version": 1, "error_rate": 0.0, "performance_score": 1.0}
        ]


@pytest.mark.integration
def test_compare_three_trained_versions(memory_registry, and_data):
    """Three trainings of different length, top 2 sorted by score."""
    for iterations in (5, 200, 2000):
        options = TrainingOptions(max_iterations=iterations, learning_rate=2.0, error_threshold=0.0)
        result = Trainer(seed=3).train([2, 3, 1], and_data, options)
        memory_registry.create_from_result("net", result)

    report = Comparator(memory_registry, max_workers=2).compare("net", and_data, top_k=2)

    assert len(report) == 2
    assert report[0].performance_score >= report[1].performance_score
    assert report.best.identity == "net_3"

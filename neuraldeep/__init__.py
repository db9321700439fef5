"""
neuraldeep package
~~~~~~~~~~~~~~~~~~

Small feed-forward neural networks with a versioned model lifecycle:
architecture validation, training, inference, evaluation and comparison
of models persisted under ``name_version`` identities.
"""

__version__ = "1.1.4"

from neuraldeep.architecture import ArchitectureSpec
from neuraldeep.comparator import Comparator, ComparisonEntry, ComparisonReport
from neuraldeep.evaluator import EvaluationReport, Evaluator, FailedExample
from neuraldeep.inference import InferenceEngine
from neuraldeep.network import NetworkModel
from neuraldeep.registry import ModelArtifact, ModelRegistry, TrainingMetadata
from neuraldeep.store import InMemoryArtifactStore, SQLiteArtifactStore
from neuraldeep.trainer import Trainer, TrainingOptions, TrainingResult

__all__ = [
    'ArchitectureSpec',
    'Comparator',
    'ComparisonEntry',
    'ComparisonReport',
    'EvaluationReport',
    'Evaluator',
    'FailedExample',
    'InferenceEngine',
    'NetworkModel',
    'ModelArtifact',
    'ModelRegistry',
    'TrainingMetadata',
    'InMemoryArtifactStore',
    'SQLiteArtifactStore',
    'Trainer',
    'TrainingOptions',
    'TrainingResult',
]

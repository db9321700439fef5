"""
registry.py
~~~~~~~~~~~

Versioned model artifacts on top of an ArtifactStore.

Retraining under an existing base name always produces a new version:
``create('net', ...)`` stores ``net_1``, then ``net_2`` and so on. Version
allocation and persistence happen together under a per-base-name lock.
"""

import json
import logging
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from neuraldeep.errors import ArtifactExistsError, CorruptArtifactError, ModelNotFoundError
from neuraldeep.naming import format_identity, parse_identity, validate_base_name
from neuraldeep.network import NetworkEncoder, NetworkModel
from neuraldeep.store import ArtifactStore

logger = logging.getLogger(__name__)

# Attempts at allocating a version before giving up when other writers
# sharing the store keep taking the next number first
MAX_CREATE_ATTEMPTS = 100


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class TrainingMetadata:
    """Facts about how a stored model was produced."""

    iterations_run: int = 0
    final_error: Optional[float] = None
    converged: bool = False
    created_at: str = field(default_factory=_utc_now)
    error_history: List[float] = field(default_factory=list)

    @classmethod
    def from_result(cls, result) -> 'TrainingMetadata':
        """Build metadata from a trainer.TrainingResult."""
        return cls(
            iterations_run=result.iterations_run,
            final_error=result.final_error,
            converged=result.converged,
            error_history=list(result.error_history),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TrainingMetadata':
        if not isinstance(data, dict):
            raise CorruptArtifactError("Artifact metadata must be a JSON object")
        try:
            return cls(
                iterations_run=int(data.get('iterations_run', 0)),
                final_error=data.get('final_error'),
                converged=bool(data.get('converged', False)),
                created_at=str(data.get('created_at', '')),
                error_history=[float(e) for e in data.get('error_history', [])],
            )
        except (TypeError, ValueError) as e:
            raise CorruptArtifactError(f"Invalid artifact metadata: {e}")


@dataclass
class ModelArtifact:
    """A stored model together with its identity and training metadata."""

    identity: str
    model: NetworkModel
    metadata: TrainingMetadata

    @property
    def base_name(self) -> str:
        return parse_identity(self.identity)[0]

    @property
    def version(self) -> int:
        return parse_identity(self.identity)[1]

    def serialize(self) -> bytes:
        data = self.model.to_dict()
        data['metadata'] = asdict(self.metadata)
        return json.dumps(data, cls=NetworkEncoder).encode('utf-8')

    @classmethod
    def deserialize(cls, identity: str, blob: bytes) -> 'ModelArtifact':
        """
        Decode a stored artifact.

        Raises:
            CorruptArtifactError: If the blob is not a valid artifact
        """
        try:
            data = json.loads(blob.decode('utf-8'))
        except (AttributeError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CorruptArtifactError(f"Artifact '{identity}' is not valid JSON: {e}")
        if not isinstance(data, dict):
            raise CorruptArtifactError(f"Artifact '{identity}' must be a JSON object")

        model = NetworkModel.from_dict(data)
        metadata = TrainingMetadata.from_dict(data.get('metadata', {}))
        return cls(identity=identity, model=model, metadata=metadata)

    def summary(self) -> Dict[str, Any]:
        """Metadata without the parameters, for listings."""
        return {
            'identity': self.identity,
            'base_name': self.base_name,
            'version': self.version,
            'architecture': self.model.sizes,
            'iterations_run': self.metadata.iterations_run,
            'final_error': self.metadata.final_error,
            'converged': self.metadata.converged,
            'created_at': self.metadata.created_at,
        }


class ModelRegistry:
    """
    Allocates versions and loads artifacts for base names.

    The registry owns its version-allocation state; there is no global
    instance. Pass an InMemoryArtifactStore in tests and a
    SQLiteArtifactStore in production.
    """

    def __init__(self, store: ArtifactStore):
        self.store = store
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, base_name: str) -> threading.Lock:
        with self._locks_guard:
            if base_name not in self._locks:
                self._locks[base_name] = threading.Lock()
            return self._locks[base_name]

    def _versions(self, base_name: str) -> List[int]:
        return [parse_identity(identity)[1] for identity in self.store.identities(base_name)]

    def create(
        self,
        base_name: str,
        model: NetworkModel,
        metadata: Optional[TrainingMetadata] = None
    ) -> str:
        """
        Persist ``model`` as the next version of ``base_name``.

        Args:
            base_name: Name shared by all versions of the model
            model: The trained model; it is frozen on persistence
            metadata: Training metadata to store alongside the model

        Returns:
            str: The assigned identity, e.g. ``'net_3'``

        The lock only covers this registry. When another registry (or
        process) sharing the same store takes the next version first, the
        store refuses the duplicate and allocation is retried with the
        versions re-read.
        """
        validate_base_name(base_name)
        metadata = metadata or TrainingMetadata()
        model.freeze()

        with self._lock_for(base_name):
            for attempt in range(1, MAX_CREATE_ATTEMPTS + 1):
                next_version = 1 + max(self._versions(base_name), default=0)
                identity = format_identity(base_name, next_version)
                artifact = ModelArtifact(identity=identity, model=model, metadata=metadata)
                try:
                    self.store.put(identity, artifact.serialize())
                    break
                except ArtifactExistsError:
                    if attempt == MAX_CREATE_ATTEMPTS:
                        raise
                    logger.warning(
                        f"Version '{identity}' was taken by another writer, "
                        f"retrying ({attempt}/{MAX_CREATE_ATTEMPTS})"
                    )

        logger.info(
            f"Created model '{identity}' with architecture {model.sizes}, "
            f"final_error={metadata.final_error}"
        )
        return identity

    def create_from_result(self, base_name: str, result) -> str:
        """Persist a trainer.TrainingResult as the next version."""
        return self.create(base_name, result.model, TrainingMetadata.from_result(result))

    def list_versions(self, base_name: str) -> List[str]:
        """
        Return every stored identity under ``base_name``, oldest version first.
        """
        validate_base_name(base_name)
        identities = self.store.identities(base_name)
        return sorted(identities, key=lambda identity: (parse_identity(identity)[1], identity))

    def load(self, identity: str) -> ModelArtifact:
        """
        Load the artifact stored under ``identity``.

        Raises:
            InvalidNameError: If the identity is malformed
            ModelNotFoundError: If nothing is stored under it
            CorruptArtifactError: If the stored data can't be decoded
        """
        parse_identity(identity)
        blob = self.store.get(identity)
        if blob is None:
            raise ModelNotFoundError(identity)
        artifact = ModelArtifact.deserialize(identity, blob)
        logger.debug(f"Loaded model '{identity}'")
        return artifact

    def load_model(self, identity: str) -> NetworkModel:
        return self.load(identity).model

    def delete(self, identity: str) -> None:
        parse_identity(identity)
        if not self.store.delete(identity):
            raise ModelNotFoundError(identity)
        logger.info(f"Deleted model '{identity}'")

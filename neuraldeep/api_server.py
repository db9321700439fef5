"""
api_server.py
~~~~~~~~~~~~~

Flask-based REST API server with WebSocket support for model lifecycle
operations.

This module provides endpoints for:
- Training versioned networks with real-time progress updates via WebSockets
- Running inference with a stored model
- Testing a stored model against a labeled test set
- Comparing every version of a base name

The server uses:
- Flask for REST API endpoints
- Flask-SocketIO for WebSocket communication
- Gevent (by default) for background training tasks
- SQLite for artifact persistence
"""

import sys
import time
import uuid
import logging
from typing import Any, Dict, Optional, Tuple

from flask import Flask, request, jsonify
from flask_cors import CORS
from flask_socketio import SocketIO

from neuraldeep import __version__
from neuraldeep.architecture import ArchitectureSpec
from neuraldeep.comparator import Comparator
from neuraldeep.config import Settings, configure_logging
from neuraldeep.errors import (
    ArtifactExistsError,
    CorruptArtifactError,
    DimensionMismatchError,
    EmptyTestSetError,
    EmptyTrainingSetError,
    InsufficientModelsError,
    InvalidArchitectureError,
    InvalidNameError,
    InvalidRequestError,
    ModelNotFoundError,
    NeuralDeepError,
    NonFiniteOutputError,
)
from neuraldeep.evaluator import Evaluator
from neuraldeep.examples import prepare_examples
from neuraldeep.inference import InferenceEngine
from neuraldeep.naming import validate_base_name
from neuraldeep.plotting import render_error_curve
from neuraldeep.registry import ModelRegistry
from neuraldeep.store import SQLiteArtifactStore
from neuraldeep.trainer import Trainer, TrainingOptions

logger = logging.getLogger(__name__)

# Error kind -> HTTP status
ERROR_STATUS = {
    InvalidArchitectureError: 400,
    InvalidNameError: 400,
    InvalidRequestError: 400,
    DimensionMismatchError: 400,
    EmptyTrainingSetError: 400,
    EmptyTestSetError: 400,
    ModelNotFoundError: 404,
    InsufficientModelsError: 409,
    ArtifactExistsError: 409,
    NonFiniteOutputError: 422,
    CorruptArtifactError: 500,
}


FINISHED_JOB_STATUSES = {'completed', 'failed'}


def status_for(error: NeuralDeepError) -> int:
    for error_type, status in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status
    return 500


def json_object() -> Dict[str, Any]:
    """
    Return the JSON request body as a dict.

    A missing or unparsable body counts as ``{}``.

    Raises:
        InvalidRequestError: If the body is JSON but not an object
    """
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidRequestError(
            f"Request body must be a JSON object, got {type(data).__name__}"
        )
    return data


def example_list(data: Dict[str, Any], key: str) -> list:
    """Return ``data[key]`` as a list of examples (empty when absent)."""
    examples = data.get(key)
    if examples is None:
        return []
    if not isinstance(examples, list):
        raise InvalidRequestError(f"'{key}' must be a list of [input, target] pairs")
    return examples


def create_app(
    settings: Optional[Settings] = None,
    registry: Optional[ModelRegistry] = None
) -> Tuple[Flask, SocketIO]:
    """
    Build the Flask app and its SocketIO server.

    Args:
        settings: Runtime settings, read from the environment if omitted
        registry: Model registry, a SQLite-backed one under
            ``settings.model_dir`` if omitted

    Returns:
        tuple: (app, socketio)
    """
    settings = settings or Settings.from_env()
    if registry is None:
        registry = ModelRegistry(SQLiteArtifactStore(settings.db_path))

    app = Flask(__name__)
    CORS(app, resources={r"/*": {"origins": "*"}})

    # SocketIO enables real-time communication (WebSockets) for training updates
    socketio = SocketIO(
        app,
        cors_allowed_origins="*",
        async_mode=settings.async_mode,
        logger=not settings.is_production,
        engineio_logger=not settings.is_production,
        ping_timeout=60,
        ping_interval=25
    )

    engine = InferenceEngine()
    comparator = Comparator(registry, max_workers=settings.compare_workers)

    # Training jobs being tracked: {job_id: job_info}
    training_jobs: Dict[str, Dict[str, Any]] = {}

    app.config['REGISTRY'] = registry
    app.config['TRAINING_JOBS'] = training_jobs

    @app.errorhandler(NeuralDeepError)
    def handle_neuraldeep_error(error: NeuralDeepError):
        status = status_for(error)
        if status >= 500:
            logger.error(f"{type(error).__name__}: {error}")
        else:
            logger.warning(f"{type(error).__name__}: {error}")
        return jsonify({'error': str(error), 'kind': type(error).__name__}), status

    # ========================================================================
    # JOB CLEANUP
    # ========================================================================

    def cleanup_finished_training_jobs() -> None:
        """
        Remove completed or failed training jobs from memory.

        This prevents the training_jobs dictionary from growing indefinitely.
        Jobs stay queryable for ``settings.job_retention`` seconds after they
        finish; active jobs are never removed.
        """
        cutoff = time.time() - settings.job_retention
        jobs_to_remove = [
            job_id for job_id, job_info in list(training_jobs.items())
            if job_info.get('status') in FINISHED_JOB_STATUSES
            and job_info.get('finished_at', 0) <= cutoff
        ]

        for job_id in jobs_to_remove:
            training_jobs.pop(job_id, None)

        if jobs_to_remove:
            logger.info(f"Cleaned up {len(jobs_to_remove)} finished training job(s)")

    def cleanup_training_jobs_task() -> None:
        """Sweep finished training jobs every ``settings.cleanup_interval`` seconds."""
        while True:
            socketio.sleep(settings.cleanup_interval)
            cleanup_finished_training_jobs()

    if settings.cleanup_interval > 0:
        logger.info(
            f"Starting training job cleanup task (every {settings.cleanup_interval}s)"
        )
        socketio.start_background_task(cleanup_training_jobs_task)

    # ========================================================================
    # BACKGROUND TASKS
    # ========================================================================

    def train_model_task(
        job_id: str,
        base_name: str,
        architecture: ArchitectureSpec,
        training_set: list,
        options: TrainingOptions,
        seed: Optional[int]
    ) -> None:
        """
        Background task that trains a network and stores it as a new version.

        Sends progress updates via WebSocket as training progresses.
        """
        report_every = max(1, options.max_iterations // 100)

        def on_epoch_complete(data: Dict[str, Any]) -> None:
            """Called after each training epoch to send progress updates."""
            progress = (data['epoch'] / data['total_epochs']) * 100
            training_jobs[job_id]['status'] = 'training'
            training_jobs[job_id]['progress'] = progress
            training_jobs[job_id]['error'] = data['error']

            if data['epoch'] % report_every == 0:
                socketio.emit('training_update', {
                    'job_id': job_id,
                    'base_name': base_name,
                    'epoch': data['epoch'],
                    'total_epochs': data['total_epochs'],
                    'error': data['error'],
                    'elapsed_time': data['elapsed_time'],
                    'progress': progress
                })

        try:
            logger.info(f"Starting training for job {job_id}")

            result = Trainer(seed=seed).train(
                architecture,
                training_set,
                options,
                callback=on_epoch_complete,
                yield_func=lambda: socketio.sleep(0)
            )
            identity = registry.create_from_result(base_name, result)

            training_jobs[job_id].update({
                'status': 'completed',
                'progress': 100,
                'identity': identity,
                'error': result.final_error,
                'iterations_run': result.iterations_run,
                'converged': result.converged,
                'finished_at': time.time()
            })
            logger.info(f"Training completed for job {job_id}: stored as '{identity}'")

            # Notify clients that training is complete
            socketio.emit('training_complete', {
                'job_id': job_id,
                'identity': identity,
                'status': 'completed',
                'final_error': result.final_error,
                'converged': result.converged,
                'progress': 100
            })

        except Exception as e:
            logger.exception(f"Training failed for job {job_id}: {e}")

            training_jobs[job_id].update({
                'status': 'failed',
                'failure': str(e),
                'finished_at': time.time()
            })

            socketio.emit('training_error', {
                'job_id': job_id,
                'status': 'failed',
                'error': str(e)
            })

    # ========================================================================
    # API ENDPOINTS
    # ========================================================================

    @app.route('/api/status', methods=['GET'])
    def get_status():
        """Return server status and the number of running training jobs."""
        active_statuses = ('pending', 'training')
        active_training = sum(
            1 for job in training_jobs.values()
            if job.get('status') in active_statuses
        )
        return jsonify({
            'status': 'online',
            'version': __version__,
            'training_jobs': active_training
        }), 200

    @app.route('/api/models', methods=['POST'])
    def create_model():
        """
        Train a new version of a model in the background.

        Request body:
            {
                'name': 'net',
                'architecture': [2, 3, 1],
                'training_set': [[[0, 0], [0]], ...],
                'options': {'max_iterations': 10000, 'learning_rate': 0.5,
                            'error_threshold': 0.001},
                'seed': 42
            }

        Returns:
            JSON with job_id, base_name and status
        """
        data = json_object()
        base_name = validate_base_name(data.get('name'))
        architecture = ArchitectureSpec.validate(data.get('architecture') or [])

        requested_options = data.get('options') or {}
        if not isinstance(requested_options, dict):
            raise InvalidRequestError("'options' must be a JSON object")
        try:
            options = TrainingOptions.from_dict({
                'max_iterations': settings.training.max_iterations,
                'learning_rate': settings.training.learning_rate,
                'error_threshold': settings.training.error_threshold,
                **requested_options
            })
        except ValueError as e:
            raise InvalidRequestError(str(e))

        training_set = example_list(data, 'training_set')
        prepare_examples(architecture, training_set)
        if not training_set:
            raise EmptyTrainingSetError("Training set contains no examples")

        seed = data.get('seed')
        if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int) or seed < 0):
            raise InvalidRequestError(f"seed must be a non-negative integer, got {seed!r}")

        cleanup_finished_training_jobs()

        job_id = str(uuid.uuid4())
        training_jobs[job_id] = {
            'job_id': job_id,
            'base_name': base_name,
            'status': 'pending',
            'progress': 0,
            'max_iterations': options.max_iterations
        }

        logger.info(
            f"Created training job {job_id} for '{base_name}' "
            f"{list(architecture.widths)}: {options}"
        )

        # Run training in background so we can return immediately
        socketio.start_background_task(
            train_model_task,
            job_id, base_name, architecture, training_set, options, seed
        )

        return jsonify({
            'job_id': job_id,
            'base_name': base_name,
            'status': 'training_started'
        }), 202

    @app.route('/api/training/<job_id>', methods=['GET'])
    def get_training_status(job_id: str):
        """Get the current status of a training job."""
        if job_id not in training_jobs:
            logger.warning(f"Status requested for non-existent job: {job_id}")
            return jsonify({'error': 'Training job not found'}), 404
        return jsonify(training_jobs[job_id]), 200

    @app.route('/api/models/<base_name>/versions', methods=['GET'])
    def list_versions(base_name: str):
        """List every stored version of a base name, oldest first."""
        identities = registry.list_versions(base_name)
        return jsonify({'base_name': base_name, 'versions': identities}), 200

    @app.route('/api/models/<identity>', methods=['GET'])
    def get_model(identity: str):
        """Return metadata for one stored model."""
        return jsonify(registry.load(identity).summary()), 200

    @app.route('/api/models/<identity>', methods=['DELETE'])
    def delete_model(identity: str):
        registry.delete(identity)
        return jsonify({'identity': identity, 'deleted': True}), 200

    @app.route('/api/models/<identity>/run', methods=['POST'])
    def run_model(identity: str):
        """
        Run one input through a stored model.

        Request body:
            {'input': [0, 1]}
        """
        data = json_object()
        if 'input' not in data:
            raise InvalidRequestError("Missing 'input'")

        output = engine.run_identity(registry, identity, data['input'])
        return jsonify({
            'identity': identity,
            'output': [float(value) for value in output]
        }), 200

    @app.route('/api/models/<identity>/test', methods=['POST'])
    def test_model(identity: str):
        """
        Evaluate a stored model on a test set.

        Request body:
            {'test_set': [[[0, 1], [0]], ...], 'extensive': false,
             'metric': 'squared'}
        """
        data = json_object()
        metric = data.get('metric', 'squared')
        if not isinstance(metric, str):
            raise InvalidRequestError("'metric' must be a string")
        try:
            evaluator = Evaluator(metric)
        except ValueError as e:
            raise InvalidRequestError(str(e))

        model = registry.load_model(identity)
        report = evaluator.evaluate(
            model,
            example_list(data, 'test_set'),
            extensive=bool(data.get('extensive', False))
        )
        result = report.to_dict()
        result['identity'] = identity
        return jsonify(result), 200

    @app.route('/api/models/<base_name>/compare', methods=['POST'])
    def compare_models(base_name: str):
        """
        Rank every version of a base name on a test set.

        Request body:
            {'test_set': [[[0, 1], [0]], ...], 'top': 3}
        """
        data = json_object()
        top = data.get('top')
        if top is not None and (isinstance(top, bool) or not isinstance(top, int) or top < 1):
            raise InvalidRequestError(f"top must be a positive integer, got {top!r}")

        report = comparator.compare(base_name, example_list(data, 'test_set'), top_k=top)
        return jsonify(report.to_dict()), 200

    @app.route('/api/models/<identity>/error_curve', methods=['GET'])
    def get_error_curve(identity: str):
        """Return the training error curve of a stored model as a PNG."""
        artifact = registry.load(identity)
        if not artifact.metadata.error_history:
            return jsonify({'error': 'No training history stored for this model'}), 404

        return jsonify({
            'identity': identity,
            'image_data': render_error_curve(
                artifact.metadata.error_history,
                title=f"Training error: {identity}"
            )
        }), 200

    return app, socketio


# ============================================================================
# SERVER STARTUP
# ============================================================================

def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings)
    app, socketio = create_app(settings)

    logger.info(f"Starting server at http://localhost:{settings.port}/")
    try:
        socketio.run(
            app,
            host='0.0.0.0',
            port=settings.port,
            debug=not settings.is_production,
            use_reloader=False,
            allow_unsafe_werkzeug=True
        )
    except OSError as e:
        if "Address already in use" in str(e):
            logger.error(f"Port {settings.port} is already in use.")
            sys.exit(1)
        raise


if __name__ == '__main__':
    main()

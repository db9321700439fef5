"""
config.py
~~~~~~~~~

Environment-driven settings and logging setup.
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class TrainingDefaults:
    """Defaults used when a training request omits its options."""

    max_iterations: int = 10000
    learning_rate: float = 0.5
    error_threshold: float = 0.001


@dataclass
class Settings:
    """
    Runtime settings for the service layer.

    Attributes:
        model_dir: Directory holding the artifact database
        db_filename: Name of the SQLite file inside model_dir
        log_level: Root logging level name
        is_production: Quieter logging and no debug server
        port: HTTP port for the API server
        async_mode: Flask-SocketIO async mode ('gevent' or 'threading')
        compare_workers: Concurrent evaluations during comparison
        job_retention: Seconds a finished training job stays queryable
        cleanup_interval: Seconds between sweeps of finished training jobs,
            0 disables the periodic sweep
    """

    model_dir: str = 'models'
    db_filename: str = 'artifacts.db'
    log_level: str = 'INFO'
    is_production: bool = False
    port: int = 8000
    async_mode: str = 'gevent'
    compare_workers: int = 4
    job_retention: int = 3600
    cleanup_interval: int = 3600
    training: TrainingDefaults = field(default_factory=TrainingDefaults)

    @property
    def db_path(self) -> str:
        return os.path.join(self.model_dir, self.db_filename)

    @classmethod
    def from_env(cls) -> 'Settings':
        """Build settings from environment variables."""
        return cls(
            model_dir=os.getenv('NEURALDEEP_MODEL_DIR', 'models'),
            log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
            is_production=os.getenv('FLASK_ENV') == 'production',
            port=int(os.getenv('PORT', 8000)),
            async_mode=os.getenv('NEURALDEEP_ASYNC_MODE', 'gevent'),
            compare_workers=int(os.getenv('NEURALDEEP_COMPARE_WORKERS', 4)),
            job_retention=int(os.getenv('NEURALDEEP_JOB_RETENTION', 3600)),
            cleanup_interval=int(os.getenv('NEURALDEEP_CLEANUP_INTERVAL', 3600)),
        )


def configure_logging(settings: Optional[Settings] = None) -> None:
    """
    Set up logging based on environment.

    - In production: Show fewer logs (less noise) but keep important logs
    - In development: Show more detailed logs for debugging
    """
    settings = settings or Settings.from_env()
    log_level = getattr(logging, settings.log_level, logging.INFO)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if settings.is_production:
        for logger_name in ['socketio', 'engineio', 'engineio.server',
                            'socketio.server', 'werkzeug']:
            logging.getLogger(logger_name).setLevel(logging.WARNING)
        # Keep our logs at INFO level for visibility in production
        logging.getLogger('neuraldeep').setLevel(logging.INFO)
    else:
        logging.getLogger('socketio').setLevel(logging.INFO)
        logging.getLogger('engineio').setLevel(logging.INFO)

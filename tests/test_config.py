"""
test_config.py
~~~~~~~~~~~~~~

Tests for environment-driven settings.
"""

import logging
import os

import pytest

from neuraldeep.config import Settings, configure_logging


@pytest.mark.unit
class TestSettings:

    def test_defaults(self, monkeypatch):
        for name in ['NEURALDEEP_MODEL_DIR', 'LOG_LEVEL', 'FLASK_ENV', 'PORT',
                     'NEURALDEEP_ASYNC_MODE', 'NEURALDEEP_COMPARE_WORKERS',
                     'NEURALDEEP_JOB_RETENTION', 'NEURALDEEP_CLEANUP_INTERVAL']:
            monkeypatch.delenv(name, raising=False)

        settings = Settings.from_env()

        assert settings.model_dir == 'models'
        assert settings.db_path == os.path.join('models', 'artifacts.db')
        assert settings.log_level == 'INFO'
        assert settings.is_production is False
        assert settings.port == 8000
        assert settings.async_mode == 'gevent'
        assert settings.job_retention == 3600
        assert settings.cleanup_interval == 3600
        assert settings.training.learning_rate == 0.5

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv('NEURALDEEP_MODEL_DIR', str(tmp_path))
        monkeypatch.setenv('LOG_LEVEL', 'debug')
        monkeypatch.setenv('FLASK_ENV', 'production')
        monkeypatch.setenv('PORT', '9100')
        monkeypatch.setenv('NEURALDEEP_COMPARE_WORKERS', '2')
        monkeypatch.setenv('NEURALDEEP_JOB_RETENTION', '60')
        monkeypatch.setenv('NEURALDEEP_CLEANUP_INTERVAL', '0')

        settings = Settings.from_env()

        assert settings.db_path == os.path.join(str(tmp_path), 'artifacts.db')
        assert settings.log_level == 'DEBUG'
        assert settings.is_production is True
        assert settings.port == 9100
        assert settings.compare_workers == 2
        assert settings.job_retention == 60
        assert settings.cleanup_interval == 0

    def test_configure_logging_quiets_third_party_in_production(self):
        configure_logging(Settings(is_production=True))
        assert logging.getLogger('werkzeug').level == logging.WARNING
        assert logging.getLogger('neuraldeep').level == logging.INFO

    def test_configure_logging_reads_environment_without_settings(self, monkeypatch):
        monkeypatch.setenv('FLASK_ENV', 'production')
        configure_logging()
        assert logging.getLogger('engineio').level == logging.WARNING

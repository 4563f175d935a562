"""Tests for inbox.logging_config — level and format selection."""
import json
import logging
import os
from unittest.mock import MagicMock, patch

import pytest

from inbox.logging_config import JobContextFilter, JSONFormatter, TextFormatter, configure_logging


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    original_level = root.level
    original_handlers = root.handlers[:]
    yield
    root.setLevel(original_level)
    root.handlers = original_handlers


class TestConfigureLogging:

    def test_default_level_is_info(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop('LOG_LEVEL', None)
            configure_logging()
        assert logging.getLogger().level == logging.INFO

    @pytest.mark.parametrize('value,level', [
        ('DEBUG', logging.DEBUG),
        ('warning', logging.WARNING),
        ('NONSENSE', logging.INFO),
        ('BASIC_FORMAT', logging.INFO),
    ])
    def test_log_level_env_var(self, value, level):
        with patch.dict(os.environ, {'LOG_LEVEL': value}):
            configure_logging()
        assert logging.getLogger().level == level

    def test_text_format(self, capsys):
        with patch.dict(os.environ, {'LOG_FORMAT': 'text'}):
            configure_logging()
        logging.getLogger('pipeline.ingestion').info("batch done")
        output = capsys.readouterr().err
        assert 'pipeline.ingestion' in output
        assert 'batch done' in output
        assert 'INFO' in output

    def test_json_format(self, capsys):
        with patch.dict(os.environ, {'LOG_FORMAT': 'json'}):
            configure_logging()
        logging.getLogger('pipeline.analysis').warning("tenant %s has no business name", 't-1')
        parsed = json.loads(capsys.readouterr().err.strip())
        assert parsed['level'] == 'WARNING'
        assert parsed['logger'] == 'pipeline.analysis'
        assert parsed['message'] == 'tenant t-1 has no business name'
        assert 'timestamp' in parsed

    def test_json_format_includes_exception(self, capsys):
        with patch.dict(os.environ, {'LOG_FORMAT': 'json'}):
            configure_logging()
        try:
            raise ValueError("boom")
        except ValueError:
            logging.getLogger('pipeline.manager').error("job failed", exc_info=True)
        parsed = json.loads(capsys.readouterr().err.strip())
        assert 'ValueError' in parsed['exception']

    def test_json_carries_pipeline_context(self, capsys):
        with patch.dict(os.environ, {'LOG_FORMAT': 'json'}):
            configure_logging()
        logging.getLogger('pipeline.ingestion').info(
            "batch done", extra={'tenant_id': 'tenant-1', 'platform': 'INSTAGRAM'})
        parsed = json.loads(capsys.readouterr().err.strip())
        assert parsed['tenant_id'] == 'tenant-1'
        assert parsed['platform'] == 'INSTAGRAM'
        assert 'job_id' not in parsed

    def test_json_carries_current_job(self, capsys):
        job = MagicMock(id='job-42', func_name='inbox.pipeline.manager.run_analysis')
        with patch.dict(os.environ, {'LOG_FORMAT': 'json'}):
            configure_logging()
        with patch('rq.get_current_job', return_value=job):
            logging.getLogger('pipeline.analysis').info("scored")
        parsed = json.loads(capsys.readouterr().err.strip())
        assert parsed['job_id'] == 'job-42'
        assert parsed['job_func'] == 'inbox.pipeline.manager.run_analysis'

    def test_noisy_loggers_quieted(self):
        configure_logging()
        for name in ['urllib3', 'openai', 'httpcore', 'httpx', 'rq.worker']:
            assert logging.getLogger(name).level == logging.WARNING

    def test_no_duplicate_handlers(self):
        configure_logging()
        configure_logging()
        assert len(logging.getLogger().handlers) == 1


class TestJSONFormatter:

    def test_format_record(self):
        record = logging.LogRecord(
            name='services.queue', level=logging.DEBUG, pathname='', lineno=0,
            msg='Enqueued %s', args=('ingest-batch',), exc_info=None,
        )
        parsed = json.loads(JSONFormatter().format(record))
        assert parsed == {
            'timestamp': parsed['timestamp'],
            'level': 'DEBUG',
            'logger': 'services.queue',
            'message': 'Enqueued ingest-batch',
        }


def _record(**attrs):
    record = logging.LogRecord(
        name='pipeline.manager', level=logging.INFO, pathname='', lineno=0,
        msg='Stats reconciled for %d tenant(s)', args=(2,), exc_info=None,
    )
    record.__dict__.update(attrs)
    return record


class TestJobContext:

    def test_filter_outside_a_job(self):
        record = _record()
        with patch('rq.get_current_job', return_value=None):
            assert JobContextFilter().filter(record) is True
        assert record.job_id is None
        assert record.job_func is None

    def test_explicit_job_id_is_kept(self):
        record = _record(job_id='from-extra')
        with patch('rq.get_current_job') as current:
            JobContextFilter().filter(record)
        current.assert_not_called()
        assert record.job_id == 'from-extra'

    def test_text_formatter_appends_job(self):
        assert TextFormatter().format(_record(job_id='job-7')).endswith('Stats reconciled for 2 tenant(s) [job job-7]')
        assert TextFormatter().format(_record()).endswith('Stats reconciled for 2 tenant(s)')

    def test_json_formatter_context(self):
        parsed = json.loads(JSONFormatter().format(_record(tenant_id='tenant-1', interaction_id='i-1')))
        assert parsed['tenant_id'] == 'tenant-1'
        assert parsed['interaction_id'] == 'i-1'
        assert parsed['message'] == 'Stats reconciled for 2 tenant(s)'

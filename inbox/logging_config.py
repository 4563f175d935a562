"""
Structured logging for the web process and the RQ workers.

configure_logging() is called from create_app() and from inbox.worker.
LOG_FORMAT picks text or single-line JSON, LOG_LEVEL the level (default INFO).

Every record passes through JobContextFilter, which stamps the id and
function of the RQ job being executed (if any). Pipeline code adds
tenant_id / platform / interaction_id through `extra=`; the JSON formatter
emits whichever of these context fields are set, so one tenant's or one
job's trail can be filtered out of the aggregated logs.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone

# Record attributes carried into JSON output when present
CONTEXT_FIELDS = ('tenant_id', 'platform', 'interaction_id', 'job_id', 'job_func')

# Third-party loggers that are noisy at INFO
_NOISY_LOGGERS = [
    'urllib3',
    'openai',
    'httpcore',
    'httpx',
    'rq.worker',
]


class JobContextFilter(logging.Filter):
    """Attach the current RQ job's id and function name to each record."""

    def filter(self, record):
        if getattr(record, 'job_id', None) is None:
            job = _current_job()
            record.job_id = job.id if job is not None else None
            record.job_func = job.func_name if job is not None else None
        return True


def _current_job():
    try:
        from rq import get_current_job
        return get_current_job()
    except Exception:
        return None


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with the pipeline context fields that are set."""

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable lines; a job id, when known, is appended in brackets."""

    def __init__(self):
        super().__init__('[%(asctime)s] %(levelname)s %(name)s — %(message)s', datefmt='%Y-%m-%d %H:%M:%S')

    def format(self, record):
        line = super().format(record)
        job_id = getattr(record, 'job_id', None)
        return f'{line} [job {job_id}]' if job_id else line


def _level_from_env():
    level = getattr(logging, os.getenv('LOG_LEVEL', 'INFO').upper(), None)
    return level if isinstance(level, int) else logging.INFO


def configure_logging(app=None):
    """
    Install one stderr handler on the root logger.

    Environment variables:
        LOG_LEVEL  — Python log level name (default: INFO)
        LOG_FORMAT — "text" (default) or "json"
    Safe to call repeatedly; earlier handlers are replaced.
    """
    level = _level_from_env()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.addFilter(JobContextFilter())
    if os.getenv('LOG_FORMAT', 'text').lower() == 'json':
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if app is not None:
        app.logger.handlers.clear()
        app.logger.propagate = True

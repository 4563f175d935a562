"""
Worker entry point — used by the Procfile `worker` process.

Usage:
    python -m inbox.worker                      # all queues
    python -m inbox.worker ingestion analysis   # selected queues
    python -m inbox.worker --burst              # drain and exit
"""
import argparse
import logging
import sys

from inbox.config import QUEUE_NAMES
from inbox.logging_config import configure_logging

logger = logging.getLogger('inbox.worker')


def main(argv=None):
    parser = argparse.ArgumentParser(description='Run an RQ worker for the inbox pipeline queues.')
    parser.add_argument('queues', nargs='*', default=QUEUE_NAMES, help=f"queues to consume (default: {', '.join(QUEUE_NAMES)})")
    parser.add_argument('--burst', action='store_true', help='exit once the queues are empty')
    args = parser.parse_args(argv)

    configure_logging()

    unknown = [name for name in args.queues if name not in QUEUE_NAMES]
    if unknown:
        parser.error(f"unknown queue(s): {', '.join(unknown)}")

    from rq import Queue, Worker

    from inbox.database import import_models
    from inbox.extensions import redis_client, rq_connection
    from inbox.services.circuit_breaker import init_breakers

    import_models()
    init_breakers(redis_client)

    queues = [Queue(name, connection=rq_connection) for name in args.queues]
    logger.info("Worker starting on queues: %s", ', '.join(args.queues))
    Worker(queues, connection=rq_connection).work(burst=args.burst, with_scheduler=True)
    return 0


if __name__ == '__main__':
    sys.exit(main())

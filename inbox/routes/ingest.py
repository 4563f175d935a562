"""
Ingest route — accepts a normalized batch from a platform adapter.

The adapter has already verified the platform's signature and mapped the
payload to {"posts": [...], "interactions": [...]}. Here the batch is
validated once and queued; processing happens in the ingestion worker.
"""
import logging

from flask import Blueprint, jsonify, request

from inbox.config import PLATFORMS
from inbox.errors import InvalidBatchError
from inbox.pipeline.manager import enqueue_ingestion

logger = logging.getLogger('routes.ingest')

bp = Blueprint('ingest', __name__)


@bp.route('/api/ingest/<tenant_id>', methods=['POST'])
def ingest_batch(tenant_id):
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return jsonify({'error': 'Expected a JSON object'}), 400

    platform = (body.get('platform') or '').upper()
    if platform not in PLATFORMS:
        return jsonify({'error': f"platform must be one of {', '.join(PLATFORMS)}"}), 400

    batch = {
        'posts': body.get('posts') or [],
        'interactions': body.get('interactions') or [],
    }
    try:
        job_id = enqueue_ingestion(tenant_id, platform, batch, account_id=body.get('account_id'))
    except InvalidBatchError as e:
        logger.info("Tenant %s: rejected %s batch: %s", tenant_id, platform, e)
        return jsonify({'error': 'Invalid batch', 'details': e.errors}), 400

    return jsonify({'job_id': job_id, 'status': 'queued'}), 202

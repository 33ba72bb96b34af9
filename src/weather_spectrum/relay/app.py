"""
Notification relay Flask app.

Sits between the site and third parties that need secrets:

- POST /send-notification forwards a broadcast to OneSignal
- POST /census-lookup resolves ZIP + affected population for a coordinate

Every path answers OPTIONS pre-flight with permissive CORS headers, and any
method other than POST is refused with 405 before the path is looked at.

Usage:
  weather-spectrum relay --port 8787
"""

import hmac
import logging
from typing import Optional

from flask import Flask, Response, jsonify, request
from pydantic import ValidationError

from ..app_logging import configure_logging
from ..census import CensusEnricher, SENTINEL_RESULT
from ..config import SystemConfig, get_config
from .models import CensusLookupRequest, NotificationRequest, invalid_fields
from .onesignal import init_push

logger = logging.getLogger(__name__)

ALL_METHODS = ['GET', 'HEAD', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS']

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'POST, OPTIONS',
    'Access-Control-Allow-Headers': 'Content-Type, Authorization',
}


def create_relay_app(config: Optional[SystemConfig] = None, enricher=None, push_session=None,
                     testing: bool = False) -> Flask:
    """Create the relay app.

    Args:
        config: System configuration; the process-wide one when omitted.
        enricher: Object with lookup(lat, lon) -> EnrichmentResult.
        push_session: requests.Session used for OneSignal calls.
        testing: Put Flask in testing mode (no file logging).
    """
    config = config or get_config()
    app = Flask(__name__)
    app.testing = testing
    app.config['SYSTEM_CONFIG'] = config
    configure_logging(app, config, name='Notification relay')

    init_push(config.push, session=push_session, timeout=config.http_timeout)
    enricher = enricher or CensusEnricher(config.geo, timeout=config.http_timeout)

    def authorized() -> bool:
        expected = config.push.relay_api_key
        if not expected:
            return True
        header = request.headers.get('Authorization', '')
        scheme, _, token = header.partition(' ')
        return scheme.lower() == 'bearer' and hmac.compare_digest(token.encode(), expected.encode())

    def send_notification():
        if not authorized():
            logger.warning(f"Rejected unauthorized notification request from {request.remote_addr}")
            return jsonify({'error': 'Unauthorized'}), 401

        body = request.get_json(silent=True)
        try:
            payload = NotificationRequest.model_validate(body if body is not None else {})
        except ValidationError as e:
            fields = invalid_fields(e)
            return jsonify({
                'error': f"Title and message are required (missing: {', '.join(fields)})",
                'missing': fields,
            }), 400

        try:
            client = init_push(config.push, timeout=config.http_timeout)
            status, result = client.send(
                payload.title,
                payload.message,
                payload.url or config.site_url,
                payload.segments or config.push.default_segments,
            )
        except Exception as e:
            logger.exception("Notification relay failed")
            return jsonify({'error': str(e)}), 500

        return jsonify(result), status

    def census_lookup():
        body = request.get_json(silent=True)
        try:
            coords = CensusLookupRequest.model_validate(body if body is not None else {})
        except ValidationError as e:
            logger.info(f"Census lookup with invalid coordinates ({', '.join(invalid_fields(e))})")
            return jsonify(SENTINEL_RESULT.to_dict()), 200

        try:
            result = enricher.lookup(coords.lat, coords.lon)
        except Exception:
            logger.exception(f"Census lookup failed for {coords.lat}, {coords.lon}")
            result = SENTINEL_RESULT
        return jsonify(result.to_dict()), 200

    routes = {
        'send-notification': send_notification,
        'census-lookup': census_lookup,
    }

    @app.route('/', defaults={'path': ''}, methods=ALL_METHODS)
    @app.route('/<path:path>', methods=ALL_METHODS)
    def relay(path):
        if request.method == 'OPTIONS':
            return Response(status=204, headers=CORS_HEADERS)

        if request.method != 'POST':
            return Response('Method not allowed', status=405)

        handler = routes.get(path.strip('/'))
        if handler is None:
            return Response('Not found', status=404)
        return handler()

    @app.after_request
    def add_cors_origin(response):
        response.headers.setdefault('Access-Control-Allow-Origin', '*')
        return response

    return app

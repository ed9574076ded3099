"""Drain delay request gateway.

Routes API Gateway HTTP API style events by path. Runs behind the bundled
HTTP server (drain.server) as a pod preStop hook target, or directly as a
Lambda entry point.
"""

import json
import logging
import threading

from drain.resolver import DrainResolver
from shared.clients import build_clients
from shared.config import AppConfig
from shared.errors import DrainDelayError, ValidationError
from shared.models import DEFAULT_MAX_DELAY, DrainRequest

logger = logging.getLogger(__name__)

_resolver = None
_resolver_lock = threading.Lock()


def configure(resolver: DrainResolver | None) -> None:
    """Install the resolver used by every request (None resets to lazy build)."""
    global _resolver
    with _resolver_lock:
        _resolver = resolver


def _get_resolver() -> DrainResolver:
    """Return the configured resolver, building it from the environment on first use."""
    global _resolver
    with _resolver_lock:
        if _resolver is None:
            config = AppConfig.from_env()
            _resolver = DrainResolver(
                build_clients(config),
                retry_missing_hostname=config.retry_missing_hostname,
            )
        return _resolver


def lambda_handler(event, context):
    """Main handler routed by request path."""
    path = event.get('rawPath', '')
    method = event.get('requestContext', {}).get('http', {}).get('method', 'GET')

    if path == '/health' and method == 'GET':
        return _response(200, {'status': 'OK'})
    elif path == '/drain-delay' and method == 'GET':
        return _handle_drain_delay(event)
    else:
        return _response(404, {'message': 'Not found'})


def _handle_drain_delay(event):
    """GET /drain-delay - block until the pod IP has drained from the ingress load balancer."""
    status_code, body = drain_delay(event.get('queryStringParameters') or {})
    return _response(status_code, body)


def drain_delay(params: dict) -> tuple[int, dict]:
    """Run one drain request from query parameters; returns (status code, JSON body)."""
    try:
        request = build_request(params)
    except ValidationError as e:
        logger.warning('Error building drain request from query: %s', e)
        return 400, {'message': f'Bad request: {e}'}

    try:
        report = _get_resolver().delay_until_drain(request)
    except DrainDelayError as e:
        logger.error('Error delaying until drain: %s', e)
        return 500, {'message': f'Drain delay failed: {e}', 'error': e.kind}
    except Exception:
        logger.exception('Unexpected error delaying until drain for IP %s', request.target_ip)
        return 500, {'message': 'Drain delay failed', 'error': 'internal'}

    return 200, {'message': 'Success', **report.to_dict()}


def build_request(params: dict) -> DrainRequest:
    """Build a DrainRequest from ip, namespace, ingress and max-delay query parameters."""
    max_delay_str = (params.get('max-delay') or '').strip()
    if not max_delay_str:
        max_delay = DEFAULT_MAX_DELAY
    else:
        try:
            max_delay = int(max_delay_str)
        except ValueError:
            raise ValidationError(f'max-delay must be an integer number of seconds, got {max_delay_str!r}') from None

    return DrainRequest(
        target_ip=(params.get('ip') or '').strip(),
        ingress_namespace=(params.get('namespace') or '').strip(),
        ingress_name=(params.get('ingress') or '').strip(),
        max_delay=max_delay,
    )


def _response(status_code, body):
    """Return API Gateway HTTP API response."""
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'application/json'},
        'body': json.dumps(body)
    }

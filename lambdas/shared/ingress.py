"""Cluster state reader: resolve an Ingress to its published hostname."""

import logging

import urllib3
from kubernetes.client import ApiException

from shared.deadline import Deadline
from shared.errors import NotFoundError, TransportError

logger = logging.getLogger(__name__)


class IngressReader:
    """Read-only view of Ingress resources through the Kubernetes API.

    Safe to share between threads; it holds no per-request state.
    """

    def __init__(self, networking_api):
        self._api = networking_api

    def resolve_hostname(self, namespace: str, name: str, deadline: Deadline) -> str:
        """Return the hostname the ingress controller published for namespace/name.

        Raises:
            NotFoundError: the ingress does not exist or has no hostname yet.
            TransportError: the API call failed and may succeed if repeated.
            DrainTimeoutError: the deadline elapsed first.
        """
        try:
            ingress = deadline.call(
                self._api.read_namespaced_ingress,
                name,
                namespace,
                _request_timeout=max(deadline.remaining(), 0.001),
            )
        except ApiException as e:
            if e.status == 404:
                raise NotFoundError(f'ingress {namespace}/{name} not found') from e
            raise TransportError(f'error reading ingress {namespace}/{name}: {e.status} {e.reason}') from e
        except urllib3.exceptions.HTTPError as e:
            raise TransportError(f'error reading ingress {namespace}/{name}: {e}') from e

        hostname = published_hostname(ingress)
        if not hostname:
            raise NotFoundError(f'no hostname for ingress {namespace}/{name}')
        logger.debug('Ingress %s/%s publishes hostname %s', namespace, name, hostname)
        return hostname


def published_hostname(ingress) -> str:
    """Pick the hostname from an Ingress status; the last non-empty entry wins."""
    status = getattr(ingress, 'status', None)
    load_balancer = getattr(status, 'load_balancer', None)
    hostname = ''
    for entry in getattr(load_balancer, 'ingress', None) or []:
        if getattr(entry, 'hostname', None):
            hostname = entry.hostname
    return hostname

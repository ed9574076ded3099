"""Error taxonomy for the drain delay service.

Only ValidationError, NotFoundError and DrainTimeoutError are meant to reach
the gateway. TransportError is raised by collaborators and absorbed by the
resolver's retry loops and its conservative health policy.
"""


class DrainDelayError(Exception):
    """Base class for every failure the drain delay service reports."""

    kind = 'error'


class ValidationError(DrainDelayError):
    """Request parameters are missing or malformed."""

    kind = 'validation'


class NotFoundError(DrainDelayError):
    """The ingress hostname or its load balancer does not exist."""

    kind = 'not_found'


class TransportError(DrainDelayError):
    """A collaborator call failed in a way that may succeed if repeated."""

    kind = 'transport'


class DrainTimeoutError(DrainDelayError):
    """The request deadline elapsed before the IP finished draining."""

    kind = 'timeout'

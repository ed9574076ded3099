"""Drain resolver: hold a pod's termination until its IP has drained.

Resolution runs strictly in order:

    ingress hostname -> load balancer -> IP target groups -> convergence

and ends in success, DrainTimeoutError or NotFoundError. Transport errors
from the collaborators never escape; they are retried until the deadline or,
inside the convergence loop, treated as "still active".
"""

import logging
import time

from shared.clients import Clients
from shared.deadline import Deadline
from shared.errors import DrainTimeoutError, NotFoundError, TransportError
from shared.models import DrainReport, DrainRequest

logger = logging.getLogger(__name__)

RETRY_INTERVAL = 0.1
POLL_INTERVAL = 0.25


class DrainResolver:

    def __init__(
        self,
        clients: Clients,
        retry_interval: float = RETRY_INTERVAL,
        poll_interval: float = POLL_INTERVAL,
        retry_missing_hostname: bool = False,
        clock=time.monotonic,
    ):
        self._clients = clients
        self._retry_interval = retry_interval
        self._poll_interval = poll_interval
        self._retry_missing_hostname = retry_missing_hostname
        self._clock = clock

    def delay_until_drain(self, request: DrainRequest) -> DrainReport:
        """Block until ``request.target_ip`` has drained from every IP target group.

        Raises:
            NotFoundError: the ingress has no hostname or no load balancer serves it.
            DrainTimeoutError: ``request.max_delay`` elapsed first.
        """
        started = self._clock()
        deadline = Deadline.after(request.max_delay, clock=self._clock)
        logger.info(
            'Beginning drain delay for IP %s for ingress %s with max delay %ss',
            request.target_ip, request.ingress, request.max_delay,
        )

        try:
            hostname = self._resolve_hostname(request, deadline)
            lb_arn = self._retry(
                lambda: self._clients.load_balancers.find_load_balancer(hostname, deadline),
                deadline, f'finding load balancer for hostname {hostname}',
            )
            target_groups = self._retry(
                lambda: self._clients.load_balancers.list_ip_target_groups(lb_arn, deadline),
                deadline, f'listing target groups for {lb_arn}',
            )

            iterations = 0
            if target_groups:
                iterations = self.wait_until_drained(request.target_ip, target_groups, deadline)
        except NotFoundError as e:
            logger.warning('Drain delay for IP %s failed: %s', request.target_ip, e)
            raise
        except DrainTimeoutError as e:
            logger.warning('Drain delay for IP %s timed out: %s', request.target_ip, e)
            raise
        finally:
            deadline.close()

        return DrainReport(
            target_groups=len(target_groups),
            iterations=iterations,
            elapsed=self._clock() - started,
        )

    def wait_until_drained(self, ip: str, target_groups: list[str], deadline: Deadline) -> int:
        """Poll target health until no group still routes ``ip``.

        The working set only ever shrinks: a group leaves it once the IP is
        absent or draining/unused there, and is never checked again. A group
        whose health lookup fails stays in the set. Returns the number of
        polling iterations run.
        """
        remaining = list(target_groups)
        iterations = 0
        while True:
            iterations += 1
            logger.info('Searching %d target groups to see if IP %s is draining', len(remaining), ip)

            still_active = []
            for target_group in remaining:
                deadline.check(
                    f'timed out waiting for IP {ip} to drain from {len(remaining)} target groups'
                )
                if self._still_active(ip, target_group, deadline):
                    still_active.append(target_group)

            if not still_active:
                logger.info('No more target groups using IP %s', ip)
                return iterations

            remaining = still_active
            try:
                deadline.sleep(self._poll_interval)
            except DrainTimeoutError:
                raise DrainTimeoutError(
                    f'timed out waiting for IP {ip} to drain from {len(remaining)} target groups'
                ) from None

    def _still_active(self, ip: str, target_group: str, deadline: Deadline) -> bool:
        try:
            records = self._clients.target_health.member_health(target_group, deadline)
        except TransportError as e:
            logger.warning('Assuming IP %s is still active in %s: %s', ip, target_group, e)
            return True

        for record in records:
            if record.member_id == ip and record.is_active:
                logger.info('Found %s in target group %s in state %s', ip, target_group, record.state.value)
                return True
        return False

    def _resolve_hostname(self, request: DrainRequest, deadline: Deadline) -> str:
        retry_on = (TransportError,)
        if self._retry_missing_hostname:
            retry_on = (TransportError, NotFoundError)
        return self._retry(
            lambda: self._clients.ingresses.resolve_hostname(
                request.ingress_namespace, request.ingress_name, deadline,
            ),
            deadline, f'reading ingress {request.ingress}', retry_on=retry_on,
        )

    def _retry(self, fn, deadline: Deadline, what: str, retry_on=(TransportError,)):
        """Call ``fn`` until it succeeds, pausing between failures, until the deadline."""
        last_error = None
        while True:
            if deadline.expired():
                raise DrainTimeoutError(_timeout_message(what, last_error))
            try:
                return fn()
            except retry_on as e:
                last_error = e
                logger.warning('Error %s, retrying: %s', what, e)
            try:
                deadline.sleep(self._retry_interval)
            except DrainTimeoutError:
                raise DrainTimeoutError(_timeout_message(what, last_error)) from None


def _timeout_message(what: str, last_error) -> str:
    if last_error is None:
        return f'timed out {what}'
    return f'timed out {what}: {last_error}'

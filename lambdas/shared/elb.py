"""ELBv2 lookups: load balancer directory and target health oracle.

Both classes only read from the control plane. Each method makes one
attempt; retrying transport errors is the resolver's job.
"""

import logging

from botocore.exceptions import BotoCoreError, ClientError

from shared.deadline import Deadline
from shared.errors import NotFoundError, TransportError
from shared.models import MemberHealthRecord, TargetHealthState

logger = logging.getLogger(__name__)

IP_TARGET_TYPE = 'ip'


def _paginate(client, operation: str, result_key: str, **kwargs) -> list:
    items = []
    for page in client.get_paginator(operation).paginate(**kwargs):
        items.extend(page.get(result_key, []))
    return items


class LoadBalancerDirectory:
    """Resolve hostnames to load balancers and load balancers to IP target groups."""

    def __init__(self, elbv2_client):
        self._elbv2 = elbv2_client

    def find_load_balancer(self, hostname: str, deadline: Deadline) -> str:
        """Return the ARN of the load balancer whose DNS name is ``hostname``.

        DNS names are assumed unique; the first exact match in listing order
        is returned.

        Raises:
            NotFoundError: the listing succeeded and no load balancer matches.
            TransportError: the listing failed.
        """
        try:
            load_balancers = deadline.call(
                _paginate, self._elbv2, 'describe_load_balancers', 'LoadBalancers',
            )
        except (ClientError, BotoCoreError) as e:
            raise TransportError(f'error listing load balancers: {e}') from e

        for lb in load_balancers:
            if lb.get('DNSName') == hostname:
                return lb['LoadBalancerArn']

        raise NotFoundError(f'could not find load balancer with hostname {hostname}')

    def list_ip_target_groups(self, load_balancer_arn: str, deadline: Deadline) -> list[str]:
        """Return ARNs of the load balancer's target groups whose target type is 'ip'.

        Listing order is preserved. Target groups of any other type are dropped
        here and never reach the convergence loop.
        """
        try:
            target_groups = deadline.call(
                _paginate, self._elbv2, 'describe_target_groups', 'TargetGroups',
                LoadBalancerArn=load_balancer_arn,
            )
        except (ClientError, BotoCoreError) as e:
            raise TransportError(f'error listing target groups for {load_balancer_arn}: {e}') from e

        arns = [tg['TargetGroupArn'] for tg in target_groups if tg.get('TargetType') == IP_TARGET_TYPE]
        logger.info('Found %d target groups with IP targets for load balancer %s', len(arns), load_balancer_arn)
        return arns


class TargetHealthOracle:
    """Report the health of every member registered in a target group."""

    def __init__(self, elbv2_client):
        self._elbv2 = elbv2_client

    def member_health(self, target_group_arn: str, deadline: Deadline) -> list[MemberHealthRecord]:
        try:
            resp = deadline.call(self._elbv2.describe_target_health, TargetGroupArn=target_group_arn)
        except (ClientError, BotoCoreError) as e:
            raise TransportError(f'error describing target health for {target_group_arn}: {e}') from e

        records = []
        for desc in resp.get('TargetHealthDescriptions', []):
            target = desc.get('Target', {})
            health = desc.get('TargetHealth', {})
            records.append(MemberHealthRecord(
                member_id=target.get('Id', ''),
                state=TargetHealthState(health.get('State', 'unknown')),
                port=target.get('Port'),
                reason=health.get('Reason', ''),
            ))
        return records

"""Long-lived collaborator clients, built once per process.

The bundle is immutable and shared by every in-flight drain request; tests
build one from fakes instead of calling build_clients().
"""

import logging
from dataclasses import dataclass

import boto3
from botocore.config import Config
from kubernetes import client as k8s_client, config as k8s_config

from shared.config import AppConfig
from shared.elb import LoadBalancerDirectory, TargetHealthOracle
from shared.ingress import IngressReader

logger = logging.getLogger(__name__)

# The resolver retries on its own schedule, so the SDK makes a single attempt.
_ELBV2_CONFIG = Config(
    connect_timeout=2,
    read_timeout=5,
    retries={'total_max_attempts': 1, 'mode': 'standard'},
)


@dataclass(frozen=True)
class Clients:
    ingresses: IngressReader
    load_balancers: LoadBalancerDirectory
    target_health: TargetHealthOracle


def build_elbv2_client(config: AppConfig):
    if config.aws_profile:
        logger.info('Using AWS profile %s', config.aws_profile)
    elif config.aws_region:
        logger.info('Using AWS region %s', config.aws_region)
    else:
        logger.info('Using default AWS config')
    session = boto3.Session(
        profile_name=config.aws_profile or None,
        region_name=config.aws_region or None,
    )
    return session.client('elbv2', config=_ELBV2_CONFIG)


def build_networking_api(config: AppConfig):
    if config.kubeconfig:
        k8s_config.load_kube_config(config_file=config.kubeconfig)
    else:
        k8s_config.load_incluster_config()
    return k8s_client.NetworkingV1Api()


def build_clients(config: AppConfig) -> Clients:
    """Create the Kubernetes and ELBv2 clients described by ``config``."""
    elbv2 = build_elbv2_client(config)
    return Clients(
        ingresses=IngressReader(build_networking_api(config)),
        load_balancers=LoadBalancerDirectory(elbv2),
        target_health=TargetHealthOracle(elbv2),
    )

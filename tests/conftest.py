"""Shared fixtures and helpers for drain delay tests."""

import os
import sys
import time

import pytest

# ---------------------------------------------------------------------------
# Path setup: make lambdas/ importable as top-level packages
# ---------------------------------------------------------------------------
_repo_root = os.path.join(os.path.dirname(__file__), '..')
_lambdas_dir = os.path.join(_repo_root, 'lambdas')
sys.path.insert(0, _lambdas_dir)

from drain import handler  # noqa: E402
from shared.clients import Clients  # noqa: E402
from shared.models import MemberHealthRecord, TargetHealthState  # noqa: E402

REGION = 'eu-west-2'
HOSTNAME = 'lb.example.com'
LB_ARN = 'arn:aws:elasticloadbalancing:eu-west-2:123456789012:loadbalancer/app/ingress-lb/50dc6c495c0c9188'
POD_IP = '10.0.1.15'


def tg_arn(name):
    return f'arn:aws:elasticloadbalancing:eu-west-2:123456789012:targetgroup/{name}/73e2d6bc24d8a067'


def member(member_id, state, port=80):
    return MemberHealthRecord(member_id=member_id, state=TargetHealthState(state), port=port)


# ---------------------------------------------------------------------------
# Scripted in-memory collaborators
# ---------------------------------------------------------------------------
class Script:
    """Hand out outcomes in order; the last one repeats forever.

    An outcome that is an exception instance is raised instead of returned.
    """

    def __init__(self, *outcomes):
        self._outcomes = list(outcomes)

    def next(self):
        if len(self._outcomes) > 1:
            outcome = self._outcomes.pop(0)
        else:
            outcome = self._outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeIngresses:
    def __init__(self, *outcomes):
        self._script = Script(*outcomes)
        self.calls = []

    def resolve_hostname(self, namespace, name, deadline):
        self.calls.append((namespace, name))
        return self._script.next()


class FakeLoadBalancers:
    def __init__(self, find=(LB_ARN,), groups=((),)):
        self._find = Script(*find)
        self._groups = Script(*groups)
        self.find_calls = []
        self.group_calls = []

    def find_load_balancer(self, hostname, deadline):
        self.find_calls.append(hostname)
        return self._find.next()

    def list_ip_target_groups(self, load_balancer_arn, deadline):
        self.group_calls.append(load_balancer_arn)
        return list(self._groups.next())


class FakeTargetHealth:
    """Per-target-group scripts of health record lists."""

    def __init__(self, scripts=None, delay=0.0):
        self._scripts = {arn: Script(*outcomes) for arn, outcomes in (scripts or {}).items()}
        self._delay = delay
        self.calls = []

    def member_health(self, target_group_arn, deadline):
        self.calls.append(target_group_arn)
        if self._delay:
            time.sleep(self._delay)
        return self._scripts[target_group_arn].next()


def make_clients(ingresses=None, load_balancers=None, target_health=None):
    return Clients(
        ingresses=ingresses or FakeIngresses(HOSTNAME),
        load_balancers=load_balancers or FakeLoadBalancers(),
        target_health=target_health or FakeTargetHealth(),
    )


# ---------------------------------------------------------------------------
# Helper: build API Gateway HTTP API v2 style events
# ---------------------------------------------------------------------------
def make_event(path, method='GET', params=None):
    """Build the minimal event shape read by lambdas/drain/handler.py."""
    return {
        'rawPath': path,
        'queryStringParameters': params,
        'requestContext': {'http': {'method': method}},
    }


@pytest.fixture(autouse=True)
def _reset_handler():
    """Never let one test's injected resolver leak into the next."""
    handler.configure(None)
    yield
    handler.configure(None)


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake credentials so boto3 never reaches for a real profile."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', REGION)
    monkeypatch.delenv('AWS_PROFILE', raising=False)

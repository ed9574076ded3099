"""Request and health record types for the drain delay service."""

import ipaddress
from dataclasses import dataclass
from enum import Enum

from shared.errors import ValidationError

DEFAULT_MAX_DELAY = 60


@dataclass(frozen=True)
class DrainRequest:
    """Wait for ``target_ip`` to stop being routed by an ingress's load balancer.

    Validated on construction; an instance that exists is always usable.
    """

    target_ip: str
    ingress_namespace: str
    ingress_name: str
    max_delay: float = DEFAULT_MAX_DELAY

    def __post_init__(self):
        for field_name, label in (('target_ip', 'ip'),
                                  ('ingress_namespace', 'namespace'),
                                  ('ingress_name', 'ingress')):
            value = getattr(self, field_name)
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(f'{label} is required')

        try:
            ipaddress.ip_address(self.target_ip)
        except ValueError:
            raise ValidationError(f'ip must be an IP address, got {self.target_ip!r}') from None

        if isinstance(self.max_delay, bool) or not isinstance(self.max_delay, (int, float)):
            raise ValidationError('max-delay must be a number of seconds')
        if self.max_delay < 0:
            raise ValidationError('max-delay must not be negative')

    @property
    def ingress(self) -> str:
        return f'{self.ingress_namespace}/{self.ingress_name}'


class TargetHealthState(str, Enum):
    """Target health states reported by the ELBv2 control plane."""

    INITIAL = 'initial'
    HEALTHY = 'healthy'
    UNHEALTHY = 'unhealthy'
    UNHEALTHY_DRAINING = 'unhealthy.draining'
    UNUSED = 'unused'
    DRAINING = 'draining'
    UNAVAILABLE = 'unavailable'
    UNKNOWN = 'unknown'

    @classmethod
    def _missing_(cls, value):
        return cls.UNKNOWN


# A member in one of these states no longer receives new traffic.
DRAINED_STATES = frozenset({TargetHealthState.DRAINING, TargetHealthState.UNUSED})


@dataclass(frozen=True)
class MemberHealthRecord:
    member_id: str
    state: TargetHealthState
    port: int | None = None
    reason: str = ''

    @property
    def is_active(self) -> bool:
        return self.state not in DRAINED_STATES


@dataclass(frozen=True)
class DrainReport:
    """Summary of a successful drain wait."""

    target_groups: int
    iterations: int
    elapsed: float

    def to_dict(self) -> dict:
        return {
            'target_groups': self.target_groups,
            'iterations': self.iterations,
            'elapsed_seconds': round(self.elapsed, 3),
        }

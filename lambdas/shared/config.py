"""Process-wide configuration for the drain delay service.

Values come from the environment; the standalone server lets command line
flags override them (see drain.server.parse_args).
"""

import os
from dataclasses import dataclass

DEFAULT_PORT = 8080
DEFAULT_LOG_LEVEL = 'INFO'
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR')

_TRUTHY = {'1', 'true', 'yes', 'on'}


def env_flag(name: str, default: bool = False) -> bool:
    """Read a boolean environment variable ('1', 'true', 'yes', 'on')."""
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


@dataclass(frozen=True)
class AppConfig:
    kubeconfig: str = ''
    aws_region: str = ''
    aws_profile: str = ''
    port: int = DEFAULT_PORT
    log_level: str = DEFAULT_LOG_LEVEL
    retry_missing_hostname: bool = False

    @classmethod
    def from_env(cls) -> 'AppConfig':
        """Read configuration from the environment.

        Raises ValueError when DRAIN_DELAY_PORT or LOG_LEVEL is set to a
        value the service cannot use.
        """
        port_str = os.environ.get('DRAIN_DELAY_PORT', str(DEFAULT_PORT))
        try:
            port = int(port_str)
        except ValueError:
            raise ValueError(f'DRAIN_DELAY_PORT must be an integer, got {port_str!r}') from None

        log_level = os.environ.get('LOG_LEVEL', DEFAULT_LOG_LEVEL).strip().upper()
        if log_level not in LOG_LEVELS:
            raise ValueError(f'LOG_LEVEL must be one of {", ".join(LOG_LEVELS)}, got {log_level!r}')

        return cls(
            kubeconfig=os.environ.get('KUBECONFIG', ''),
            aws_region=os.environ.get('AWS_REGION', ''),
            aws_profile=os.environ.get('AWS_PROFILE', ''),
            port=port,
            log_level=log_level,
            retry_missing_hostname=env_flag('DRAIN_DELAY_RETRY_MISSING_HOSTNAME'),
        )

"""Service configuration read from environment variables.

Entry points call ``load_dotenv()`` first, so values may also come from a
``.env`` file.
"""

import os
import re
from dataclasses import dataclass
from typing import Mapping

DOCUMENT_DATABASES = {'mongo', 'document'}
RELATIONAL_DATABASES = {'postgres', 'relational'}
FILTERED = '***FILTERED***'

_DURATION_PART = re.compile(r'(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h)')
_UNIT_SECONDS = {
    'ns': 1e-9, 'us': 1e-6, 'µs': 1e-6, 'ms': 1e-3,
    's': 1.0, 'm': 60.0, 'h': 3600.0,
}


class ConfigError(ValueError):
    """Configuration is missing or invalid."""


def parse_duration(value: str) -> float:
    """Parse ``"1m30s"``, ``"500ms"`` or a plain number of seconds into seconds."""
    text = value.strip()
    try:
        return float(text)
    except ValueError:
        pass

    position = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()
    if position == 0 or position != len(text):
        raise ConfigError(f"invalid duration: {value!r}")
    return total


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {'1', 'true', 'yes', 'on'}


@dataclass(frozen=True)
class Settings:
    dsn: str
    jwt_secret: str
    version: str = 'dev'
    environment: str = 'local'
    http_port: int = 8080
    grpc_port: int = 50051
    database: str = 'mongo'
    timeout: float = 30.0
    async_run: bool = False
    async_interval: float = 60.0

    @property
    def is_document_store(self) -> bool:
        return self.database in DOCUMENT_DATABASES

    def public_dsn(self) -> str:
        """DSN as shown in health responses; hidden outside local environments."""
        return self.dsn if self.environment == 'local' else FILTERED


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from ``environ`` (defaults to ``os.environ``).

    Raises:
        ConfigError: a required variable is missing or a value does not parse
    """
    env = os.environ if environ is None else environ

    dsn = env.get('DSN', '')
    jwt_secret = env.get('JWT_SECRET', '')
    if not dsn:
        raise ConfigError("DSN environment variable is required")
    if not jwt_secret:
        raise ConfigError(
            "JWT_SECRET environment variable is required. "
            "Generate a secure key with: openssl rand -hex 32"
        )

    database = env.get('DATABASE', 'mongo').strip().lower()
    if database not in DOCUMENT_DATABASES | RELATIONAL_DATABASES:
        raise ConfigError(f"database flag {database} not valid")

    try:
        http_port = int(env.get('HTTP_PORT', '8080'))
        grpc_port = int(env.get('GRPC_PORT', '50051'))
    except ValueError as e:
        raise ConfigError(f"invalid port: {e}") from e

    timeout = parse_duration(env.get('TIMEOUT', '30s'))
    if timeout <= 0:
        raise ConfigError("TIMEOUT must be positive")

    return Settings(
        dsn=dsn,
        jwt_secret=jwt_secret,
        version=env.get('VERSION', 'dev'),
        environment=env.get('ENVIRONMENT', 'local'),
        http_port=http_port,
        grpc_port=grpc_port,
        database=database,
        timeout=timeout,
        async_run=_parse_bool(env.get('ASYNC_RUN', 'false')),
        async_interval=parse_duration(env.get('ASYNC_INTERVAL', '60s')),
    )

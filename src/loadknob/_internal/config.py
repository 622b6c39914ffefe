"""Configuration, bounds and environment loading for loadknob."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum

from loadknob._internal.errors import ConfigError

MIN_DELAY_MS = 100
MAX_DELAY_MS = 10_000
DELAY_STEP_MS = 100

MIN_WORKERS = 1
MAX_WORKERS = 20

DEFAULT_DELAY_MS = 200
DEFAULT_WORKERS = 20
DEFAULT_TARGET_URI = "/sample.json"
DEFAULT_BASE_URL = "http://localhost:8080"


class ConfigField(str, Enum):
    """The knobs an operator can turn, keyed by the name the UI uses."""

    DELAY = "delay"
    WORKERS = "workers"
    URI = "uri"


@dataclass(frozen=True)
class HarnessConfig:
    """The three control knobs of a harness.

    Attributes:
        delay_ms: Pause each worker takes before every request.
        worker_count: Number of concurrent worker loops spawned by ``start``.
        target_uri: Endpoint to GET. Relative URIs resolve against the
            client's base URL.
    """

    delay_ms: int = DEFAULT_DELAY_MS
    worker_count: int = DEFAULT_WORKERS
    target_uri: str = DEFAULT_TARGET_URI

    def __post_init__(self) -> None:
        validate_delay(self.delay_ms)
        validate_worker_count(self.worker_count)
        validate_target_uri(self.target_uri)


@dataclass(frozen=True)
class ClientConfig:
    """Settings for the HTTP client behind the fetch capability.

    Attributes:
        base_url: Prefix for relative target URIs.
        pool_size: Maximum open connections overall (0 means unlimited).
        limit_per_host: Maximum open connections per host (0 means
            unlimited). Browsers typically cap this at 6.
        request_timeout: Total seconds allowed per request, or None for no
            timeout at all.
    """

    base_url: str = DEFAULT_BASE_URL
    pool_size: int = 100
    limit_per_host: int = 0
    request_timeout: float | None = None


def validate_delay(value: int) -> int:
    """Return *value* if it is a legal delay, else raise ConfigError."""
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"delay_ms must be an integer, got: {value!r}"
        raise ConfigError(msg)
    if not MIN_DELAY_MS <= value <= MAX_DELAY_MS:
        msg = f"delay_ms must be between {MIN_DELAY_MS} and {MAX_DELAY_MS}, got: {value}"
        raise ConfigError(msg)
    return value


def validate_worker_count(value: int) -> int:
    """Return *value* if it is a legal worker count, else raise ConfigError."""
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"worker_count must be an integer, got: {value!r}"
        raise ConfigError(msg)
    if not MIN_WORKERS <= value <= MAX_WORKERS:
        msg = f"worker_count must be between {MIN_WORKERS} and {MAX_WORKERS}, got: {value}"
        raise ConfigError(msg)
    return value


def validate_target_uri(value: str) -> str:
    """Return *value* stripped of surrounding whitespace, or raise ConfigError."""
    if not isinstance(value, str) or not value.strip():
        msg = f"target_uri must be a non-empty string, got: {value!r}"
        raise ConfigError(msg)
    return value.strip()


def coerce_int(value: object, name: str) -> int:
    """Parse an integer knob value the way the form's number inputs do.

    Accepts ints and numeric strings (surrounding whitespace allowed).

    Raises:
        ConfigError: If *value* is not an integer or integer string.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    msg = f"{name} must be an integer, got: {value!r}"
    raise ConfigError(msg)


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        msg = f"{name} must be an integer, got: {raw!r}"
        raise ConfigError(msg) from None


def load_config() -> tuple[HarnessConfig, ClientConfig]:
    """Load harness and client configuration from the environment.

    Environment variables:
        LOADKNOB_DELAY_MS: Initial delay in milliseconds (default: 200).
        LOADKNOB_WORKERS: Initial worker count (default: 20).
        LOADKNOB_URI: Initial target URI (default: /sample.json).
        LOADKNOB_BASE_URL: Base URL for relative URIs.
        LOADKNOB_POOL_SIZE: Total connection limit (default: 100).
        LOADKNOB_LIMIT_PER_HOST: Per-host connection limit (default: 0).
        LOADKNOB_TIMEOUT: Request timeout in seconds (default: none).

    Returns:
        Tuple of (HarnessConfig, ClientConfig).

    Raises:
        ConfigError: If an environment variable has an invalid value.
    """
    delay_ms = _env_int("LOADKNOB_DELAY_MS", DEFAULT_DELAY_MS)
    workers = _env_int("LOADKNOB_WORKERS", DEFAULT_WORKERS)
    pool_size = _env_int("LOADKNOB_POOL_SIZE", 100)
    limit_per_host = _env_int("LOADKNOB_LIMIT_PER_HOST", 0)

    if pool_size < 0:
        msg = f"LOADKNOB_POOL_SIZE must be >= 0, got: {pool_size}"
        raise ConfigError(msg)
    if limit_per_host < 0:
        msg = f"LOADKNOB_LIMIT_PER_HOST must be >= 0, got: {limit_per_host}"
        raise ConfigError(msg)

    timeout: float | None = None
    timeout_str = os.environ.get("LOADKNOB_TIMEOUT")
    if timeout_str:
        try:
            timeout = float(timeout_str)
        except ValueError:
            msg = f"LOADKNOB_TIMEOUT must be a number, got: {timeout_str!r}"
            raise ConfigError(msg) from None
        if timeout <= 0:
            msg = f"LOADKNOB_TIMEOUT must be positive, got: {timeout}"
            raise ConfigError(msg)

    harness = HarnessConfig(
        delay_ms=delay_ms,
        worker_count=workers,
        target_uri=os.environ.get("LOADKNOB_URI", DEFAULT_TARGET_URI),
    )
    client = ClientConfig(
        base_url=os.environ.get("LOADKNOB_BASE_URL", DEFAULT_BASE_URL),
        pool_size=pool_size,
        limit_per_host=limit_per_host,
        request_timeout=timeout,
    )
    return harness, client

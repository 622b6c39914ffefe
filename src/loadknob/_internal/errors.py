"""Custom exception hierarchy for loadknob."""

from __future__ import annotations


class LoadKnobError(Exception):
    """Base exception for all loadknob errors.

    A single ``except LoadKnobError`` clause catches every error the
    harness raises on purpose. Failed requests are never raised: they are
    recorded as failed outcomes instead.
    """


class ConfigError(LoadKnobError):
    """Raised when configuration is invalid or missing.

    Examples:
        - ``delay_ms`` outside ``[MIN_DELAY_MS, MAX_DELAY_MS]``.
        - A non-numeric value passed for a numeric knob.
        - An environment variable holding an unusable value.
    """


class EngineError(LoadKnobError):
    """Raised when the harness lifecycle is misused.

    Examples:
        - Changing the worker count or target URI while running.
        - Calling ``start()`` outside a running event loop.
    """

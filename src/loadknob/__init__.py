"""loadknob: paced, concurrent HTTP GET load with live counters."""

from __future__ import annotations

from loadknob._internal.config import ClientConfig, ConfigField, HarnessConfig
from loadknob._internal.errors import ConfigError, EngineError, LoadKnobError
from loadknob.engine.harness import Harness
from loadknob.engine.issuer import RequestIssuer, cache_bust
from loadknob.engine.protocol import Outcome
from loadknob.metrics.models import HarnessState, LatencySummary, StatsSnapshot
from loadknob.metrics.stats import StatsAggregator
from loadknob.transport.client import JsonClient

__version__ = "0.1.0"

__all__ = [
    "ClientConfig",
    "ConfigError",
    "ConfigField",
    "EngineError",
    "Harness",
    "HarnessConfig",
    "HarnessState",
    "JsonClient",
    "LatencySummary",
    "LoadKnobError",
    "Outcome",
    "RequestIssuer",
    "StatsAggregator",
    "StatsSnapshot",
    "cache_bust",
]

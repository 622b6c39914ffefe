"""Shared type aliases for loadknob."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from loadknob.engine.protocol import Outcome

# Decoded JSON document (dict, list, str, number, bool or None).
JsonValue = Any

# The fetch capability: GET a URI and report a tagged outcome.
FetchJson = Callable[[str], Awaitable["Outcome"]]

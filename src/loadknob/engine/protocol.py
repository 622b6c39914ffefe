"""Tagged request outcomes passed from the fetch capability to the stats."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from loadknob._internal.types import JsonValue


@dataclass(frozen=True)
class Outcome:
    """Result of one completed GET.

    Build instances with :meth:`success` or :meth:`failure` rather than
    setting ``ok`` by hand.

    Attributes:
        ok: True for a success, False for a request failure.
        payload: Decoded JSON body on success; on failure, whatever the
            fetch capability reported (error body, status dict or message).
        latency_ms: Wall time from send to completion, if measured.
    """

    ok: bool
    payload: JsonValue
    latency_ms: float | None = None

    @classmethod
    def success(cls, payload: JsonValue, latency_ms: float | None = None) -> Outcome:
        return cls(ok=True, payload=payload, latency_ms=latency_ms)

    @classmethod
    def failure(cls, payload: JsonValue, latency_ms: float | None = None) -> Outcome:
        return cls(ok=False, payload=payload, latency_ms=latency_ms)

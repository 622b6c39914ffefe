"""aiohttp-backed JSON GET capability that never raises on bad responses."""

from __future__ import annotations

import json
import time
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

import aiohttp

from loadknob._internal.config import ClientConfig
from loadknob._internal.logging import get_logger
from loadknob.engine.protocol import Outcome

if TYPE_CHECKING:
    from loadknob._internal.types import JsonValue

logger = get_logger("transport.client")


def _failure_payload(
    failure: str,
    *,
    status: int = 0,
    status_text: str = "",
    response: JsonValue = None,
) -> dict[str, JsonValue]:
    """Shape of a failed response: status, status_text, failure, response."""
    return {
        "status": status,
        "status_text": status_text,
        "failure": failure,
        "response": response,
    }


def _decode_body(raw: bytes, charset: str | None) -> tuple[JsonValue, bool]:
    """Decode a response body as JSON.

    Returns:
        ``(document, True)`` on success. Otherwise ``(text, False)``, where
        bytes that are invalid in the declared charset show up as U+FFFD.
    """
    try:
        text = raw.decode(charset or "utf-8")
    except (LookupError, UnicodeDecodeError):
        return raw.decode("utf-8", errors="replace"), False
    try:
        return json.loads(text), True
    except ValueError:
        return text, False


class JsonClient:
    """Async GET-and-decode client wrapping ``aiohttp.ClientSession``.

    ``fetch_json`` is the fetch capability the harness drives: it returns
    an :class:`Outcome` for every request and only lets cancellation
    escape. A non-2xx status, an undecodable body and a transport error
    all come back as failures.

    Attributes:
        config: Connection settings (base URL, pool limits, timeout).
    """

    def __init__(self, config: ClientConfig | None = None) -> None:
        self.config = config or ClientConfig()
        self._base_url = self.config.base_url.rstrip("/")
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> JsonClient:
        """Open the underlying aiohttp session."""
        connector = aiohttp.TCPConnector(
            limit=self.config.pool_size,
            limit_per_host=self.config.limit_per_host,
        )
        self._session = aiohttp.ClientSession(
            connector=connector,
            timeout=aiohttp.ClientTimeout(total=self.config.request_timeout),
            headers={"Accept": "application/json"},
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        """Close the underlying aiohttp session."""
        await self.aclose()

    async def aclose(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    @property
    def closed(self) -> bool:
        return self._session is None

    def resolve(self, uri: str) -> str:
        """Return *uri* unchanged if absolute, else prefixed with the base URL."""
        if urlsplit(uri).scheme in ("http", "https"):
            return uri
        if not uri.startswith("/"):
            uri = f"/{uri}"
        return f"{self._base_url}{uri}"

    async def fetch_json(self, uri: str) -> Outcome:
        """GET *uri* and decode the body as JSON.

        Args:
            uri: Absolute URL, or a path relative to the base URL.

        Returns:
            ``Outcome.success(body)`` for a 2xx JSON response, otherwise
            ``Outcome.failure(payload)`` where payload is a dict with keys
            ``status``, ``status_text``, ``failure`` and ``response``.

        Raises:
            RuntimeError: If the client is used outside ``async with``.
        """
        if self._session is None:
            msg = "JsonClient must be used as an async context manager"
            raise RuntimeError(msg)

        url = self.resolve(uri)
        start = time.monotonic()

        try:
            async with self._session.get(url) as resp:
                raw = await resp.read()
                charset = resp.charset
                status = resp.status
                reason = resp.reason or ""
        except aiohttp.ClientError as exc:
            latency_ms = (time.monotonic() - start) * 1000
            logger.debug("GET %s failed: %s", url, exc)
            return Outcome.failure(
                _failure_payload("transport", status_text=f"{type(exc).__name__}: {exc}"),
                latency_ms,
            )
        except TimeoutError:
            latency_ms = (time.monotonic() - start) * 1000
            logger.debug("GET %s timed out", url)
            return Outcome.failure(
                _failure_payload("transport", status_text="TimeoutError: request timed out"),
                latency_ms,
            )

        latency_ms = (time.monotonic() - start) * 1000

        body, decoded = _decode_body(raw, charset)

        if not 200 <= status < 300:
            return Outcome.failure(
                _failure_payload("error", status=status, status_text=reason, response=body),
                latency_ms,
            )
        if not decoded:
            return Outcome.failure(
                _failure_payload("parse", status=status, status_text=reason, response=body),
                latency_ms,
            )

        return Outcome.success(body, latency_ms)

"""Provider adapter protocol, HTTP transport and error taxonomy.

An adapter maps a provider-agnostic Transcript onto one chat-completion wire
format, sends exactly one request through an injected Transport, and maps
the reply back to a single assistant Message. Adapters never retry.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from daberu import DaberuError
from daberu.core.models import Message, Transcript

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TransportError(DaberuError):
    """The HTTP exchange itself failed (DNS, connect, timeout, TLS)."""


class ProviderError(DaberuError):
    """Base error for provider requests."""


class ProviderAuthError(ProviderError):
    """No API key was supplied for the provider."""


class ProviderTransportError(ProviderError):
    """The request never produced an HTTP response."""


class ProviderRequestError(ProviderError):
    """The request body could not be built from the transcript."""


class ProviderAPIError(ProviderError):
    """The provider answered with an error status or an unreadable body."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(f"API error ({status}): {message}")
        self.status = status
        self.message = message


class EmptyReplyError(ProviderError):
    """The reply contained no assistant text."""


class MalformedReplyError(ProviderError):
    """A 2xx reply whose JSON does not have the documented shape."""


class IncompleteReplyError(ProviderError):
    """The model stopped early (token limit, content filter, refusal)."""

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


@runtime_checkable
class Transport(Protocol):
    """Blocking request/response primitive used by adapters."""

    def send(self, url: str, headers: dict[str, str], body: bytes) -> tuple[int, bytes]:
        """POST ``body`` to ``url`` and return ``(status_code, body_bytes)``.

        Raises:
            TransportError: No HTTP response was received.
        """
        ...


class HttpxTransport:
    """Transport backed by ``httpx.post``."""

    def __init__(self, timeout: float = 120.0) -> None:
        self._timeout = timeout

    def send(self, url: str, headers: dict[str, str], body: bytes) -> tuple[int, bytes]:
        import httpx

        try:
            resp = httpx.post(url, headers=headers, content=body, timeout=self._timeout)
        except (httpx.HTTPError, OSError) as e:
            raise TransportError(f"Request to {url} failed: {e}") from e
        return resp.status_code, resp.content


# ---------------------------------------------------------------------------
# Adapter contract
# ---------------------------------------------------------------------------


@dataclass
class ProviderInfo:
    """Metadata about a provider."""

    name: str
    display_name: str
    api_key_env: str
    key_url: str = ""


def missing_key_error(info: ProviderInfo) -> ProviderAuthError:
    """Build the error raised when no API key reached the adapter."""
    message = (
        f"No API key configured for {info.display_name}.\n"
        f"Pass --{info.name}-api-key or set {info.api_key_env}."
    )
    if info.key_url:
        message += f"\nGet your key at: {info.key_url}"
    return ProviderAuthError(message)


@runtime_checkable
class ProviderAdapter(Protocol):
    """Contract shared by the OpenAI-style and Anthropic-style adapters."""

    @property
    def name(self) -> str:
        """Provider ID: 'openai' or 'anthropic'."""
        ...

    @property
    def info(self) -> ProviderInfo:
        """Provider metadata."""
        ...

    def send(
        self,
        transcript: Transcript,
        model: str,
        api_key: str | None,
        transport: Transport,
    ) -> Message:
        """Send the transcript and return the assistant reply.

        Raises:
            ProviderAuthError: ``api_key`` is missing.
            ProviderTransportError: The transport failed.
            ProviderAPIError: Non-2xx status or unparseable reply.
            EmptyReplyError: The reply carried no assistant text.
            MalformedReplyError: The reply JSON has an unexpected shape.
            IncompleteReplyError: The model stopped before finishing.
        """
        ...


def post_json(
    transport: Transport,
    url: str,
    headers: dict[str, str],
    payload: dict,
) -> dict:
    """Send ``payload`` as JSON and return the decoded 2xx reply.

    Shared by the adapters so both surface failures the same way.
    """
    try:
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    except UnicodeEncodeError as e:
        raise ProviderRequestError(f"Request text is not valid Unicode: {e}") from e
    log.debug("POST %s (%d bytes)", url, len(body))

    try:
        status, raw = transport.send(url, headers, body)
    except TransportError as e:
        raise ProviderTransportError(str(e)) from e

    text = raw.decode("utf-8", errors="replace")
    log.debug("Response status %d (%d bytes)", status, len(raw))

    if not 200 <= status < 300:
        raise ProviderAPIError(status, extract_error_message(text))

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ProviderAPIError(status, text) from e
    if not isinstance(data, dict):
        raise ProviderAPIError(status, text)
    return data


def extract_error_message(text: str) -> str:
    """Pull a human-readable message out of an error body, or return it raw.

    Both providers use ``{"error": {"message": "..."}}``.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return text
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str):
            return error
    return text

"""Transport - The default executor capability for AdminClient.

AdminClient only needs something with httpx.Client's ``send`` signature.
build_executor() returns an httpx.Client that honours the context
AdminClient.do binds to each request:

- a request whose context already ended is never sent;
- the response body stops streaming as soon as the context ends;
- configured headers are added to every request.

Deadlines additionally bound the blocking round trip through the per-request
timeout AdminClient.do derives from the client timeout and the context.
"""

from __future__ import annotations

import ssl
from typing import Generator, Iterator, Protocol

import httpx

from ghost_admin.context import Context
from ghost_admin.errors import ConfigError
from ghost_admin.models import ClientConfig

CONTEXT_EXTENSION = "context"


class Executor(Protocol):
    """Performs one HTTP round trip. httpx.Client satisfies this."""

    def send(self, request: httpx.Request, *, stream: bool = False) -> httpx.Response: ...


def _context_of(request: httpx.Request) -> Context | None:
    ctx = request.extensions.get(CONTEXT_EXTENSION)
    return ctx if isinstance(ctx, Context) else None


class _ContextStream(httpx.SyncByteStream):
    """Response stream that stops yielding once its context ends."""

    def __init__(self, stream: httpx.SyncByteStream, ctx: Context, request: httpx.Request) -> None:
        self._stream = stream
        self._ctx = ctx
        self._request = request

    def __iter__(self) -> Iterator[bytes]:
        for chunk in self._stream:
            err = self._ctx.err()
            if err is not None:
                raise httpx.ReadError(str(err), request=self._request)
            yield chunk

    def close(self) -> None:
        self._stream.close()


class ContextTransport(httpx.BaseTransport):
    """Wraps another transport and checks the request's bound context."""

    def __init__(self, transport: httpx.BaseTransport | None = None) -> None:
        self._transport = transport or httpx.HTTPTransport()

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        ctx = _context_of(request)
        if ctx is not None:
            err = ctx.err()
            if err is not None:
                raise httpx.RequestError(f"request not sent: {err}", request=request)

        response = self._transport.handle_request(request)
        if ctx is None:
            return response

        return httpx.Response(
            status_code=response.status_code,
            headers=response.headers,
            stream=_ContextStream(response.stream, ctx, request),  # type: ignore[arg-type]
            extensions=response.extensions,
        )

    def close(self) -> None:
        self._transport.close()


class StaticHeaders(httpx.Auth):
    """Adds fixed headers (e.g. Authorization) to every request sent.

    httpx.Client.send() does not merge client default headers into requests
    built elsewhere, so they are applied here instead. Headers already on
    the request win.
    """

    def __init__(self, headers: dict[str, str]) -> None:
        self._headers = dict(headers)

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        for name, value in self._headers.items():
            request.headers.setdefault(name, value)
        yield request


def _build_verify(config: ClientConfig) -> ssl.SSLContext | bool:
    """Build the ``verify`` argument for the httpx transport.

    An SSL context is only created when a CA bundle or client certificate
    is configured; otherwise httpx defaults apply. Unreadable TLS files
    raise ConfigError.
    """
    if not config.ca_bundle and not config.cert:
        return config.verify_ssl

    ssl_context = ssl.create_default_context()
    try:
        if config.ca_bundle:
            ssl_context.load_verify_locations(config.ca_bundle)
        elif not config.verify_ssl:
            ssl_context.check_hostname = False
            ssl_context.verify_mode = ssl.CERT_NONE

        # Client certificate (mTLS); ClientConfig guarantees cert and key come together
        if config.cert and config.key:
            ssl_context.load_cert_chain(config.cert, config.key)
    except OSError as e:
        raise ConfigError(f"failed to load TLS files for {config.base_url}: {e}") from e

    return ssl_context


def build_executor(
    config: ClientConfig,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """Create an httpx.Client executor for the given config.

    Args:
        config: Client configuration (headers, timeout, TLS).
        transport: Inner transport to wrap. Defaults to httpx.HTTPTransport
                   built from the config's TLS settings.

    Returns:
        An httpx.Client; the caller owns it and must close it.
    """
    if transport is None:
        transport = httpx.HTTPTransport(verify=_build_verify(config))
    return httpx.Client(
        transport=ContextTransport(transport),
        auth=StaticHeaders(config.headers),
        timeout=config.timeout,
    )

"""AdminClient - Builds and executes requests against the Ghost Admin API.

The client validates a path-free https base address once, resolves relative
paths against it, and runs each request through an injected executor (see
ghost_admin.transport). Responses are classified purely by status range and
delivered to a caller-supplied destination.

Usage:
    client = AdminClient("https://blog.example.com", executor)
    request = client.new_request("GET", "ghost/api/admin/posts/")
    dest = Decoded(PostsEnvelope)
    ctx, cancel = with_timeout(background(), 10.0)
    try:
        response = client.do(ctx, request, dest)
    finally:
        cancel()
"""

from __future__ import annotations

import logging
import re
from concurrent.futures import Future
from threading import Event, Thread
from typing import Any, Iterator
from urllib.parse import urlsplit

import httpx
import pydantic_core
from pydantic import BaseModel, ValidationError

from ghost_admin.context import Context, background
from ghost_admin.destination import DestinationKind, resolve_destination
from ghost_admin.errors import (
    APIError,
    ConfigError,
    ContextError,
    DecodingError,
    GhostError,
    InvalidArgument,
    SerializationError,
    TransportError,
)
from ghost_admin.models import ClientConfig
from ghost_admin.transport import CONTEXT_EXTENSION, Executor, build_executor

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "ghost-admin"

# RFC 7230 token: the only characters allowed in a method name
_METHOD_TOKEN = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")


def parse_base_url(base_url: str) -> httpx.URL:
    """Validate a base address and return it with a trailing slash path.

    The address must be absolute, use https and carry no path at all (not
    even "/"), e.g. ``https://blog.example.com``.

    Raises:
        ConfigError: If the address is malformed, not https, or has a path.
    """
    try:
        url = httpx.URL(base_url)
    except httpx.InvalidURL as e:
        raise ConfigError(f"failed to parse {base_url!r} as a url: {e}") from e

    if url.scheme != "https":
        raise ConfigError(f"base url must use the https scheme, got {base_url!r}")
    if not url.host:
        raise ConfigError(f"base url must include a host, got {base_url!r}")

    # httpx reports an empty path as "/", so inspect the text itself
    if urlsplit(base_url).path:
        raise ConfigError(f"base url must omit the path and trailing slash, got {base_url!r}")

    return url.copy_with(path="/")


def _encode_body(body: Any) -> bytes:
    """Encode a request body as JSON without escaping HTML characters.

    Pydantic models drop None fields, which stand in for unset optional
    fields. Any other value is encoded as-is.
    """
    try:
        if isinstance(body, BaseModel):
            return body.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")
        return pydantic_core.to_json(body)
    except (pydantic_core.PydanticSerializationError, TypeError, ValueError) as e:
        raise SerializationError(f"failed to encode request body: {e}") from e


class AdminClient:
    """Manages communication with the Ghost Admin API.

    The executor is stored as-is and must already handle authentication and
    TLS. It is shared with the caller, who keeps ownership unless the client
    was created by from_config() without one.
    """

    def __init__(self, base_url: str, executor: Executor) -> None:
        """Initialize the client.

        Args:
            base_url: https root of the instance without a path,
                      e.g. "https://blog.example.com".
            executor: Object performing the HTTP round trip (e.g. httpx.Client).

        Raises:
            ConfigError: If base_url is invalid.
        """
        self.base_url = parse_base_url(base_url)
        self.executor = executor
        self.user_agent = DEFAULT_USER_AGENT
        self._owns_executor = False

    @classmethod
    def from_config(cls, config: ClientConfig, executor: Executor | None = None) -> "AdminClient":
        """Create a client from configuration.

        If no executor is given, one is built with build_executor() and
        closed by close().
        """
        owns_executor = executor is None
        if executor is None:
            executor = build_executor(config)
        try:
            client = cls(config.base_url, executor)
        except ConfigError:
            if owns_executor:
                executor.close()  # type: ignore[attr-defined]
            raise
        client._owns_executor = owns_executor
        if config.user_agent is not None:
            client.user_agent = config.user_agent
        return client

    def __enter__(self) -> "AdminClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close the executor if this client created it."""
        if self._owns_executor:
            self.executor.close()  # type: ignore[attr-defined]

    def new_request(self, method: str, url: str, body: Any = None) -> httpx.Request:
        """Build an API request relative to base_url.

        Args:
            method: HTTP method token. An empty string means GET.
            url: Path relative to base_url, without a leading slash.
            body: Optional value to send JSON-encoded.

        Returns:
            The request, not yet sent.

        Raises:
            ConfigError: If base_url no longer ends in a slash.
            InvalidArgument: If url starts with a slash.
            SerializationError: If body cannot be JSON-encoded.
            TransportError: If the method or resolved address is malformed.
        """
        if not self.base_url.path.endswith("/"):
            raise ConfigError(f"base_url must have a trailing slash, but {str(self.base_url)!r} does not")

        # A leading slash would resolve against the host root and drop the base path
        if url.startswith("/"):
            raise InvalidArgument(f"relative url must not start with '/', got {url!r}")

        try:
            target = self.base_url.join(url)
        except httpx.InvalidURL as e:
            raise TransportError(f"invalid request url {url!r}: {e}") from e

        content: bytes | None = None
        if body is not None:
            content = _encode_body(body)

        method = method or "GET"
        if not _METHOD_TOKEN.fullmatch(method):
            raise TransportError(f"invalid method {method!r}")

        headers: dict[str, str] = {}
        if content is not None:
            headers["Content-Type"] = "application/json"
        if self.user_agent:
            headers["User-Agent"] = self.user_agent

        try:
            return httpx.Request(method, target, headers=headers, content=content)
        except (httpx.InvalidURL, UnicodeEncodeError) as e:
            raise TransportError(f"failed to build request: {e}") from e

    def do(self, ctx: Context | None, request: httpx.Request, v: Any = None) -> httpx.Response:
        """Send a request and deliver the response body to ``v``.

        If ``v`` is a byte sink (has ``write``), the raw body is copied to it
        without decoding. If it is a Decoded holder, the body is decoded as
        JSON into it; an empty body leaves it untouched. The response body is
        always closed before returning.

        Cancelling ``ctx`` while the executor is still waiting for the
        response makes this call return at once with the context's error.

        Args:
            ctx: Context bounding the call. Required.
            request: A request from new_request(). Consumed by this call.
            v: Optional destination (ByteSink or Decoded).

        Returns:
            The response, for status and header inspection.

        Raises:
            InvalidArgument: If ctx is None or v is not a valid destination.
            ContextError: If ctx ended before the response was received, or
                the round trip or body read failed after ctx ended.
            TransportError: If the round trip or body read failed otherwise.
            APIError: If the status is outside [200, 300).
            DecodingError: If a non-empty body cannot be decoded into v.
        """
        if ctx is None:
            raise InvalidArgument("context must not be None")
        kind = resolve_destination(v)

        extensions = {**request.extensions, CONTEXT_EXTENSION: ctx}
        timeout = _request_timeout(self.executor, request, ctx.remaining())
        if timeout is not None:
            extensions["timeout"] = timeout
        request.extensions = extensions

        logger.debug("Sending %s %s", request.method, request.url)
        try:
            response = self._send(ctx, request)
        except ContextError:
            raise
        except Exception as e:
            raise _failure(ctx, f"{request.method} {request.url} failed", e) from e

        err = ctx.err()
        if err is not None:
            response.close()
            raise err

        try:
            logger.debug("Received %d for %s %s", response.status_code, request.method, request.url)
            if not 200 <= response.status_code < 300:
                raise APIError(response)

            if kind is DestinationKind.BYTES:
                for chunk in _body_chunks(ctx, response):
                    v.write(chunk)
            elif kind is DestinationKind.JSON:
                data = b"".join(_body_chunks(ctx, response))
                # Empty body: nothing to decode
                if data.strip():
                    try:
                        v.decode(data)
                    except ValidationError as e:
                        raise DecodingError(f"failed to decode response body: {e}", response) from e
        finally:
            response.close()

        return response

    def _send(self, ctx: Context, request: httpx.Request) -> httpx.Response:
        """Run the round trip, giving up as soon as ctx ends.

        The executor call runs on a worker thread so the caller can stop
        waiting when the context is cancelled. A response that arrives after
        the caller gave up is closed.
        """
        if ctx is background():
            return self.executor.send(request, stream=True)

        outcome: Future[httpx.Response] = Future()

        def run() -> None:
            try:
                outcome.set_result(self.executor.send(request, stream=True))
            except BaseException as e:
                outcome.set_exception(e)

        wake = Event()
        stop = ctx.on_done(wake.set)
        outcome.add_done_callback(lambda _: wake.set())
        Thread(target=run, name="ghost-admin-send", daemon=True).start()
        try:
            while not outcome.done():
                err = ctx.err()
                if err is not None:
                    outcome.add_done_callback(_close_abandoned)
                    raise err
                wake.wait(ctx.remaining())
        finally:
            stop()

        return outcome.result()


def _request_timeout(executor: Any, request: httpx.Request, remaining: float | None) -> dict[str, Any] | None:
    """Per-request httpx timeouts, with every phase capped at ``remaining``.

    Starts from the request's own timeout, else the executor's configured
    one (httpx.Client.timeout). Returns None when neither is known and the
    context has no deadline.
    """
    timeout = request.extensions.get("timeout")
    if timeout is None:
        configured = getattr(executor, "timeout", None)
        if isinstance(configured, httpx.Timeout):
            timeout = configured.as_dict()
    if timeout is None:
        return None if remaining is None else httpx.Timeout(remaining).as_dict()
    if remaining is None:
        return dict(timeout)
    return {phase: remaining if limit is None else min(limit, remaining) for phase, limit in timeout.items()}


def _body_chunks(ctx: Context, response: httpx.Response) -> Iterator[bytes]:
    """Yield the response body, classifying read failures like the round trip."""
    chunks = response.iter_bytes()
    while True:
        try:
            chunk = next(chunks)
        except StopIteration:
            return
        except Exception as e:
            raise _failure(ctx, "reading response body failed", e) from e
        err = ctx.err()
        if err is not None:
            raise err
        yield chunk


def _failure(ctx: Context, message: str, cause: Exception) -> GhostError:
    # When the context ended, its error says more than the transport's
    err = ctx.err()
    if err is not None:
        return err
    return TransportError(f"{message}: {cause}")


def _close_abandoned(outcome: Future[httpx.Response]) -> None:
    if outcome.exception() is None:
        outcome.result().close()

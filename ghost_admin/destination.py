"""Response destinations for AdminClient.do.

A destination is either a raw byte sink (anything with ``write(bytes)``,
e.g. io.BytesIO or a binary file) that receives the body verbatim, or a
Decoded[T] holder that receives the body validated as JSON into T.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from pydantic import TypeAdapter

from ghost_admin.errors import InvalidArgument

T = TypeVar("T")


@runtime_checkable
class ByteSink(Protocol):
    """Anything that accepts raw response bytes."""

    def write(self, data: bytes, /) -> Any: ...


class Decoded(Generic[T]):
    """Holds the JSON-decoded response body.

    ``value`` keeps its initial value until a non-empty body is decoded.

    Usage:
        dest = Decoded(PostsEnvelope)
        client.do(ctx, request, dest)
        dest.value.posts
    """

    def __init__(self, type_: Any, value: T | None = None) -> None:
        self.type_ = type_
        self.value = value
        self._adapter: TypeAdapter[T] = TypeAdapter(type_)

    def decode(self, data: bytes) -> None:
        """Validate ``data`` as JSON into ``type_`` and store it in ``value``.

        Raises:
            pydantic.ValidationError: If the JSON is malformed or has the wrong shape.
        """
        self.value = self._adapter.validate_json(data)

    def __repr__(self) -> str:
        return f"Decoded({self.type_!r}, value={self.value!r})"


class DestinationKind(str, Enum):
    """How a response body is delivered."""

    NONE = "none"  # Body is not read
    BYTES = "bytes"  # Copied verbatim to a ByteSink
    JSON = "json"  # Decoded into a Decoded holder


def resolve_destination(dest: Any) -> DestinationKind:
    """Classify a destination once per call.

    Byte sinks win over JSON decoding, so an object that can be written to
    never has its body interpreted.

    Raises:
        InvalidArgument: If dest is neither None, a ByteSink nor a Decoded.
    """
    if dest is None:
        return DestinationKind.NONE
    if isinstance(dest, ByteSink):
        return DestinationKind.BYTES
    if isinstance(dest, Decoded):
        return DestinationKind.JSON
    raise InvalidArgument(
        f"destination must be a byte sink or a Decoded holder, got {type(dest).__name__}"
    )

"""Cancellable contexts for request execution.

A Context carries a cancellation signal and an optional deadline across a
single call. Contexts form a tree: ending a parent ends every child derived
from it, and a child's deadline is never later than its parent's.

Usage:
    ctx, cancel = with_timeout(background(), 5.0)
    try:
        client.do(ctx, request, dest)
    finally:
        cancel()
"""

from __future__ import annotations

import time
from threading import Lock
from typing import Callable
from weakref import WeakSet

from ghost_admin.errors import Canceled, ContextError, DeadlineExceeded

CancelFunc = Callable[[], None]


class Context:
    """A cancellation signal with an optional monotonic deadline.

    Do not construct directly; use background(), with_cancel(),
    with_timeout() or with_deadline().
    """

    def __init__(self, parent: Context | None = None, deadline: float | None = None) -> None:
        self._parent = parent
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self._deadline = deadline
        self._lock = Lock()
        self._err_type: type[ContextError] | None = None
        self._children: WeakSet[Context] = WeakSet()
        self._callbacks: list[Callable[[], None]] = []
        if parent is not None:
            parent._attach(self)

    @property
    def deadline(self) -> float | None:
        """Effective deadline on the time.monotonic() clock, or None."""
        return self._deadline

    def remaining(self) -> float | None:
        """Seconds left until the deadline (never negative), or None."""
        if self._deadline is None:
            return None
        return max(self._deadline - time.monotonic(), 0.0)

    def err(self) -> ContextError | None:
        """Return why the context ended, or None while it is still live.

        A fresh exception instance is returned on every call so callers can
        raise it without sharing traceback state.
        """
        with self._lock:
            if self._err_type is not None:
                return self._err_type()

        err_type: type[ContextError] | None = None
        if self._parent is not None:
            parent_err = self._parent.err()
            if parent_err is not None:
                err_type = type(parent_err)
        if err_type is None and self._deadline is not None and time.monotonic() >= self._deadline:
            err_type = DeadlineExceeded
        if err_type is None:
            return None

        self._end(err_type)
        with self._lock:
            return self._err_type()  # type: ignore[misc]

    def done(self) -> bool:
        return self.err() is not None

    def on_done(self, callback: Callable[[], None]) -> CancelFunc:
        """Run ``callback`` once, from the thread that ends the context.

        Cancellation runs it immediately. A deadline runs it only once an
        expired deadline is observed through err(), so blocking waiters
        should also wait no longer than remaining(). If the context has
        already ended, the callback runs before on_done returns.

        Returns:
            A function that unregisters the callback if it has not run yet.
        """
        with self._lock:
            ended = self._err_type is not None
            if not ended:
                self._callbacks.append(callback)
        if ended:
            callback()

        def stop() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return stop

    def _attach(self, child: Context) -> None:
        with self._lock:
            err_type = self._err_type
            if err_type is None:
                self._children.add(child)
        if err_type is not None:
            child._end(err_type)

    def _end(self, err_type: type[ContextError]) -> None:
        with self._lock:
            if self._err_type is not None:
                return
            self._err_type = err_type
            children = list(self._children)
            callbacks = self._callbacks
            self._children = WeakSet()
            self._callbacks = []

        for child in children:
            child._end(err_type)
        for callback in callbacks:
            callback()

    def _cancel(self) -> None:
        self._end(Canceled)


class _BackgroundContext(Context):
    """Root context: never cancelled, no deadline."""

    def err(self) -> ContextError | None:
        return None

    def on_done(self, callback: Callable[[], None]) -> CancelFunc:
        return lambda: None

    def _attach(self, child: Context) -> None:
        pass

    def _cancel(self) -> None:
        pass


_BACKGROUND = _BackgroundContext()


def background() -> Context:
    """Return the root context."""
    return _BACKGROUND


def with_cancel(parent: Context) -> tuple[Context, CancelFunc]:
    """Derive a context that ends when cancel() is called or the parent ends."""
    ctx = Context(parent)
    return ctx, ctx._cancel


def with_deadline(parent: Context, deadline: float) -> tuple[Context, CancelFunc]:
    """Derive a context that ends at ``deadline`` (time.monotonic() clock)."""
    ctx = Context(parent, deadline)
    return ctx, ctx._cancel


def with_timeout(parent: Context, timeout: float) -> tuple[Context, CancelFunc]:
    """Derive a context that ends ``timeout`` seconds from now."""
    return with_deadline(parent, time.monotonic() + timeout)

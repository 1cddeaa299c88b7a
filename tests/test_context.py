"""Tests for cancellable contexts."""

import threading
import time

import pytest

from ghost_admin.context import background, with_cancel, with_deadline, with_timeout
from ghost_admin.errors import Canceled, ContextError, DeadlineExceeded


class TestBackground:
    def test_never_done(self) -> None:
        ctx = background()
        assert ctx.err() is None
        assert not ctx.done()
        assert ctx.deadline is None
        assert ctx.remaining() is None

    def test_singleton(self) -> None:
        assert background() is background()


class TestWithCancel:
    def test_live_until_cancelled(self) -> None:
        ctx, cancel = with_cancel(background())
        assert ctx.err() is None
        cancel()
        assert isinstance(ctx.err(), Canceled)
        assert ctx.done()

    def test_cancel_is_idempotent(self) -> None:
        ctx, cancel = with_cancel(background())
        cancel()
        cancel()
        assert isinstance(ctx.err(), Canceled)

    def test_parent_cancel_propagates(self) -> None:
        parent, cancel_parent = with_cancel(background())
        child, _ = with_cancel(parent)
        cancel_parent()
        assert isinstance(child.err(), Canceled)

    def test_child_cancel_does_not_affect_parent(self) -> None:
        parent, _ = with_cancel(background())
        child, cancel_child = with_cancel(parent)
        cancel_child()
        assert parent.err() is None
        assert child.done()

    def test_fresh_error_each_call(self) -> None:
        """Each err() is a new instance, safe to raise independently."""
        ctx, cancel = with_cancel(background())
        cancel()
        assert ctx.err() is not ctx.err()

    def test_cancel_from_other_thread(self) -> None:
        ctx, cancel = with_cancel(background())
        thread = threading.Thread(target=cancel)
        thread.start()
        thread.join(timeout=2.0)
        assert isinstance(ctx.err(), Canceled)

    def test_errors_are_context_errors(self) -> None:
        ctx, cancel = with_cancel(background())
        cancel()
        with pytest.raises(ContextError, match="context canceled"):
            raise ctx.err()


class TestDeadlines:
    def test_expired_timeout(self) -> None:
        ctx, _ = with_timeout(background(), 0.0)
        assert isinstance(ctx.err(), DeadlineExceeded)
        assert ctx.remaining() == 0.0

    def test_future_timeout_is_live(self) -> None:
        ctx, _ = with_timeout(background(), 60.0)
        assert ctx.err() is None
        assert 0 < ctx.remaining() <= 60.0

    def test_deadline_error_latched(self) -> None:
        """Once expired, a later cancel() does not change the reported error."""
        ctx, cancel = with_timeout(background(), 0.0)
        assert isinstance(ctx.err(), DeadlineExceeded)
        cancel()
        assert isinstance(ctx.err(), DeadlineExceeded)

    def test_cancel_before_deadline(self) -> None:
        ctx, cancel = with_timeout(background(), 60.0)
        cancel()
        assert isinstance(ctx.err(), Canceled)

    def test_child_deadline_capped_by_parent(self) -> None:
        parent, _ = with_timeout(background(), 1.0)
        child, _ = with_timeout(parent, 60.0)
        assert child.deadline == parent.deadline

    def test_child_keeps_earlier_deadline(self) -> None:
        parent, _ = with_timeout(background(), 60.0)
        child, _ = with_timeout(parent, 1.0)
        assert child.deadline < parent.deadline

    def test_parent_deadline_ends_cancel_child(self) -> None:
        parent, _ = with_deadline(background(), time.monotonic() - 1.0)
        child, _ = with_cancel(parent)
        assert isinstance(child.err(), DeadlineExceeded)


class TestOnDone:
    def test_runs_on_cancel(self) -> None:
        ctx, cancel = with_cancel(background())
        calls = []
        ctx.on_done(lambda: calls.append("done"))
        assert calls == []
        cancel()
        cancel()
        assert calls == ["done"]

    def test_runs_on_parent_cancel(self) -> None:
        parent, cancel_parent = with_cancel(background())
        child, _ = with_cancel(parent)
        calls = []
        child.on_done(lambda: calls.append("done"))
        cancel_parent()
        assert calls == ["done"]
        assert isinstance(child.err(), Canceled)

    def test_runs_immediately_when_already_ended(self) -> None:
        ctx, cancel = with_cancel(background())
        cancel()
        calls = []
        ctx.on_done(lambda: calls.append("done"))
        assert calls == ["done"]

    def test_child_of_cancelled_parent_starts_ended(self) -> None:
        parent, cancel_parent = with_cancel(background())
        cancel_parent()
        child, _ = with_cancel(parent)
        calls = []
        child.on_done(lambda: calls.append("done"))
        assert calls == ["done"]

    def test_stop_unregisters(self) -> None:
        ctx, cancel = with_cancel(background())
        calls = []
        stop = ctx.on_done(lambda: calls.append("done"))
        stop()
        cancel()
        assert calls == []

    def test_expired_deadline_runs_callback_when_observed(self) -> None:
        ctx, _ = with_timeout(background(), 0.0)
        calls = []
        ctx.on_done(lambda: calls.append("done"))
        assert isinstance(ctx.err(), DeadlineExceeded)
        assert calls == ["done"]

    def test_wakes_waiter_in_other_thread(self) -> None:
        ctx, cancel = with_cancel(background())
        woken = threading.Event()
        ctx.on_done(woken.set)
        timer = threading.Timer(0.05, cancel)
        timer.start()
        assert woken.wait(timeout=2.0)
        timer.join()

    def test_background_never_calls_back(self) -> None:
        calls = []
        stop = background().on_done(lambda: calls.append("done"))
        stop()
        assert calls == []

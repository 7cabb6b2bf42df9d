"""
Tests for CallContext deadlines and cancellation.
"""
import time

import pytest

from apps.providers.base.context import MIN_REQUEST_TIMEOUT, CallContext, ensure_context
from apps.providers.base.exceptions import CallAbortedError, CallCancelledError, DeadlineExceededError


def test_unbounded_context():
    context = CallContext()
    assert context.remaining() is None
    assert context.request_timeout(30) == 30
    assert not context.done
    context.check()


def test_child_inherits_earlier_parent_deadline():
    parent = CallContext.with_timeout(1)
    child = parent.child(timeout=60)
    assert child.deadline == parent.deadline


def test_child_keeps_its_own_shorter_deadline():
    parent = CallContext.with_timeout(60)
    child = parent.child(timeout=1)
    assert child.deadline < parent.deadline


def test_cancelling_parent_cancels_child_but_not_the_reverse():
    parent = CallContext()
    child = parent.child()
    sibling = parent.child()

    child.cancel()
    assert child.cancelled
    assert not parent.cancelled
    assert not sibling.cancelled

    parent.cancel()
    assert sibling.cancelled


def test_check_raises_for_cancellation_before_deadline():
    context = CallContext.with_timeout(0)
    context.cancel()
    with pytest.raises(CallCancelledError):
        context.check()


def test_check_raises_when_deadline_passed():
    context = CallContext.with_timeout(0.01)
    time.sleep(0.02)
    assert context.expired
    with pytest.raises(DeadlineExceededError) as exc_info:
        context.check()
    assert isinstance(exc_info.value, CallAbortedError)


def test_request_timeout_is_capped_by_deadline():
    context = CallContext.with_timeout(2)
    assert context.request_timeout(30) <= 2
    assert context.request_timeout(0.5) == 0.5


def test_request_timeout_never_zero():
    context = CallContext.with_timeout(0)
    assert context.request_timeout(30) == MIN_REQUEST_TIMEOUT


def test_ensure_context():
    existing = CallContext()
    assert ensure_context(existing) is existing
    assert isinstance(ensure_context(None), CallContext)

"""Tests for pke_vsphere.errors."""

from __future__ import annotations

from pke_vsphere.errors import (
    ClusterNotFoundError,
    CombinedError,
    FatalActivityError,
    PKEError,
    ValidationError,
    combine,
    error_message,
    is_not_found,
    is_retriable,
    unwrap_error,
)


class TestIsNotFound:
    def test_direct(self):
        assert is_not_found(ClusterNotFoundError(1))

    def test_wrapped(self):
        outer = PKEError("outer")
        outer.__cause__ = ClusterNotFoundError(1)
        assert is_not_found(outer)

    def test_other_errors(self):
        assert not is_not_found(PKEError("x"))
        assert not is_not_found(ValueError("x"))
        assert not is_not_found(None)


class TestRetriable:
    def test_classification(self):
        assert not is_retriable(ValidationError("bad"))
        assert not is_retriable(FatalActivityError("fatal"))
        assert is_retriable(PKEError("transient"))
        assert is_retriable(OSError("io"))


class TestCombine:
    def test_none(self):
        assert combine([None, None]) is None
        assert combine([]) is None

    def test_single_error_returned_as_is(self):
        err = ValueError("one")
        assert combine([None, err]) is err

    def test_several_errors(self):
        a, b = ValueError("a"), ValueError("b")
        err = combine([a, None, b])
        assert isinstance(err, CombinedError)
        assert err.errors == [a, b]
        assert str(err) == "a; b"


class TestErrorMessage:
    def test_unwrap_to_innermost(self):
        inner = OSError("connection refused")
        middle = RuntimeError("activity failed")
        middle.__cause__ = inner
        assert unwrap_error(middle) is inner
        assert error_message(middle) == "connection refused"

    def test_own_errors_keep_their_message(self):
        err = PKEError('creating node "n1": boom')
        err.__cause__ = RuntimeError("boom")
        assert error_message(err) == 'creating node "n1": boom'

    def test_empty_message_falls_back_to_type(self):
        assert error_message(TimeoutError()) == "TimeoutError"

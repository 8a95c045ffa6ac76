"""
Unit tests for SDK error types.
"""

import pytest

from etcd_sdk.errors import (
    AlreadyExistsError,
    DecodeError,
    EtcdSdkError,
    NotFoundError,
    StoreError,
    StoreTimeoutError,
)


class TestErrors:
    """Tests for the error hierarchy."""

    def test_codes(self):
        """Each error carries a programmatic code."""
        assert NotFoundError("/k").code == "NOT_FOUND"
        assert AlreadyExistsError("/k").code == "ALREADY_EXISTS"
        assert DecodeError("bad").code == "DECODE_ERROR"
        assert StoreTimeoutError("slow").code == "STORE_TIMEOUT"

    def test_hierarchy(self):
        """All errors share the SDK base; timeouts are store errors."""
        assert issubclass(NotFoundError, EtcdSdkError)
        assert issubclass(StoreTimeoutError, StoreError)

    def test_messages(self):
        """Default messages are short and stable."""
        assert str(NotFoundError("/k")) == "not found"
        assert str(AlreadyExistsError("/k")) == "already exists"

    def test_with_stage_keeps_class_and_details(self):
        """Staged copies keep the root cause class and context."""
        err = NotFoundError("/api7/foo/1")

        staged = err.with_stage("failed to get data")

        assert isinstance(staged, NotFoundError)
        assert staged is not err
        assert staged.key == "/api7/foo/1"
        assert str(staged) == "failed to get data: not found"
        assert str(err) == "not found"

    def test_with_stage_nests(self):
        """Stages stack outermost first."""
        err = DecodeError("failed to json unmarshal: bad").with_stage("failed to bind")

        staged = err.with_stage("failed to get data")

        assert str(staged) == "failed to get data: failed to bind: failed to json unmarshal: bad"

    def test_with_stage_chains_cause(self):
        """Raising a staged error from the original keeps the cause."""
        err = StoreError("connection refused")

        with pytest.raises(StoreError) as exc_info:
            try:
                raise err
            except StoreError as e:
                raise e.with_stage("failed to create") from e

        assert exc_info.value.__cause__ is err

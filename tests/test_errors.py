"""Tests for append error classification."""

from concurrent.futures import CancelledError

import pytest

from commandlog.errors import (
    ClientClosedError,
    CommandLogError,
    CommandTopicClosedError,
    InterruptedFailure,
    NotAssignedError,
    PollFailure,
    SendFailure,
    SerializationError,
    UnknownTopicOrPartitionError,
    WakeupError,
    classify_send_error,
)


class TestClassifySendError:
    """Test classify_send_error."""

    @pytest.mark.parametrize("error", [
        UnknownTopicOrPartitionError("missing"),
        SerializationError("bad key"),
        ClientClosedError("closed"),
        SendFailure("already wrapped"),
    ])
    def test_known_errors_unchanged(self, error):
        """Test classified errors pass through as the same object."""
        assert classify_send_error(error) is error

    @pytest.mark.parametrize("error", [CancelledError(), InterruptedError()])
    def test_interrupted(self, error):
        """Test cancelled and interrupted waits."""
        assert isinstance(classify_send_error(error), InterruptedFailure)

    def test_other_errors_wrapped(self):
        """Test anything else becomes SendFailure with a cause."""
        error = OSError("no space left on device")

        failure = classify_send_error(error)

        assert isinstance(failure, SendFailure)
        assert failure.cause is error
        assert "no space left" in str(failure)


class TestHierarchy:
    """Test the error hierarchy."""

    def test_poll_failures(self):
        """Test read-side errors share a base."""
        assert issubclass(WakeupError, PollFailure)
        assert issubclass(NotAssignedError, PollFailure)

    def test_closed_command_topic(self):
        """Test the closed command topic error is a client closed error."""
        assert issubclass(CommandTopicClosedError, ClientClosedError)

    def test_single_root(self):
        """Test every error derives from CommandLogError."""
        for cls in (SendFailure, InterruptedFailure, PollFailure, SerializationError,
                    UnknownTopicOrPartitionError, ClientClosedError):
            assert issubclass(cls, CommandLogError)

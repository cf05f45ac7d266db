"""
Error types raised by commandlog.

All failures surfaced by the command topic and its clients belong to the
closed hierarchy rooted at CommandLogError. Append failures are funnelled
through classify_send_error so callers only ever see one of the documented
kinds.
"""

from concurrent.futures import CancelledError
from typing import Optional


class CommandLogError(Exception):
    """Base class for every failure raised by commandlog."""
    pass


class SendFailure(CommandLogError):
    """
    An append could not be durably committed.

    The underlying error is available as ``__cause__`` and ``cause``.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class InterruptedFailure(CommandLogError):
    """Waiting for an append acknowledgment was interrupted. Never retryable."""
    pass


class PollFailure(CommandLogError):
    """Failure of a read-side operation (poll, seek, position, end offsets)."""
    pass


class WakeupError(PollFailure):
    """A blocking poll was aborted by wakeup()."""
    pass


class NotAssignedError(PollFailure):
    """Read-side operation on a partition the consumer is not assigned to."""
    pass


class UnknownTopicOrPartitionError(CommandLogError):
    """The requested topic-partition does not exist in the log service."""
    pass


class SerializationError(CommandLogError):
    """A key or value could not be encoded or decoded."""
    pass


class ClientClosedError(CommandLogError):
    """A consumer, producer or log was used after close()."""
    pass


class CommandTopicClosedError(ClientClosedError):
    """The command topic was used after close()."""
    pass


class LogCorruptionError(CommandLogError):
    """A stored record failed validation."""
    pass


def classify_send_error(error: BaseException) -> CommandLogError:
    """
    Map the failure of an append into the documented error kinds.

    Args:
        error: Exception raised while submitting or awaiting an append

    Returns:
        The error itself if it is already a CommandLogError, an
        InterruptedFailure for cancelled or interrupted waits, otherwise a
        SendFailure carrying the error as its cause.
    """
    if isinstance(error, CommandLogError):
        return error

    if isinstance(error, (CancelledError, InterruptedError)):
        return InterruptedFailure(f"Interrupted while waiting for append acknowledgment: {error!r}")

    return SendFailure(f"Failed to append command: {error!r}", cause=error)

"""Recoverable queue outcomes reported back to the command layer."""

from __future__ import annotations


class QueueError(Exception):
    """Base class. ``message`` is safe to show to the user."""

    message = "Queue operation failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.message
        super().__init__(self.message)


class QueueNotFound(QueueError):
    message = "That channel is not a queue."


class AlreadyQueued(QueueError):
    message = "You are already in this queue."


class NotQueued(QueueError):
    message = "You are not in this queue."


class QueueEmpty(QueueError):
    message = "The queue is empty."


class InsufficientMembers(QueueError):
    message = "Not enough members in the queue to pull."

    def __init__(self, requested: int, available: int) -> None:
        self.requested = requested
        self.available = available
        super().__init__(
            f"Not enough members in the queue to pull ({available}/{requested}). "
            "Enable partial pulls or pull fewer."
        )


class DestinationFull(QueueError):
    message = "The destination is full."


class QueueLocked(QueueError):
    message = "This queue is locked."


class QueueFull(QueueError):
    message = "This queue is full."


class TargetGone(QueueError):
    """A render target or channel vanished underneath us."""

    message = "The target no longer exists."


class RelocationFailed(QueueError):
    message = "Could not move the pulled members. Nobody was removed from the queue."

"""Exception types raised by the roster core.

Inbound event handlers never let these escape to the protocol layer. The
exposed operations on the dispatcher raise them to the caller.
"""

from __future__ import annotations

from enum import IntEnum


class RosterError(Exception):
    """Base class for roster core failures."""


class AllocationFailure(RosterError):
    """A roster or ignore list could not grow. Prior state is kept."""


class NotFound(RosterError, LookupError):
    """A session, group or peer is not known locally."""


class Ambiguous(RosterError, LookupError):
    """More than one active peer matches a nickname."""


class AlreadyActive(RosterError):
    """A session for this group id already exists."""


class OutOfSlots(RosterError):
    """The session registry is full."""


class SendFailure(IntEnum):
    OK = 0
    PERMISSIONS = 1
    TOO_LONG = 2
    EMPTY = 3
    BAD_TYPE = 4
    DISCONNECTED = 5
    PEER_NOT_FOUND = 6
    GROUP_NOT_FOUND = 7
    FAIL_SEND = 8
    UNKNOWN = 9


class ProtocolError(RosterError):
    """The external protocol layer rejected a command or query."""

    def __init__(self, message: str = "", code: SendFailure = SendFailure.UNKNOWN) -> None:
        super().__init__(message or code.name.lower())
        self.code = code

from __future__ import annotations


class StreamAnnouncerError(Exception):
    """Base class for reconciliation-engine failures."""


class NotReady(StreamAnnouncerError):
    """The chat connection is not established yet."""


class TransportError(StreamAnnouncerError):
    """A send/edit/fetch against the message transport failed."""


class PermissionDenied(TransportError):
    """The destination does not allow posting."""


class MessageNotFound(TransportError):
    """The referenced message no longer exists."""


class StoreUnavailable(StreamAnnouncerError):
    """The state store could not be read or written."""


class MentionResolutionError(StreamAnnouncerError):
    """A configured mention could not be resolved for a destination."""

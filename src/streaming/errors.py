"""Errors raised while consuming a streamed exchange."""


class TransportError(Exception):
    """Raised when the upstream stream fails before it completes."""

    pass

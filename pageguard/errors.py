"""Exception types shared across PageGuard."""


class PageGuardError(Exception):
    """Base class for PageGuard errors."""


class UnknownMessageError(PageGuardError):
    """Raised when a wire payload carries an unrecognized discriminant."""

    def __init__(self, message_type: object):
        super().__init__(f"Unknown message type: {message_type!r}")
        self.message_type = message_type


class StorageAccessError(PageGuardError):
    """Raised when page storage cannot be read (e.g. sandboxed frames)."""


class InferenceError(PageGuardError):
    """Raised by inference backends when a model cannot load or answer."""


class MessageFormatError(PageGuardError):
    """Raised when a known message type carries a malformed payload."""

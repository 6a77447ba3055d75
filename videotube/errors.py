"""Domain errors raised by the store adapters, recipes and services.

HTTP handlers translate these into response envelopes; nothing below the
router layer knows about status codes.
"""


class VideoTubeError(Exception):
    """Base class for all domain errors"""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class InvalidArgument(VideoTubeError):
    """Malformed identifier or missing required field. Never retried."""


class NotFound(VideoTubeError):
    """The addressed entity does not exist."""


class PermissionDenied(VideoTubeError):
    """Caller is not allowed to mutate the target (not the owner, or anonymous)."""


class Conflict(VideoTubeError):
    """Duplicate key on a uniqueness-constrained create."""


class Unavailable(VideoTubeError):
    """The store call failed transiently. Read-only recipes may be retried."""

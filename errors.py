"""Error types raised by the workout session manager.

Autosave failures never surface and therefore have no type here.
"""


class SessionError(Exception):
    """Base class for session manager failures."""


class InvalidTransitionError(SessionError):
    """Raised when an operation is called from the wrong session state.

    Only raised when ``strict_transitions`` is enabled; otherwise the
    operation is logged and ignored.
    """

    def __init__(self, operation: str, state: str) -> None:
        self.operation = operation
        self.state = state
        super().__init__(f"{operation} is not allowed while session is {state}")


class LookupFailedError(SessionError, LookupError):
    """Raised when an exercise, mesocycle or split day id is unknown.

    The draft is left unchanged so the caller can fall back.
    """


class CommitError(SessionError):
    """Raised when the finished workout could not be written.

    The draft and its snapshot are kept so finishing can be retried.
    """

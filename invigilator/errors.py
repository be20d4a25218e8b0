"""Exceptions raised at the input boundary and by the driver.

The timer engine itself never raises: invalid transitions are no-ops.
"""


class ValidationError(ValueError):
    """User-supplied input was rejected.  ``str(exc)`` is fit to show
    to the person operating the timer."""


class SessionNotFoundError(LookupError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id


class DeskNotFoundError(LookupError):
    def __init__(self, desk_id: str) -> None:
        super().__init__(f"Desk {desk_id} not in the active session")
        self.desk_id = desk_id

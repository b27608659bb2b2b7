import logging

from kanban_board.errors import BoardError

logger = logging.getLogger(__name__)


class StaticUserContext:
    """User context for hosts that know the current user up front."""

    def __init__(self, user_id: str) -> None:
        self._user_id = user_id.strip("{}")

    def user_id(self) -> str:
        return self._user_id


class LoggingErrorReporter:
    """Reports board errors to the log and keeps the most recent one."""

    def __init__(self) -> None:
        self.last_error: Exception | None = None

    def report(self, error: Exception) -> None:
        self.last_error = error
        if isinstance(error, BoardError):
            logger.error("An error occurred: %s", error)
        else:
            logger.error("An unexpected error occurred: %r", error)

from typing import Protocol


class UserContext(Protocol):
    def user_id(self) -> str: ...


class ErrorReporter(Protocol):
    def report(self, error: Exception) -> None: ...

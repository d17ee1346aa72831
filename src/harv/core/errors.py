from __future__ import annotations


class HarvError(RuntimeError):
    pass


class ConfigError(HarvError):
    def __init__(self, message: str) -> None:
        super().__init__(f"Configuration error: {message}")


class TransportError(HarvError):
    pass


class HarvestApiError(HarvError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(f"Harvest API error: {message}")
        self.status_code = status_code


class JiraApiError(HarvError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(f"Jira API error: {message}")
        self.status_code = status_code


class AiError(HarvError):
    def __init__(self, message: str) -> None:
        super().__init__(f"AI provider error: {message}")


class InvalidEntryError(HarvError):
    def __init__(self, message: str) -> None:
        super().__init__(f"Invalid time entry: {message}")


class NoTicketsFoundError(HarvError):
    def __init__(self) -> None:
        super().__init__("No Jira tickets found in commits")


class UserCancelledError(HarvError):
    def __init__(self) -> None:
        super().__init__("User cancelled operation")


class GitError(HarvError):
    def __init__(self, message: str) -> None:
        super().__init__(f"Git error: {message}")


class ShowHelp(HarvError):
    """Raised when there is nothing to act on and the CLI should print help."""

    def __init__(self) -> None:
        super().__init__("show help")

"""Error taxonomy shared by the dispatcher, the directory client, and the batch stages.

``ValidationError`` and ``UnknownCommand`` never leave the dispatcher.  The
``DirectoryError`` family is raised by ``DirectoryClient``; handlers decide
whether a ``NotFound`` is informational or fatal, the search selector demotes
on any of them, and batch stages record them per entity.
"""

from typing import Optional


class ValidationError(Exception):
    """An argument failed schema validation.

    Attributes:
        message: Human-readable cause (missing, wrong type, not in enum, out of range).
        path:    Name of the offending field, empty when the whole payload is wrong.
    """

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.message = message
        self.path = path

    def __str__(self):
        loc = f" at {self.path}" if self.path else ""
        return f"{self.message}{loc}"


class UnknownCommand(Exception):
    """No command is registered under the requested name."""

    def __init__(self, name: str):
        super().__init__(f"Unknown command: {name}")
        self.name = name


class DirectoryError(Exception):
    """Base class for failures reported by the remote directory."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


class NotFound(DirectoryError):
    """The addressed entity does not exist in the directory."""


class CapabilityUnsupported(DirectoryError):
    """The directory refused a filter because it does not honor the operator."""

    def __init__(self, message: str, operator: str = "", status: Optional[int] = None):
        super().__init__(message, status=status)
        self.operator = operator


class TransportFailure(DirectoryError):
    """Generic remote failure: non-2xx response or network error."""

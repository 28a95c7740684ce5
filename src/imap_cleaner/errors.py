"""Exception hierarchy for IMAP Cleaner."""

from __future__ import annotations


class CleanerError(Exception):
    """Base class for all IMAP Cleaner errors."""


class ResolutionError(CleanerError):
    """No reachable IMAP host could be guessed for an address."""


class NegotiationError(CleanerError):
    """Every permitted transport-security tier failed."""

    def __init__(self, address: str, failures: list[tuple[str, str]]) -> None:
        self.address = address
        self.failures = failures
        detail = "; ".join(f"{tier}: {reason}" for tier, reason in failures) or "no tier permitted"
        super().__init__(f"Could not open a session with {address} ({detail})")


class AuthenticationError(CleanerError):
    """The server rejected the credentials."""


class MailboxError(CleanerError):
    """A mailbox service call failed."""

    def __init__(self, operation: str, cause: BaseException) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed: {cause}")


class SessionBusyError(CleanerError):
    """The mailbox session is already in use by another call."""


class EnumerationError(CleanerError):
    """The folder listing call failed."""


class ScanError(CleanerError):
    """Searching or fetching a single folder failed."""

    def __init__(self, folder: str, cause: BaseException, uidvalidity: int | None = None) -> None:
        self.folder = folder
        self.cause = cause
        self.uidvalidity = uidvalidity
        super().__init__(f"{folder}: {cause}")


class ArchiveIOError(CleanerError):
    """The archive container could not be read or written."""


class UserDeclined(CleanerError):
    """The operator answered no to a confirmation prompt."""

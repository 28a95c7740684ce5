"""Data models for IMAP Cleaner."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Union

from .constants import INBOX, MESSAGE_EXTENSION


@dataclass(frozen=True)
class FolderRef:
    """A folder as reported by the folder listing."""

    name: str
    selectable: bool = True


@dataclass(frozen=True)
class FolderStatus:
    """Result of selecting a folder."""

    uidvalidity: int | None = None
    exists: int = 0


@dataclass(frozen=True)
class Envelope:
    """Envelope fields used for classification."""

    subject: str = ""
    senders: tuple[str, ...] = ()  # rendered as mailbox@host
    recipients: tuple[str, ...] = ()


@dataclass(frozen=True)
class FetchedMessage:
    """One message as produced by a fetch stream; unrequested fields are None."""

    uid: int
    envelope: Envelope | None = None
    size: int | None = None
    raw: bytes | None = None


@dataclass(frozen=True)
class MessageRef:
    """A message observed during a scan."""

    folder: str
    msg_id: int  # durable UID within the folder
    size: int = 0


@dataclass
class Group:
    """All messages sharing one classification key."""

    key: str
    count: int = 0
    total_bytes: int = 0
    messages_by_folder: dict[str, list[int]] = field(default_factory=dict)

    def add(self, ref: MessageRef) -> None:
        self.count += 1
        self.total_bytes += ref.size
        self.messages_by_folder.setdefault(ref.folder, []).append(ref.msg_id)


@dataclass(frozen=True)
class Processed:
    """A folder that was scanned; count is the messages it contributed."""

    folder: str
    count: int


@dataclass(frozen=True)
class Skipped:
    """A folder whose search or fetch failed."""

    folder: str
    reason: str


FolderOutcome = Union[Processed, Skipped]


@dataclass
class ScanResult:
    """Result of a statistics or match scan."""

    group_field: str
    groups: list[Group] = field(default_factory=list)  # insertion order
    target: Group | None = None  # match mode only
    total_messages: int = 0
    outcomes: list[FolderOutcome] = field(default_factory=list)
    folder_validity: dict[str, int | None] = field(default_factory=dict)
    scan_date: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def skipped(self) -> list[Skipped]:
        return [o for o in self.outcomes if isinstance(o, Skipped)]


class DeleteOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class FolderDeletion:
    """Outcome of deleting a set of messages from one folder."""

    folder: str
    requested: int
    marked: int = 0
    outcome: DeleteOutcome = DeleteOutcome.SUCCEEDED
    reason: str = ""

    @property
    def deleted(self) -> int:
        return 0 if self.outcome is DeleteOutcome.FAILED else self.marked


@dataclass
class DeletionReport:
    """Per-folder outcomes of one deletion dispatch."""

    folders: list[FolderDeletion] = field(default_factory=list)

    @property
    def deleted(self) -> int:
        return sum(f.deleted for f in self.folders)

    @property
    def failed(self) -> list[FolderDeletion]:
        return [f for f in self.folders if f.outcome is not DeleteOutcome.SUCCEEDED]

    @property
    def any_failed(self) -> bool:
        return any(f.outcome is DeleteOutcome.FAILED for f in self.folders)


@dataclass(frozen=True)
class ArchiveEntry:
    """One message stored in a backup archive."""

    folder: str
    uid: int | str
    raw: bytes

    @property
    def path(self) -> str:
        return f"{self.folder}/{self.uid}{MESSAGE_EXTENSION}"

    @staticmethod
    def folder_for_path(path: str) -> str:
        """Destination folder for an archive member path; root entries go to INBOX."""
        folder, _, _ = path.strip("/").rpartition("/")
        if folder in ("", "."):
            return INBOX
        return folder.removeprefix("./")


@dataclass
class BackupSummary:
    folders: int = 0
    messages: int = 0
    missing: int = 0  # messages returned without a body
    skipped: list[Skipped] = field(default_factory=list)


@dataclass
class RestoreSummary:
    restored: int = 0
    failed: int = 0
    folders_created: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SearchCriteria:
    """Either every message, or messages whose header contains some text."""

    header: str | None = None
    text: str = ""

    @classmethod
    def all(cls) -> SearchCriteria:
        return cls()

    @classmethod
    def header_contains(cls, header: str, text: str) -> SearchCriteria:
        return cls(header=header, text=text)

    @property
    def matches_all(self) -> bool:
        return self.header is None

    def to_imap(self) -> list[str]:
        if self.header is None:
            return ["ALL"]
        return ["HEADER", self.header.title(), self.text]


@dataclass(frozen=True)
class PageView:
    """The slice of ranked groups currently on screen."""

    groups: list[Group]
    start: int  # 0-based index of the first group in the full list
    total: int
    page_index: int
    page_count: int

    @property
    def end(self) -> int:
        return self.start + len(self.groups)

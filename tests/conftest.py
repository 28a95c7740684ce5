"""Shared fixtures for tests."""

from __future__ import annotations

import itertools
from contextlib import contextmanager
from dataclasses import dataclass

import pytest

from imap_cleaner.config import CleanerConfig
from imap_cleaner.errors import MailboxError
from imap_cleaner.models import Envelope, FetchedMessage, FolderRef, FolderStatus, SearchCriteria


@dataclass
class FakeMessage:
    uid: int
    envelope: Envelope
    raw: bytes = b""

    @property
    def size(self) -> int:
        return len(self.raw)


def make_message(
    uid: int,
    sender: str | None = "alice@example.com",
    subject: str = "Hello",
    to: str | None = "me@example.com",
    raw: bytes | None = None,
) -> FakeMessage:
    if raw is None:
        raw = f"From: {sender}\r\nSubject: {subject}\r\n\r\nbody {uid}\r\n".encode()
    return FakeMessage(
        uid=uid,
        envelope=Envelope(
            subject=subject,
            senders=(sender,) if sender else (),
            recipients=(to,) if to else (),
        ),
        raw=raw,
    )


def _boom(operation: str) -> MailboxError:
    return MailboxError(operation, OSError(f"{operation} refused"))


class FakeMailbox:
    """In-memory stand-in for MailboxService."""

    def __init__(
        self,
        folders: dict[str, list[FakeMessage]] | None = None,
        *,
        noselect: tuple[str, ...] = (),
        fail_list: bool = False,
        fail_select: tuple[str, ...] = (),
        fail_search: tuple[str, ...] = (),
        fail_fetch: tuple[str, ...] = (),
        fail_store: tuple[str, ...] = (),
        fail_expunge: tuple[str, ...] = (),
        fail_append: tuple[str, ...] = (),
        loose_search: bool = False,
    ) -> None:
        self.folders: dict[str, dict[int, FakeMessage]] = {
            name: {m.uid: m for m in messages} for name, messages in (folders or {}).items()
        }
        self.validity = {name: 1 for name in self.folders}
        self.noselect = noselect
        self.fail_list = fail_list
        self.fail_select = fail_select
        self.fail_search = fail_search
        self.fail_fetch = fail_fetch
        self.fail_store = fail_store
        self.fail_expunge = fail_expunge
        self.fail_append = fail_append
        self.loose_search = loose_search
        self.server = "imap.example.com:993"
        self.tier = "modern"
        self.selected: str | None = None
        self.flagged: dict[str, set[int]] = {}
        self.calls: list[tuple] = []
        self.appended: list[tuple[str, bytes]] = []
        self._uids = itertools.count(1000)

    def count(self, folder: str) -> int:
        return len(self.folders.get(folder, {}))

    # --- mailbox service interface ---

    def list_folders(self):
        self.calls.append(("list",))
        if self.fail_list:
            raise _boom("list")
        for name in self.folders:
            yield FolderRef(name=name)
        for name in self.noselect:
            yield FolderRef(name=name, selectable=False)

    def select_folder(self, name: str, readonly: bool = False) -> FolderStatus:
        self.calls.append(("select", name, readonly))
        if name in self.fail_select or name not in self.folders:
            raise _boom(f"select {name}")
        self.selected = name
        return FolderStatus(uidvalidity=self.validity[name], exists=len(self.folders[name]))

    def search(self, criteria: SearchCriteria):
        self.calls.append(("search", self.selected, criteria))
        if self.selected in self.fail_search:
            raise _boom("search")
        messages = self.folders[self.selected]
        if criteria.matches_all or self.loose_search:
            return iter(sorted(messages))
        needle = criteria.text.lower()
        hits = []
        for uid, message in sorted(messages.items()):
            envelope = message.envelope
            if criteria.header == "Subject":
                haystack = envelope.subject
            elif criteria.header == "To":
                haystack = " ".join(envelope.recipients)
            else:
                haystack = " ".join(envelope.senders)
            if needle in haystack.lower():
                hits.append(uid)
        return iter(hits)

    def fetch(self, uids, fields):
        self.calls.append(("fetch", self.selected, tuple(uids), tuple(fields)))
        folder = self.selected
        for n, uid in enumerate(uids):
            if folder in self.fail_fetch and n == 1:
                raise _boom("fetch")
            message = self.folders[folder][uid]
            yield FetchedMessage(
                uid=uid,
                envelope=message.envelope if "envelope" in fields else None,
                size=message.size if "size" in fields else None,
                raw=message.raw if "raw" in fields else None,
            )

    def mark_deleted(self, uids) -> None:
        self.calls.append(("store", self.selected, tuple(uids)))
        if self.selected in self.fail_store:
            raise _boom("store")
        self.flagged.setdefault(self.selected, set()).update(uids)

    def expunge(self) -> None:
        self.calls.append(("expunge", self.selected))
        if self.selected in self.fail_expunge:
            raise _boom("expunge")
        for uid in self.flagged.pop(self.selected, set()):
            self.folders[self.selected].pop(uid, None)

    def folder_exists(self, name: str) -> bool:
        return name in self.folders

    def create_folder(self, name: str) -> None:
        self.calls.append(("create", name))
        self.folders.setdefault(name, {})
        self.validity.setdefault(name, 1)

    def append_message(self, folder: str, raw: bytes, timestamp) -> None:
        self.calls.append(("append", folder))
        if folder in self.fail_append:
            raise _boom(f"append {folder}")
        if folder not in self.folders:
            raise _boom(f"append {folder}")
        uid = next(self._uids)
        self.folders[folder][uid] = FakeMessage(uid=uid, envelope=Envelope(), raw=raw)
        self.appended.append((folder, raw))


@pytest.fixture
def config() -> CleanerConfig:
    return CleanerConfig(email="me@example.com", password="secret")


@pytest.fixture
def sender_mailbox() -> FakeMailbox:
    """Folder A: 5 from x@example.com and 3 from y@example.com; B and C empty."""
    messages = [make_message(i, sender="x@example.com") for i in range(1, 6)]
    messages += [make_message(i, sender="y@example.com") for i in range(6, 9)]
    return FakeMailbox({"INBOX": [], "A": messages, "B": [], "C": []})


@pytest.fixture
def spam_mailbox() -> FakeMailbox:
    """12 matching messages across INBOX and Junk, with mixed case and noise."""
    inbox = [make_message(i, subject=f"SPAM offer {i}") for i in range(1, 8)]
    inbox += [make_message(i, subject=f"Meeting {i}") for i in range(8, 11)]
    junk = [make_message(i, subject=f"cheap Spam #{i}") for i in range(1, 6)]
    junk += [make_message(6, subject="Newsletter")]
    return FakeMailbox({"INBOX": inbox, "Junk": junk, "Sent": [make_message(1, subject="re: lunch")]})


@pytest.fixture
def fake_session(monkeypatch):
    """Patch the CLI so every command talks to the returned FakeMailbox."""
    import imap_cleaner.cli as cli_module

    holder: dict = {"mailbox": FakeMailbox({"INBOX": []})}

    @contextmanager
    def _open(config):
        holder["config"] = config
        yield holder["mailbox"]

    monkeypatch.setattr(cli_module, "open_mailbox", _open)
    return holder

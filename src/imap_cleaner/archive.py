"""Backup and restore of a whole mailbox as a gzipped tar stream.

Each message is one member named ``<folder>/<uid>.eml`` holding the raw
message bytes.  There is no manifest; restore derives the destination folder
from the member path alone.
"""

from __future__ import annotations

import io
import logging
import posixpath
import tarfile
import time
import zlib
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterator

from .constants import ARCHIVE_FILE_MODE, MESSAGE_EXTENSION
from .display import console, create_progress, display_backup_summary, display_restore_summary
from .errors import ArchiveIOError, MailboxError
from .folders import list_selectable_folders
from .models import ArchiveEntry, BackupSummary, FolderRef, RestoreSummary, SearchCriteria, Skipped

logger = logging.getLogger(__name__)

_READ_ERRORS = (OSError, EOFError, tarfile.TarError, zlib.error)


def _now() -> datetime:
    return datetime.now().astimezone()


def write_entry(archive: tarfile.TarFile, entry: ArchiveEntry) -> None:
    info = tarfile.TarInfo(name=entry.path)
    info.size = len(entry.raw)
    info.mode = ARCHIVE_FILE_MODE
    info.mtime = int(time.time())
    try:
        archive.addfile(info, io.BytesIO(entry.raw))
    except (OSError, tarfile.TarError) as exc:
        raise ArchiveIOError(f"Could not write {entry.path}: {exc}") from exc


def backup_folders(
    service,
    folders: list[FolderRef],
    path: str | Path,
    callback: Callable[[int, int], None] | None = None,
) -> BackupSummary:
    """Write every message of every folder to a .tar.gz archive, one message at a time.

    callback(folders_done, messages_written) is called after each message.
    A folder that cannot be selected or fetched is skipped and reported; a
    message the server returns without a body is counted in ``missing``.
    """
    summary = BackupSummary()
    try:
        archive = tarfile.open(str(path), "w|gz")
    except (OSError, tarfile.TarError) as exc:
        raise ArchiveIOError(f"Could not create {path}: {exc}") from exc

    with archive:
        for folder in folders:
            try:
                service.select_folder(folder.name, readonly=True)
                uids = list(service.search(SearchCriteria.all()))
                if not uids:
                    continue
                summary.folders += 1
                for message in service.fetch(uids, ["raw"]):
                    if not message.raw:
                        logger.warning("%s/%s came back without a body, not archived", folder.name, message.uid)
                        summary.missing += 1
                        continue
                    write_entry(archive, ArchiveEntry(folder=folder.name, uid=message.uid, raw=message.raw))
                    summary.messages += 1
                    if callback:
                        callback(summary.folders, summary.messages)
            except MailboxError as exc:
                logger.warning("Skipping folder %s: %s", folder.name, exc.cause)
                summary.skipped.append(Skipped(folder=folder.name, reason=str(exc.cause)))

    return summary


def read_entries(path: str | Path) -> Iterator[ArchiveEntry]:
    """Yield archive entries in stored order without loading the whole archive."""
    try:
        archive = tarfile.open(str(path), "r|*")
    except _READ_ERRORS as exc:
        raise ArchiveIOError(f"Could not open {path}: {exc}") from exc

    with archive:
        try:
            for member in archive:
                if not member.isfile():
                    continue
                handle = archive.extractfile(member)
                raw = handle.read() if handle is not None else b""
                stem = posixpath.basename(member.name)
                if stem.endswith(MESSAGE_EXTENSION):
                    stem = stem[: -len(MESSAGE_EXTENSION)]
                yield ArchiveEntry(folder=ArchiveEntry.folder_for_path(member.name), uid=stem, raw=raw)
        except _READ_ERRORS as exc:
            raise ArchiveIOError(f"Could not read {path}: {exc}") from exc


def _ensure_folder(service, name: str, summary: RestoreSummary) -> None:
    try:
        if not service.folder_exists(name):
            service.create_folder(name)
            summary.folders_created.append(name)
    except MailboxError as exc:
        logger.warning("Could not create folder %s: %s", name, exc.cause)


def restore_entries(
    service,
    entries: Iterator[ArchiveEntry],
    callback: Callable[[int], None] | None = None,
    now: Callable[[], datetime] = _now,
) -> RestoreSummary:
    """Append each entry to its folder, creating folders on first use.

    Messages get the current time as their arrival date.
    """
    summary = RestoreSummary()
    known: set[str] = set()
    for entry in entries:
        if entry.folder not in known:
            _ensure_folder(service, entry.folder, summary)
            known.add(entry.folder)
        try:
            service.append_message(entry.folder, entry.raw, now())
        except MailboxError as exc:
            logger.warning("Could not restore %s: %s", entry.path, exc.cause)
            summary.failed += 1
            continue
        summary.restored += 1
        if callback:
            callback(summary.restored)
    return summary


def backup_mailbox(service, path: str | Path) -> BackupSummary:
    """Back up every selectable folder with a live progress line."""
    console.print(f"🔄 Backup → {path}")
    folders = list_selectable_folders(service)
    with create_progress("Backup") as progress:
        task = progress.add_task("", total=None)

        def on_message(folders_done: int, messages: int) -> None:
            progress.update(task, description=f"folders:{folders_done} msgs:{messages}")

        summary = backup_folders(service, folders, path, callback=on_message)

    display_backup_summary(str(path), summary)
    return summary


def restore_mailbox(service, path: str | Path) -> RestoreSummary:
    """Restore an archive with a live progress line."""
    console.print(f"🔄 Restore ← {path}")
    with create_progress("Restore") as progress:
        task = progress.add_task("", total=None)

        def on_message(restored: int) -> None:
            progress.update(task, description=f"msgs:{restored}")

        summary = restore_entries(service, read_entries(path), callback=on_message)

    display_restore_summary(str(path), summary)
    return summary

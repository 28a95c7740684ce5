"""Scan orchestration - walks folders, classifies messages, groups or filters them."""

from __future__ import annotations

import logging
from typing import Callable

from .aggregator import BucketAggregator
from .classifier import SEARCH_HEADERS, classify, matches
from .config import CleanerConfig
from .display import console, create_progress, display_skipped
from .errors import MailboxError, ScanError
from .folders import list_selectable_folders
from .models import FolderRef, Group, MessageRef, Processed, ScanResult, SearchCriteria, Skipped

logger = logging.getLogger(__name__)

Sink = Callable[[MessageRef, str], None]
FolderCallback = Callable[[int, int, int], None]


def search_criteria(config: CleanerConfig) -> SearchCriteria:
    if config.match_mode:
        return SearchCriteria.header_contains(SEARCH_HEADERS[config.group_field], config.match)
    return SearchCriteria.all()


def fetch_fields(config: CleanerConfig) -> list[str]:
    fields = ["envelope"]
    if config.size_accounting:
        fields.append("size")
    return fields


def scan_folder(service, folder: str, config: CleanerConfig, sink: Sink) -> tuple[int, int | None]:
    """Select one folder and feed its messages to sink.

    In match mode the server search only narrows the candidates; every
    fetched message is checked again locally, case-insensitively.
    Messages reach sink only once the whole folder was fetched, so a folder
    that fails midway contributes nothing.  The ScanError raised then still
    carries the UIDVALIDITY when the select had succeeded.
    Returns the number of messages passed to sink and the folder's UIDVALIDITY.
    """
    staged: list[tuple[MessageRef, str]] = []
    status = None
    try:
        status = service.select_folder(folder, readonly=True)
        uids = list(service.search(search_criteria(config)))
        if uids:
            for message in service.fetch(uids, fetch_fields(config)):
                key = classify(message.envelope, config.group_field)
                if config.match_mode and not matches(key, config.match):
                    continue
                staged.append((MessageRef(folder=folder, msg_id=message.uid, size=message.size or 0), key))
    except MailboxError as exc:
        if staged:
            logger.warning("%s failed after %d messages, dropping them", folder, len(staged))
        validity = status.uidvalidity if status is not None else None
        raise ScanError(folder, exc, uidvalidity=validity) from exc

    for ref, key in staged:
        sink(ref, key)
    return len(staged), status.uidvalidity


def scan_folders(
    service,
    folders: list[FolderRef],
    config: CleanerConfig,
    callback: FolderCallback | None = None,
) -> ScanResult:
    """Scan folders one at a time.

    Stats mode groups every message by its key; match mode collects the
    matching messages into a single target group.  A folder whose select,
    search or fetch fails is recorded as skipped and the scan moves on.
    callback(done, total, running_count) is called after each folder.
    """
    aggregator = BucketAggregator()
    target = Group(key=config.match) if config.match_mode else None
    result = ScanResult(group_field=config.group_field, target=target)

    def sink(ref: MessageRef, key: str) -> None:
        if target is not None:
            target.add(ref)
        else:
            aggregator.observe(ref, key)

    for index, folder in enumerate(folders, start=1):
        try:
            count, validity = scan_folder(service, folder.name, config, sink)
        except ScanError as exc:
            logger.warning("Skipping folder %s: %s", folder.name, exc.cause)
            result.outcomes.append(Skipped(folder=folder.name, reason=str(exc.cause)))
            if exc.uidvalidity is not None:
                result.folder_validity[folder.name] = exc.uidvalidity
        else:
            result.outcomes.append(Processed(folder=folder.name, count=count))
            result.folder_validity[folder.name] = validity

        if callback:
            running = target.count if target is not None else aggregator.total
            callback(index, len(folders), running)

    result.groups = aggregator.groups()
    result.total_messages = target.count if target is not None else aggregator.total
    return result


def scan_mailbox(service, config: CleanerConfig) -> ScanResult:
    """Run a full scan: list folders, walk them with live progress, report skips."""
    if config.size_accounting:
        console.print("📏 Size counting ON")

    folders = list_selectable_folders(service)
    console.print(f"Scanning [bold]{len(folders)}[/bold] folders...")

    label = "matches" if config.match_mode else "msgs"
    with create_progress("Scanning") as progress:
        task = progress.add_task("", total=len(folders))

        def on_folder(done: int, total: int, running: int) -> None:
            progress.update(task, completed=done, description=f"{label}:{running}")

        result = scan_folders(service, folders, config, callback=on_folder)

    console.print(f"  {label}: [bold]{result.total_messages}[/bold]")
    display_skipped(result.skipped)
    return result

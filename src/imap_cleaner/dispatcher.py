"""Deletion dispatch - flag and expunge messages folder by folder."""

from __future__ import annotations

import logging
from typing import Mapping, Sequence

from .constants import STORE_CHUNK_SIZE
from .errors import MailboxError
from .models import DeleteOutcome, DeletionReport, FolderDeletion

logger = logging.getLogger(__name__)


def delete_from_folder(
    service,
    folder: str,
    uids: Sequence[int],
    expected_validity: int | None = None,
    chunk_size: int = STORE_CHUNK_SIZE,
) -> FolderDeletion:
    """Flag uids as deleted in one folder, then expunge it.

    Nothing is touched when the folder's UIDVALIDITY differs from the one
    recorded at scan time, because the uids may then name other messages.
    Expunge is permanent.
    """
    result = FolderDeletion(folder=folder, requested=len(uids))

    try:
        status = service.select_folder(folder)
    except MailboxError as exc:
        result.outcome = DeleteOutcome.FAILED
        result.reason = f"select: {exc.cause}"
        return result

    if (
        expected_validity is not None
        and status.uidvalidity is not None
        and status.uidvalidity != expected_validity
    ):
        result.outcome = DeleteOutcome.FAILED
        result.reason = "UIDVALIDITY changed since the scan; rescan before deleting"
        return result

    errors: list[str] = []
    for start in range(0, len(uids), chunk_size):
        chunk = list(uids[start : start + chunk_size])
        try:
            service.mark_deleted(chunk)
        except MailboxError as exc:
            logger.warning("%s: flagging %d messages failed: %s", folder, len(chunk), exc.cause)
            errors.append(str(exc.cause))
            continue
        result.marked += len(chunk)

    if not result.marked:
        result.outcome = DeleteOutcome.FAILED
        result.reason = f"store: {errors[0]}" if errors else "nothing flagged"
        return result

    try:
        service.expunge()
    except MailboxError as exc:
        result.outcome = DeleteOutcome.FAILED
        result.reason = f"expunge: {exc.cause} (messages stay flagged \\Deleted)"
        return result

    if errors:
        result.outcome = DeleteOutcome.PARTIAL
        result.reason = f"{len(errors)} store command(s) failed: {errors[0]}"
    return result


def delete_messages(
    service,
    by_folder: Mapping[str, Sequence[int]],
    folder_validity: Mapping[str, int | None] | None = None,
) -> DeletionReport:
    """Delete every (folder, uids) pair and report each folder's outcome."""
    folder_validity = folder_validity or {}
    report = DeletionReport()
    for folder, uids in by_folder.items():
        if not uids:
            continue
        outcome = delete_from_folder(service, folder, uids, folder_validity.get(folder))
        if outcome.outcome is DeleteOutcome.SUCCEEDED:
            logger.info("%s: deleted %d messages", folder, outcome.deleted)
        else:
            logger.warning("%s: %s (%s)", folder, outcome.outcome.value, outcome.reason)
        report.folders.append(outcome)
    return report

"""Folder enumeration."""

from __future__ import annotations

import logging

from .constants import INBOX
from .errors import EnumerationError, MailboxError
from .models import FolderRef

logger = logging.getLogger(__name__)


def list_selectable_folders(service) -> list[FolderRef]:
    """Return every selectable folder, INBOX first.

    INBOX is included even when the server's listing leaves it out.
    """
    try:
        listed = list(service.list_folders())
    except MailboxError as exc:
        raise EnumerationError(f"Could not list folders: {exc}") from exc

    folders = [FolderRef(name=INBOX)]
    seen = {INBOX}
    for folder in listed:
        # INBOX is case-insensitive per RFC 3501
        name = INBOX if folder.name.upper() == INBOX else folder.name
        if not folder.selectable:
            logger.debug("Skipping non-selectable folder %s", folder.name)
            continue
        if name in seen:
            continue
        seen.add(name)
        folders.append(FolderRef(name=name))
    return folders

"""Mailbox service: the IMAP operations the cleaner needs, over IMAPClient."""

from __future__ import annotations

import contextlib
import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from email.errors import HeaderParseError
from email.header import decode_header, make_header
from typing import Callable, Iterable, Iterator, Sequence

from imapclient import DELETED, IMAPClient
from imapclient.exceptions import IMAPClientError, LoginError
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from .constants import FETCH_CHUNK_SIZE
from .errors import AuthenticationError, MailboxError, SessionBusyError
from .models import Envelope, FetchedMessage, FolderRef, FolderStatus, SearchCriteria
from .stream import BoundedStream

logger = logging.getLogger(__name__)

_CALL_ERRORS = (IMAPClientError, OSError)
_NOT_SELECTABLE = (b"\\noselect", b"\\nonexistent")
_TRANSIENT_CODES = ("[UNAVAILABLE]", "[INUSE]")

FETCH_ITEMS = {
    "envelope": (b"ENVELOPE", b"ENVELOPE"),
    "size": (b"RFC822.SIZE", b"RFC822.SIZE"),
    "raw": (b"BODY.PEEK[]", b"BODY[]"),
}


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, IMAPClientError) and any(code in str(exc).upper() for code in _TRANSIENT_CODES)


_transient_retry = retry(
    retry=retry_if_exception(_is_transient),
    wait=wait_exponential(multiplier=1, min=1, max=30),
    stop=stop_after_attempt(4),
    reraise=True,
)


@_transient_retry
def _select(client: IMAPClient, name: str, readonly: bool) -> dict:
    return client.select_folder(name, readonly=readonly)


@_transient_retry
def _append(client: IMAPClient, folder: str, raw: bytes, timestamp: datetime):
    return client.append(folder, raw, flags=(), msg_time=timestamp)


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    return str(value)


def decode_subject(value) -> str:
    """Decode RFC 2047 encoded words; undecodable input is returned as is."""
    text = _text(value)
    if "=?" not in text:
        return text
    try:
        return str(make_header(decode_header(text)))
    except (HeaderParseError, LookupError, UnicodeError):
        return text


def render_addresses(addresses) -> tuple[str, ...]:
    """Render envelope addresses as mailbox@host, skipping group markers."""
    rendered = []
    for address in addresses or ():
        if address.host is None:
            continue
        rendered.append(f"{_text(address.mailbox)}@{_text(address.host)}")
    return tuple(rendered)


def envelope_from_imap(envelope) -> Envelope:
    if envelope is None:
        return Envelope()
    return Envelope(
        subject=decode_subject(envelope.subject),
        senders=render_addresses(envelope.from_),
        recipients=render_addresses(envelope.to),
    )


def is_selectable(flags: Iterable) -> bool:
    normalized = {f.lower() if isinstance(f, bytes) else str(f).lower().encode() for f in flags or ()}
    return not normalized.intersection(_NOT_SELECTABLE)


def _chunks(items: Sequence[int], size: int) -> Iterator[Sequence[int]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class MailboxService:
    """One logged-in IMAP session.

    The session is stateful (the selected folder), so only one call may use
    it at a time.  Calls that return many results run on a producer thread
    and are consumed as a stream; the session stays claimed until the
    stream is exhausted or closed, and any other call made meanwhile raises
    SessionBusyError.
    """

    def __init__(
        self,
        client: IMAPClient,
        chunk_size: int = FETCH_CHUNK_SIZE,
        server: str | None = None,
        tier: str | None = None,
    ) -> None:
        self._client = client
        self._chunk_size = chunk_size
        self._lock = threading.Lock()
        self._selected: str | None = None
        self.server = server  # "host:port" the session is connected to
        self.tier = tier

    @contextmanager
    def _claim(self, operation: str) -> Iterator[IMAPClient]:
        if not self._lock.acquire(blocking=False):
            raise SessionBusyError(f"{operation} called while the mailbox session is busy")
        try:
            yield self._client
        except _CALL_ERRORS as exc:
            raise MailboxError(operation, exc) from exc
        finally:
            self._lock.release()

    def _stream(self, operation: str, produce: Callable[[Callable], None]) -> Iterator:
        with self._claim(operation):
            yield from BoundedStream(produce, name=operation)

    # --- session ---

    def login(self, username: str, password: str) -> None:
        with self._claim("login") as client:
            try:
                client.login(username, password)
            except LoginError as exc:
                raise AuthenticationError(f"Login rejected for {username}: {exc}") from exc
        logger.debug("Logged in as %s", username)

    def logout(self) -> None:
        """Log out, ignoring a connection that is already gone."""
        with contextlib.suppress(MailboxError, SessionBusyError):
            with self._claim("logout") as client:
                client.logout()

    @property
    def selected_folder(self) -> str | None:
        return self._selected

    # --- folders ---

    def list_folders(self) -> Iterator[FolderRef]:
        def produce(emit) -> None:
            for flags, _delimiter, name in self._client.list_folders():
                emit(FolderRef(name=_text(name), selectable=is_selectable(flags)))

        return self._stream("list", produce)

    def select_folder(self, name: str, readonly: bool = False) -> FolderStatus:
        with self._claim(f"select {name}") as client:
            self._selected = None
            info = _select(client, name, readonly)
            self._selected = name
        return FolderStatus(
            uidvalidity=info.get(b"UIDVALIDITY"),
            exists=info.get(b"EXISTS", 0),
        )

    def folder_exists(self, name: str) -> bool:
        with self._claim(f"exists {name}") as client:
            return client.folder_exists(name)

    def create_folder(self, name: str) -> None:
        with self._claim(f"create {name}") as client:
            client.create_folder(name)

    # --- messages ---

    def search(self, criteria: SearchCriteria) -> Iterator[int]:
        terms = criteria.to_imap()
        charset = None if criteria.text.isascii() else "UTF-8"

        def produce(emit) -> None:
            for uid in self._client.search(terms, charset=charset):
                emit(int(uid))

        return self._stream("search", produce)

    def fetch(self, uids: Sequence[int], fields: Sequence[str]) -> Iterator[FetchedMessage]:
        """Stream the requested fields (envelope, size, raw) for each uid."""
        unknown = set(fields) - set(FETCH_ITEMS)
        if unknown:
            raise ValueError(f"unknown fetch fields: {', '.join(sorted(unknown))}")
        items = [FETCH_ITEMS[f][0] for f in fields]
        uids = list(uids)

        def produce(emit) -> None:
            for chunk in _chunks(uids, self._chunk_size):
                response = self._client.fetch(chunk, items)
                for uid in sorted(response):
                    data = response[uid]
                    emit(
                        FetchedMessage(
                            uid=int(uid),
                            envelope=envelope_from_imap(data.get(b"ENVELOPE")) if "envelope" in fields else None,
                            size=int(data.get(b"RFC822.SIZE", 0)) if "size" in fields else None,
                            raw=data.get(b"BODY[]") if "raw" in fields else None,
                        )
                    )

        return self._stream("fetch", produce)

    def mark_deleted(self, uids: Sequence[int]) -> None:
        with self._claim("store") as client:
            client.add_flags(list(uids), [DELETED])

    def expunge(self) -> None:
        with self._claim("expunge") as client:
            client.expunge()

    def append_message(self, folder: str, raw: bytes, timestamp: datetime) -> None:
        with self._claim(f"append {folder}") as client:
            _append(client, folder, raw, timestamp)

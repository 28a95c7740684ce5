"""Open an authenticated mailbox session for a run."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Iterator

from .config import CleanerConfig
from .errors import ResolutionError
from .mailbox import MailboxService
from .resolver import guess_server, parse_address
from .transport import Connector, Negotiated, negotiate, open_client

logger = logging.getLogger(__name__)


def resolve_server(config: CleanerConfig, guess: Callable[[str], tuple[str, int]] = guess_server) -> tuple[str, int]:
    """Use the configured host:port, or guess one from the address."""
    if config.server:
        try:
            return parse_address(config.server)
        except ValueError as exc:
            raise ResolutionError(str(exc)) from exc
    return guess(config.email)


def format_address(host: str, port: int) -> str:
    """``host:port``, bracketing IPv6 literals."""
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


@contextmanager
def open_mailbox(
    config: CleanerConfig,
    guess: Callable[[str], tuple[str, int]] = guess_server,
    connect: Connector = open_client,
) -> Iterator[MailboxService]:
    """Resolve, negotiate and log in; log out when the block exits."""
    host, port = resolve_server(config, guess)
    negotiated: Negotiated = negotiate(host, port, allow_plain=config.allow_plain, connect=connect)
    logger.info("Connected to %s:%d (%s)", host, port, negotiated.tier.value)
    service = MailboxService(
        negotiated.client,
        server=format_address(host, port),
        tier=negotiated.tier.value,
    )
    try:
        service.login(config.email, config.password)
        yield service
    finally:
        service.logout()

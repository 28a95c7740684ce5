"""Transport-security negotiation: modern TLS, then legacy TLS, then plaintext."""

from __future__ import annotations

import contextlib
import logging
import ssl
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from imapclient import IMAPClient
from imapclient.exceptions import IMAPClientError

from .constants import LEGACY_CIPHERS, PLAIN_PORT
from .display import print_tier_advisory
from .errors import NegotiationError

logger = logging.getLogger(__name__)

_CONNECT_ERRORS = (ssl.SSLError, OSError, ValueError, IMAPClientError)


class SecurityTier(str, Enum):
    MODERN = "modern"
    LEGACY = "legacy"
    PLAINTEXT = "plaintext"


@dataclass
class Negotiated:
    """An open, not yet authenticated, client and the tier it runs on."""

    client: IMAPClient
    tier: SecurityTier
    host: str
    port: int


Connector = Callable[[str, int, SecurityTier], IMAPClient]


def modern_context() -> ssl.SSLContext:
    """TLS 1.2+ with certificate and host name verification."""
    context = ssl.create_default_context()
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    return context


def legacy_context() -> ssl.SSLContext:
    """TLS 1.0-1.2 restricted to old RSA ciphers, for servers that offer nothing newer."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    context.minimum_version = ssl.TLSVersion.TLSv1
    context.maximum_version = ssl.TLSVersion.TLSv1_2
    context.set_ciphers(LEGACY_CIPHERS)
    return context


def _shutdown(client: IMAPClient) -> None:
    with contextlib.suppress(OSError, IMAPClientError):
        client.shutdown()


def open_client(host: str, port: int, tier: SecurityTier) -> IMAPClient:
    """Open a connection on one tier; port 143 upgrades with STARTTLS, others use implicit TLS."""
    if tier is SecurityTier.PLAINTEXT:
        return IMAPClient(host, port=port, ssl=False)

    context = modern_context() if tier is SecurityTier.MODERN else legacy_context()
    if port == PLAIN_PORT:
        client = IMAPClient(host, port=port, ssl=False)
        try:
            client.starttls(context)
        except _CONNECT_ERRORS:
            _shutdown(client)
            raise
        return client
    return IMAPClient(host, port=port, ssl=True, ssl_context=context)


def permitted_tiers(port: int, allow_plain: bool) -> list[SecurityTier]:
    """Tiers to try, strongest first."""
    tiers = [SecurityTier.MODERN, SecurityTier.LEGACY]
    if port == PLAIN_PORT and allow_plain:
        tiers.append(SecurityTier.PLAINTEXT)
    return tiers


def negotiate(
    host: str,
    port: int,
    allow_plain: bool = False,
    connect: Connector = open_client,
) -> Negotiated:
    """Return a client on the first tier that connects.

    Raises NegotiationError listing every tier's failure when none works.
    """
    failures: list[tuple[str, str]] = []
    for tier in permitted_tiers(port, allow_plain):
        logger.debug("Trying %s tier on %s:%d", tier.value, host, port)
        try:
            client = connect(host, port, tier)
        except _CONNECT_ERRORS as exc:
            logger.debug("%s tier failed: %s", tier.value, exc)
            failures.append((tier.value, str(exc) or type(exc).__name__))
            continue
        print_tier_advisory(tier.value)
        return Negotiated(client=client, tier=tier, host=host, port=port)

    raise NegotiationError(f"{host}:{port}", failures)

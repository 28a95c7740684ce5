"""Guess an IMAP server for an email address."""

from __future__ import annotations

import logging
import socket
import ssl
from typing import Callable

import dns.exception
import dns.resolver
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .constants import DNS_LOOKUP_ATTEMPTS, PROBE_PREFIXES, PROBE_TIMEOUT, SECURE_PORT
from .errors import ResolutionError

logger = logging.getLogger(__name__)


def parse_address(value: str, default_port: int = SECURE_PORT) -> tuple[str, int]:
    """Split ``host:port`` (or ``[v6]:port``); the port is optional."""
    value = value.strip()
    if not value:
        raise ValueError("empty server address")
    if value.startswith("["):
        host, _, rest = value[1:].partition("]")
        port = rest.lstrip(":")
    elif value.count(":") == 1:
        host, _, port = value.partition(":")
    else:
        host, port = value, ""
    if not host:
        raise ValueError(f"missing host in {value!r}")
    if not port:
        return host, default_port
    if not port.isdigit() or not 0 < int(port) < 65536:
        raise ValueError(f"invalid port in {value!r}")
    return host, int(port)


def tls_probe(host: str, port: int, timeout: float = PROBE_TIMEOUT) -> bool:
    """Return True when a TLS handshake with host:port completes.

    Only reachability is tested: certificates are not verified and no IMAP
    command is sent.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    try:
        with socket.create_connection((host, port), timeout=timeout) as sock:
            with context.wrap_socket(sock, server_hostname=host):
                return True
    except (OSError, ssl.SSLError) as exc:
        logger.debug("Probe of %s:%d failed: %s", host, port, exc)
        return False


@retry(
    retry=retry_if_exception_type(dns.exception.Timeout),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    stop=stop_after_attempt(DNS_LOOKUP_ATTEMPTS),
    reraise=True,
)
def _resolve_mx(domain: str):
    return dns.resolver.resolve(domain, "MX")


def mx_lookup(domain: str) -> list[str]:
    """Return the domain's MX hosts, best preference first."""
    try:
        answer = _resolve_mx(domain)
    except dns.exception.DNSException as exc:
        logger.debug("MX lookup for %s failed: %s", domain, exc)
        return []
    records = sorted(answer, key=lambda r: r.preference)
    return [str(r.exchange).rstrip(".") for r in records if str(r.exchange).rstrip(".")]


def candidate_hosts(domain: str) -> list[str]:
    return [f"{prefix}{domain}" for prefix in PROBE_PREFIXES]


def guess_server(
    email: str,
    probe: Callable[[str, int], bool] = tls_probe,
    lookup: Callable[[str], list[str]] = mx_lookup,
) -> tuple[str, int]:
    """Guess host and port for an address.

    Probes ``imap.<domain>``, ``mail.<domain>`` and ``<domain>`` on the
    secure port; the first to complete a handshake wins.  Falls back to the
    top MX host.
    """
    local, at, domain = email.rpartition("@")
    domain = domain.strip().lower()
    if not at or not local or not domain:
        raise ResolutionError(f"Cannot derive a domain from {email!r}")

    for host in candidate_hosts(domain):
        if probe(host, SECURE_PORT):
            logger.info("Guessed server %s:%d", host, SECURE_PORT)
            return host, SECURE_PORT

    hosts = lookup(domain)
    if hosts:
        logger.info("Using MX host %s:%d", hosts[0], SECURE_PORT)
        return hosts[0], SECURE_PORT

    raise ResolutionError(
        f"No IMAP server found for {domain}; tried "
        + ", ".join(candidate_hosts(domain))
        + " and MX records. Pass --imap host:port."
    )

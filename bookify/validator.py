"""Seed URL validation and SSRF protection."""

import ipaddress
import logging
import threading
from typing import Optional
from urllib.parse import urlsplit

from bookify.errors import FetchError, ValidationError, ValidationErrorKind
from bookify.net import HttpFetcher, SystemDnsResolver
from bookify.urls import NAVIGABLE_SCHEMES, strip_fragment

logger = logging.getLogger(__name__)

FORBIDDEN_HOSTS = {"localhost", "127.0.0.1", "::1"}
FORBIDDEN_HOST_PREFIXES = (
    ("127.", "10.", "192.168.")
    + tuple(f"172.{second}." for second in range(16, 32))
)
FORBIDDEN_NETWORKS = [
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("127.0.0.0/8"),
]


def is_forbidden_host(host: str) -> bool:
    """Cheap textual filter applied before any DNS lookup."""
    host = host.lower()
    return host in FORBIDDEN_HOSTS or host.startswith(FORBIDDEN_HOST_PREFIXES)


def is_forbidden_ip(address) -> bool:
    if address.is_loopback:
        return True
    if address.version == 4:
        return any(address in network for network in FORBIDDEN_NETWORKS)
    mapped = getattr(address, "ipv4_mapped", None)
    return mapped is not None and is_forbidden_ip(mapped)


class UrlValidator:
    """Validate and canonicalize a seed URL.

    The checks run cheapest first: syntax, scheme, host name, resolved
    addresses (so a public name pointing at a private address is caught),
    and finally a real GET that must answer with HTML.
    """

    def __init__(self, dns_resolver: Optional[SystemDnsResolver] = None, fetcher: Optional[HttpFetcher] = None):
        self.dns_resolver = dns_resolver or SystemDnsResolver()
        self.fetcher = fetcher or HttpFetcher()

    def validate(self, raw_url: str, cancel_event: Optional[threading.Event] = None) -> str:
        """Return the canonical URL for ``raw_url``.

        Raises:
            ValidationError: If the URL is unusable or unsafe.
            JobCancelledError: If cancellation was requested during the GET.
        """
        url = (raw_url or "").strip()
        try:
            parts = urlsplit(url)
            host = parts.hostname or ""
            # Accessing .port validates it
            _ = parts.port
        except ValueError as e:
            raise ValidationError(ValidationErrorKind.MALFORMED_URL, "Invalid URL format") from e

        if not parts.scheme:
            raise ValidationError(ValidationErrorKind.MALFORMED_URL, "Invalid URL format")

        if parts.scheme.lower() not in NAVIGABLE_SCHEMES:
            raise ValidationError(
                ValidationErrorKind.DISALLOWED_SCHEME,
                "Only HTTP and HTTPS URLs are allowed",
            )

        if not parts.netloc or not host:
            raise ValidationError(ValidationErrorKind.MALFORMED_URL, "Invalid URL format")

        if is_forbidden_host(host):
            raise ValidationError(
                ValidationErrorKind.FORBIDDEN_HOST,
                "Forbidden host: localhost, private IPs, or internal networks are not allowed",
            )

        self._check_addresses(host)
        return self._check_http(url, cancel_event)

    def _check_addresses(self, host: str) -> None:
        try:
            addresses = self.dns_resolver.resolve(host)
        except OSError as e:
            raise ValidationError(
                ValidationErrorKind.HTTP_FAILURE,
                f"Could not resolve host '{host}': {e}",
            ) from e

        for address in addresses:
            if is_forbidden_ip(address):
                logger.warning("Host %s risolve a un indirizzo vietato: %s", host, address)
                raise ValidationError(
                    ValidationErrorKind.FORBIDDEN_IP,
                    "Forbidden IP address: private or internal network IPs are not allowed",
                )

    def _check_http(self, url: str, cancel_event: Optional[threading.Event]) -> str:
        try:
            result = self.fetcher.fetch(url, cancel_event)
        except FetchError as e:
            raise ValidationError(ValidationErrorKind.HTTP_FAILURE, str(e)) from e

        if not result.ok:
            raise ValidationError(
                ValidationErrorKind.HTTP_FAILURE,
                f"HTTP request failed with status {result.status}",
            )

        if not result.is_html:
            raise ValidationError(
                ValidationErrorKind.NON_HTML_CONTENT,
                "URL must return HTML content (Content-Type: text/html)",
            )

        canonical = strip_fragment(result.url or url)
        logger.debug("URL validato: %s", canonical)
        return canonical

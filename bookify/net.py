"""Network capabilities: plain HTTP fetching and DNS resolution."""

import ipaddress
import logging
import socket
import threading
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Optional

from bookify import config
from bookify.errors import FetchError, JobCancelledError

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Outcome of a GET request after redirects."""
    url: str
    status: int
    content_type: str
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def is_html(self) -> bool:
        return "text/html" in self.content_type.lower()


class HttpFetcher:
    """GET requests with redirect following, via urllib."""

    def __init__(self, timeout: float = config.REQUEST_TIMEOUT, user_agent: str = config.USER_AGENT):
        self.timeout = timeout
        self.user_agent = user_agent

    def fetch(self, url: str, cancel_event: Optional[threading.Event] = None) -> FetchResult:
        """Fetch ``url``.

        Non-2xx responses are returned with their status; only transport
        failures raise.

        Raises:
            FetchError: If the request could not be completed.
            JobCancelledError: If cancellation was requested beforehand.
        """
        if cancel_event is not None and cancel_event.is_set():
            raise JobCancelledError("Job was canceled")

        req = urllib.request.Request(url, headers={"User-Agent": self.user_agent})
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                return self._to_result(resp, resp.geturl(), resp.status)
        except urllib.error.HTTPError as e:
            logger.debug("HTTP %s per %s", e.code, url)
            headers = e.headers
            return FetchResult(
                url=url,
                status=e.code,
                content_type=headers.get("Content-Type", "") if headers else "",
                text="",
            )
        except (urllib.error.URLError, OSError, ValueError) as e:
            raise FetchError(f"Request to {url} failed: {e}") from e

    @staticmethod
    def _to_result(resp, final_url: str, status: int) -> FetchResult:
        charset = resp.headers.get_content_charset() or "utf-8"
        body = resp.read()
        return FetchResult(
            url=final_url,
            status=status,
            content_type=resp.headers.get("Content-Type", ""),
            text=body.decode(charset, errors="replace"),
        )


class SystemDnsResolver:
    """Resolve host names with the operating system resolver."""

    def resolve(self, host: str) -> list:
        """Return every address ``host`` resolves to.

        Raises:
            OSError: If the name cannot be resolved.
        """
        infos = socket.getaddrinfo(host, None)
        addresses = []
        for _family, _type, _proto, _canon, sockaddr in infos:
            address = ipaddress.ip_address(sockaddr[0].split("%", 1)[0])
            if address not in addresses:
                addresses.append(address)
        return addresses

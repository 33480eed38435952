"""URL helpers shared by the crawler, the TOC extractor and the generator."""

from typing import Optional
from urllib.parse import urldefrag, urljoin, urlsplit

NAVIGABLE_SCHEMES = ("http", "https")
SKIPPED_PREFIXES = ("mailto:", "tel:", "javascript:")
DEFAULT_PORTS = {"http": 80, "https": 443}
INDEX_SUFFIXES = ("/index.html", "/index")


def normalize_url(url: str) -> str:
    """Return the normalization key of ``url``.

    Query string and fragment are dropped, scheme and host lower-cased, a
    default port removed, trailing slashes trimmed and a trailing
    ``/index`` or ``/index.html`` collapsed to its parent path, so
    ``https://x/docs/index.html`` and ``https://x/docs/`` share a key.
    """
    parts = urlsplit(url.strip())
    if not parts.scheme or not parts.netloc:
        return url.split("#", 1)[0].split("?", 1)[0].rstrip("/")

    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    netloc = f"[{host}]" if ":" in host else host
    try:
        port = parts.port
    except ValueError:
        port = None
    if port is not None and DEFAULT_PORTS.get(scheme) != port:
        netloc = f"{netloc}:{port}"

    path = parts.path.rstrip("/")
    while True:
        lowered = path.lower()
        suffix = next((s for s in INDEX_SUFFIXES if lowered.endswith(s)), None)
        if suffix is None:
            break
        path = path[: -len(suffix)].rstrip("/")

    return f"{scheme}://{netloc}{path}"


def page_key(url: str) -> str:
    """Normalization key that keeps hash routes (``#/guide``) distinct."""
    key = normalize_url(url)
    fragment = urlsplit(url).fragment
    if fragment.startswith("/"):
        key = f"{key}#{fragment}"
    return key


def host_of(url: str) -> str:
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""


def same_host(url: str, other: str) -> bool:
    host = host_of(url)
    return bool(host) and host == host_of(other)


def is_navigable(url: str) -> bool:
    return urlsplit(url).scheme.lower() in NAVIGABLE_SCHEMES


def is_skipped_href(href: str) -> bool:
    return href.strip().lower().startswith(SKIPPED_PREFIXES)


def strip_fragment(url: str) -> str:
    return urldefrag(url).url


def resolve_href(base_url: str, href: str) -> Optional[str]:
    """Resolve ``href`` against ``base_url``.

    A bare fragment keeps the current page and attaches the fragment, so
    hash-routed targets survive. Returns None for unresolvable input.
    """
    href = href.strip()
    if href.startswith("#"):
        base = strip_fragment(base_url)
        return base if href == "#" else base + href
    try:
        return urljoin(base_url, href)
    except ValueError:
        return None

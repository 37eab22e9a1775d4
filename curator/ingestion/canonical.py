"""
URL canonicalisation: the dedup key for every entry.

Two raw URLs that differ only by tracking parameters, host case, default
port or fragment canonicalise to the same string, and canonicalising a
canonical URL returns it unchanged.
"""

import re
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup

from curator.errors import InvalidURLError

ALLOWED_SCHEMES = frozenset({"http", "https"})

# Exact-match tracking parameters (compared lowercased); every utm_* is
# also dropped.
TRACKING_PARAMS = frozenset({
    "fbclid",
    "gclid",
    "dclid",
    "msclkid",
    "mc_cid",
    "mc_eid",
    "ref",
    "source",
    "campaign",
    "igshid",
})

_DEFAULT_PORTS = {"http": 80, "https": 443}
_WHITESPACE_RE = re.compile(r"\s")


def is_tracking_param(name: str) -> bool:
    lowered = name.lower()
    return lowered.startswith("utm_") or lowered in TRACKING_PARAMS


def canonicalize(raw_url: str | None) -> str | None:
    """
    Normalise a raw URL.

    Returns:
        The canonical URL, or None for blank input (callers skip the item)

    Raises:
        InvalidURLError: if the URL cannot be parsed, is not http(s) or has
            no host
    """
    if raw_url is None or not raw_url.strip():
        return None

    candidate = raw_url.strip()
    if _WHITESPACE_RE.search(candidate):
        raise InvalidURLError(f"URL contains whitespace: {raw_url!r}")

    try:
        parts = urlsplit(candidate)
        port = parts.port
    except ValueError as e:
        raise InvalidURLError(f"Unparsable URL {raw_url!r}: {e}") from e

    scheme = parts.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        raise InvalidURLError(f"Unsupported scheme in {raw_url!r}")

    host = (parts.hostname or "").lower().rstrip(".")
    if not host:
        raise InvalidURLError(f"URL has no host: {raw_url!r}")

    netloc = f"[{host}]" if ":" in host else host
    if port is not None and port != _DEFAULT_PORTS[scheme]:
        netloc = f"{netloc}:{port}"

    path = parts.path or "/"
    if len(path) > 1:
        path = path.rstrip("/") or "/"

    query_pairs = [
        (name, value)
        for name, value in parse_qsl(parts.query, keep_blank_values=True)
        if not is_tracking_param(name)
    ]
    query = urlencode(query_pairs, doseq=True)

    return urlunsplit((scheme, netloc, path, query, ""))


def try_canonicalize(raw_url: str | None) -> str | None:
    """Like canonicalize(), but returns None instead of raising."""
    try:
        return canonicalize(raw_url)
    except InvalidURLError:
        return None


def extract_canonical_link(html: str, base_url: str) -> str | None:
    """Canonical URL declared by a page's <link rel="canonical">, if valid."""
    soup = BeautifulSoup(html, "html.parser")
    for link in soup.find_all("link", href=True):
        rel = link.get("rel") or []
        if isinstance(rel, str):
            rel = rel.split()
        if "canonical" in (r.lower() for r in rel):
            return try_canonicalize(urljoin(base_url, link["href"]))
    return None


def domain_of(url: str) -> str | None:
    """Host without a leading www., lowercased."""
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return None
    if not host:
        return None
    host = host.lower()
    return host[4:] if host.startswith("www.") else host

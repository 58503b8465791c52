"""URL canonicalization and domain comparison helpers.

Normalized URLs are the keys of the visited set, so ``normalize_url`` must be
idempotent and must never raise: malformed input yields ``None`` and callers
treat that as "skip this URL".
"""
from typing import Optional
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

DEFAULT_PORTS = {"http": 80, "https": 443}

# Characters left untouched when re-quoting a path (RFC 3986 pchar + "/" + "%")
_PATH_SAFE = "/%:@!$&'()*+,;=~-._"


def strip_www(host: str) -> str:
    """Drop a leading ``www.`` so www and bare hosts compare equal."""
    host = (host or "").lower()
    if host.startswith("www."):
        return host[4:]
    return host


def host_of(url: str) -> str:
    """Return the lowercased hostname of ``url`` or an empty string."""
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""


def same_site(host_a: str, host_b: str) -> bool:
    """True when two hosts are the same site, ignoring a ``www.`` prefix."""
    return strip_www(host_a) == strip_www(host_b)


def is_absolute_http(url: str) -> bool:
    lowered = url.lower()
    return lowered.startswith("http://") or lowered.startswith("https://")


def normalize_url(url: str, base_domain: Optional[str] = None) -> Optional[str]:
    """Canonicalize a URL for dedup and domain comparison.

    Relative input is resolved against ``https://{base_domain}``; without a
    base domain it cannot be resolved and ``None`` is returned. The fragment
    is dropped and query parameters are sorted by key.

    Args:
        url: Absolute or root-relative URL
        base_domain: Host used to resolve relative URLs

    Returns:
        Canonical URL string, or None if the URL is malformed
    """
    if not url or not url.strip():
        return None
    url = url.strip()

    if not is_absolute_http(url):
        if not base_domain:
            return None
        url = f"https://{base_domain}{url if url.startswith('/') else '/' + url}"

    try:
        parts = urlsplit(url)
        hostname = parts.hostname
        port = parts.port
    except ValueError:
        return None

    if not hostname or any(ch.isspace() for ch in hostname):
        return None

    scheme = parts.scheme.lower()
    netloc = hostname.lower()
    if parts.username is not None:
        userinfo = parts.username
        if parts.password is not None:
            userinfo += f":{parts.password}"
        netloc = f"{userinfo}@{netloc}"
    if port is not None and port != DEFAULT_PORTS.get(scheme):
        netloc += f":{port}"

    path = quote(parts.path, safe=_PATH_SAFE) or "/"

    query = ""
    if parts.query:
        params = parse_qsl(parts.query, keep_blank_values=True)
        # sorted() is stable, so repeated keys keep their relative order
        query = urlencode(sorted(params, key=lambda item: item[0]))

    return urlunsplit((scheme, netloc, path, query, ""))

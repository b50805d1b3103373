"""
URL canonicalization used as the dedup key for the crawl.
"""

import logging
from typing import Optional
from urllib.parse import urljoin, urlsplit, urlunsplit


logger = logging.getLogger(__name__)

CRAWLABLE_SCHEMES = ('http', 'https')
DEFAULT_PORTS = {'http': 80, 'https': 443}


def canonicalize(href: str, base_url: Optional[str] = None) -> Optional[str]:
    """
    Normalize a link into its canonical absolute form.

    Args:
        href: Link as found in a document (relative or absolute)
        base_url: URL of the page the link was found on

    Returns:
        Canonical URL (fragment stripped, query preserved) or None if the
        link is malformed or not an http(s) URL
    """
    if href is None:
        return None

    href = str(href).strip()
    if not href:
        return None

    try:
        absolute_url = urljoin(base_url, href) if base_url else href
        parsed = urlsplit(absolute_url)
        scheme = parsed.scheme.lower()

        if scheme not in CRAWLABLE_SCHEMES or not parsed.hostname:
            return None

        host = parsed.hostname.lower()
        if ':' in host:
            host = f"[{host}]"

        # .port raises ValueError for out-of-range or non-numeric ports
        port = parsed.port
        netloc = host if port is None or port == DEFAULT_PORTS[scheme] else f"{host}:{port}"

        return urlunsplit((scheme, netloc, parsed.path or '/', parsed.query, ''))

    except ValueError as e:
        logger.debug(f"Dropping malformed link {href!r}: {e}")
        return None


def host_of(url: str) -> str:
    """Lowercased network location (host and non-default port) of a URL."""
    return urlsplit(url).netloc.lower()


def hostname_of(url: str) -> str:
    """Lowercased host name of a URL, without port."""
    return (urlsplit(url).hostname or '').lower()


def path_of(url: str) -> str:
    """Path component of a URL."""
    return urlsplit(url).path


def robots_url_for(url: str) -> str:
    """Location of the robots.txt governing a URL."""
    parsed = urlsplit(url)
    return urlunsplit((parsed.scheme, parsed.netloc, '/robots.txt', '', ''))

"""
HTML document parsing and link extraction.
"""

import logging
from typing import List, Optional
from dataclasses import dataclass, field
from bs4 import BeautifulSoup

from .urls import canonicalize


@dataclass
class ParsedDocument:
    """Parsed HTML page: the queryable document plus its outbound links."""
    url: str
    doc: Optional[BeautifulSoup] = None
    links: List[str] = field(default_factory=list)
    title: Optional[str] = None
    invalid_links: List[str] = field(default_factory=list)


class ContentParser:
    """
    Parses HTML content into a BeautifulSoup document and extracts the
    canonical absolute URLs of its ``<a href>`` links.
    """

    def __init__(self, features: str = 'lxml'):
        self.features = features
        self.logger = logging.getLogger(__name__)

    def parse(self, url: str, html_content: str) -> ParsedDocument:
        """
        Parse HTML content and extract links.

        Args:
            url: The URL of the page, used to resolve relative links
            html_content: Raw HTML content

        Returns:
            ParsedDocument with the document handle and ordered, de-duplicated links
        """
        soup = BeautifulSoup(html_content, self.features)
        parsed = ParsedDocument(url=url, doc=soup)

        self._extract_title(soup, parsed)
        self._extract_links(soup, parsed, self._base_url(soup, url))

        self.logger.debug(f"Parsed {url}: {len(parsed.links)} links")
        return parsed

    def extract_links(self, html_content: str, base_url: str) -> List[str]:
        """Sequence of absolute URLs linked from an HTML body."""
        return self.parse(base_url, html_content).links

    def _base_url(self, soup: BeautifulSoup, url: str) -> str:
        """Honour <base href> when resolving relative links."""
        base_tag = soup.find('base', href=True)
        if base_tag:
            base = canonicalize(base_tag['href'], url)
            if base:
                return base
        return url

    def _extract_title(self, soup: BeautifulSoup, parsed: ParsedDocument):
        title_tag = soup.find('title')
        if title_tag:
            parsed.title = title_tag.get_text(strip=True)

    def _extract_links(self, soup: BeautifulSoup, parsed: ParsedDocument, base_url: str):
        """Extract and normalize links, keeping document order."""
        seen = set()

        for anchor in soup.find_all('a', href=True):
            href = anchor['href'].strip()
            if not href or href.startswith('#'):
                continue

            link = canonicalize(href, base_url)
            if link is None:
                # mailto:, javascript: and unparsable hrefs
                parsed.invalid_links.append(href)
                continue

            if link not in seen:
                seen.add(link)
                parsed.links.append(link)

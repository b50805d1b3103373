"""
Page records: the stored result of fetching (or failing to fetch) one URL.
"""

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})


@dataclass(frozen=True)
class PageRecord:
    """One crawled resource. Records are never mutated once built."""
    url: str
    depth: int
    referer: Optional[str] = None
    status_code: int = 0
    links: Tuple[str, ...] = ()
    redirected_to: Optional[str] = None
    body: Optional[str] = None
    doc: Any = field(default=None, compare=False, repr=False)
    headers: Dict[str, str] = field(default_factory=dict, compare=False, repr=False)
    content_type: Optional[str] = None
    fetch_error: Optional[str] = None
    fetch_time: float = 0.0

    @property
    def is_html(self) -> bool:
        return bool(self.content_type) and 'html' in self.content_type

    @property
    def is_redirect(self) -> bool:
        return self.redirected_to is not None

    @property
    def ok(self) -> bool:
        """True when the page was fetched without error."""
        return self.fetch_error is None

    @property
    def title(self) -> Optional[str]:
        if self.doc is None or self.doc.title is None:
            return None
        return self.doc.title.get_text(strip=True)

    def without_body(self) -> 'PageRecord':
        """Copy of this record with the raw body and parsed document released."""
        return dataclasses.replace(self, body=None, doc=None)

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view of the record (the parsed document is left out)."""
        return {
            'url': self.url,
            'depth': self.depth,
            'referer': self.referer,
            'status_code': self.status_code,
            'links': list(self.links),
            'redirected_to': self.redirected_to,
            'content_type': self.content_type,
            'fetch_error': self.fetch_error,
            'fetch_time': self.fetch_time,
            'body': self.body,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PageRecord':
        return cls(
            url=data['url'],
            depth=data['depth'],
            referer=data.get('referer'),
            status_code=data.get('status_code', 0),
            links=tuple(data.get('links', ())),
            redirected_to=data.get('redirected_to'),
            body=data.get('body'),
            content_type=data.get('content_type'),
            fetch_error=data.get('fetch_error'),
            fetch_time=data.get('fetch_time', 0.0),
        )

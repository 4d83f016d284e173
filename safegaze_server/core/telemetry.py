"""In-memory redaction counters ("indecent pictures blurred", "harmful sites")."""

import threading
from collections import Counter
from typing import Dict, Optional
from urllib.parse import urlparse


def domain_of(url: Optional[str]) -> Optional[str]:
    """Host part of ``url``, or None for data URLs and unparsable input."""
    if not url or url.startswith("data:"):
        return None
    if url.startswith("//") or url.startswith("://"):
        url = "https:" + url.lstrip(":")
    host = urlparse(url).hostname
    return host.lower() if host else None


class RedactionCounters:
    """Process-wide counters. Not persisted; reset on restart."""

    def __init__(self):
        self._lock = threading.Lock()
        self._blurred_images = 0
        self._blurred_by_domain: Counter = Counter()
        self._harmful_domains = set()

    def record_blurred_image(self, source_url: Optional[str] = None) -> None:
        domain = domain_of(source_url)
        with self._lock:
            self._blurred_images += 1
            if domain:
                self._blurred_by_domain[domain] += 1

    def record_harmful_site(self, source_url: Optional[str]) -> None:
        """Mark the domain of an image classified NSFW."""
        domain = domain_of(source_url)
        if not domain:
            return
        with self._lock:
            self._harmful_domains.add(domain)

    @property
    def blurred_images(self) -> int:
        with self._lock:
            return self._blurred_images

    @property
    def harmful_sites(self) -> int:
        with self._lock:
            return len(self._harmful_domains)

    def blurred_for_domain(self, domain: str) -> int:
        with self._lock:
            return self._blurred_by_domain.get(domain.lower(), 0)

    def snapshot(self) -> Dict[str, object]:
        with self._lock:
            return {
                "blurred_images": self._blurred_images,
                "harmful_sites": len(self._harmful_domains),
                "blurred_by_domain": dict(self._blurred_by_domain),
            }

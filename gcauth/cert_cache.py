"""In-memory cache of validated Game Center public-key certificates.

Entries are keyed by certificate file name (e.g. ``gc-prod-10.cer``) and are
only ever inserted after chain-of-trust and subject validation succeeded.
There is no eviction and, by default, no expiry: an entry lives until the
process exits or the cache is cleared.

A single threading.Lock guards the map. No critical section awaits, so the
cache is safe to share between asyncio tasks and between threads running
their own event loops. The lock is never held across a network fetch; two
concurrent misses on the same name both fetch and the second put wins.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from cryptography import x509

log = logging.getLogger("gcauth.cert_cache")


@dataclass(frozen=True)
class CachedCertificate:
    """Validated certificate with the time it was cached."""

    certificate: x509.Certificate
    cached_at: float = field(default_factory=time.monotonic)


@dataclass
class CertificateCacheMetrics:
    """Metrics for cache operations."""

    hits: int = 0
    misses: int = 0
    expirations: int = 0

    def hit_rate(self) -> float:
        """Calculate cache hit rate (0.0 when there were no lookups)."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary for JSON serialization."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "expirations": self.expirations,
            "hit_rate": round(self.hit_rate(), 4),
        }

    def reset(self) -> None:
        """Reset all metrics to zero."""
        self.hits = 0
        self.misses = 0
        self.expirations = 0


class CertificateCache:
    """Thread-safe map of certificate name to validated certificate."""

    def __init__(
        self,
        max_age_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the cache.

        Args:
            max_age_seconds: Optional age after which an entry is dropped on
                lookup. None keeps entries for the process lifetime.
            clock: Monotonic time source, injectable for tests.
        """
        self._max_age_seconds = max_age_seconds
        self._clock = clock
        self._entries: Dict[str, CachedCertificate] = {}
        self._lock = threading.Lock()
        self._metrics = CertificateCacheMetrics()

    @property
    def metrics(self) -> CertificateCacheMetrics:
        return self._metrics

    def get(self, name: str) -> Optional[x509.Certificate]:
        """Return the cached certificate for name, or None."""
        with self._lock:
            entry = self._entries.get(name)
            if entry is None:
                self._metrics.misses += 1
                return None

            if (
                self._max_age_seconds is not None
                and self._clock() - entry.cached_at >= self._max_age_seconds
            ):
                del self._entries[name]
                self._metrics.expirations += 1
                self._metrics.misses += 1
                log.info(f"Certificate {name} exceeded max age, dropped from cache")
                return None

            self._metrics.hits += 1
            return entry.certificate

    def put(self, name: str, certificate: x509.Certificate) -> None:
        """Store a validated certificate. Last write wins."""
        entry = CachedCertificate(certificate=certificate, cached_at=self._clock())
        with self._lock:
            self._entries[name] = entry
        log.debug(f"Cached certificate {name}")

    def clear(self) -> int:
        """Remove every entry and return how many there were."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        log.debug(f"Cleared {count} entries from certificate cache")
        return count

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._entries

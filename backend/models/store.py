"""
In-memory sample store.

Holds the current record list for the API process. Imported records are
prepended, newest batch first.
"""

import logging
import threading
from typing import Iterable, List

from backend.models.sample import Sample

logger = logging.getLogger(__name__)


class SampleStore:
    """Process-local, ordered collection of samples."""

    def __init__(self, samples: Iterable[Sample] = ()):
        self._samples: List[Sample] = list(samples)
        self._lock = threading.Lock()

    def list(self) -> List[Sample]:
        """Return a snapshot of the current records."""
        with self._lock:
            return list(self._samples)

    def prepend(self, samples: Iterable[Sample]) -> int:
        """Insert a batch ahead of existing records, keeping batch order."""
        batch = list(samples)
        with self._lock:
            self._samples = batch + self._samples
            total = len(self._samples)
        logger.info(f"Prepended {len(batch)} samples (store size: {total})")
        return len(batch)

    def clear(self):
        with self._lock:
            self._samples = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)

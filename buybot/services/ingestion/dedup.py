"""
Dedup Ledger

Bounded FIFO set of transaction hashes already forwarded to the sink.
"""

from collections import OrderedDict
from typing import Any, Dict

from loguru import logger


DEFAULT_CAPACITY = 500


class DedupLedger:
    """
    Remembers the most recent ``capacity`` transaction hashes.

    Admission is the only gate in front of the sink: an id is admitted once
    and rejected afterwards until it falls out of the window. Eviction
    follows insertion order; lookups do not refresh an entry.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"Ledger capacity must be positive, got {capacity}")

        self.capacity = capacity
        self._seen: "OrderedDict[str, None]" = OrderedDict()

        # Statistics
        self.total_admitted: int = 0
        self.total_rejected: int = 0
        self.total_evicted: int = 0

    def admit(self, tx_id: str) -> bool:
        """
        Record ``tx_id`` if it is new.

        Returns:
            True if the event should be processed, False for a duplicate
        """
        if tx_id in self._seen:
            self.total_rejected += 1
            logger.debug(f"Skipping duplicate event: {tx_id}")
            return False

        self._seen[tx_id] = None
        self.total_admitted += 1

        if len(self._seen) > self.capacity:
            self._seen.popitem(last=False)
            self.total_evicted += 1

        return True

    def __contains__(self, tx_id: object) -> bool:
        return tx_id in self._seen

    def __len__(self) -> int:
        return len(self._seen)

    def get_status(self) -> Dict[str, Any]:
        return {
            'size': len(self._seen),
            'capacity': self.capacity,
            'total_admitted': self.total_admitted,
            'total_rejected': self.total_rejected,
            'total_evicted': self.total_evicted,
        }

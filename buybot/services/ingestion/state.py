"""Shared ingestion state, owned by the coordinator."""

from dataclasses import dataclass, asdict
from typing import Any, Dict


@dataclass
class IngestionState:
    """Watermark and outage markers for the purchase stream"""
    last_known_block: int = 0  # highest block observed or scanned, never regresses
    ws_connected: bool = False
    outage_start_block: int = 0  # 0 = no outage in progress
    reconnect_attempts: int = 0

    @property
    def in_outage(self) -> bool:
        return self.outage_start_block > 0 and self.last_known_block > 0

    def advance_watermark(self, block_number: int) -> bool:
        """Move the watermark forward; lower block numbers are ignored"""
        if block_number > self.last_known_block:
            self.last_known_block = block_number
            return True
        return False

    def clear_outage(self):
        self.outage_start_block = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

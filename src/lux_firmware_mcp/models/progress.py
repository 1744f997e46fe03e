"""Transfer progress record for a single update attempt."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum


class Phase(str, Enum):
    """Update state machine phases."""

    READY = "ready"
    AWAITING_ACK = "awaiting_ack"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class TransferProgress:
    """Mutable state of one update attempt, owned by the updater."""

    phase: Phase = Phase.READY
    next_package_index: int = 1
    consecutive_failures: int = 0
    prepare_acked: bool = False
    reset_acked: bool = False
    standard_update_hint: bool = False
    last_package_sent_at: float | None = None

    def to_dict(self) -> dict:
        result = asdict(self)
        result["phase"] = self.phase.value
        return result

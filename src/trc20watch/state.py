"""Per-wallet scan cursors persisted between runs.

The state file is a JSON document::

    {"wallets": {"T...": {"last_ts": 1708387878000, "processed": {"<txid>": 1708387878000}}}}

``last_ts`` is the newest block timestamp seen for the wallet and
``processed`` is a bounded set of txids already handled, kept with their
block time so the oldest can be evicted.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Union

logger = logging.getLogger(__name__)

PRUNE_THRESHOLD = 3000
PRUNE_KEEP = 2000


@dataclass
class WalletScanState:
    """Watermark and dedup set for one wallet."""

    last_ts: int = 0
    processed: dict[str, int] = field(default_factory=dict)

    def is_processed(self, txid: str) -> bool:
        return txid in self.processed

    def mark_processed(self, txid: str, block_ts: int) -> None:
        self.processed[txid] = block_ts

    def advance(self, block_ts: int) -> None:
        """Move the watermark forward; never moves it back."""
        if block_ts > self.last_ts:
            self.last_ts = block_ts

    def copy(self) -> "WalletScanState":
        return WalletScanState(last_ts=self.last_ts, processed=dict(self.processed))

    def to_dict(self) -> dict:
        return {"last_ts": self.last_ts, "processed": self.processed}

    @classmethod
    def from_dict(cls, data: dict) -> "WalletScanState":
        processed = data.get("processed") or {}
        return cls(
            last_ts=int(data.get("last_ts") or 0),
            processed={str(txid): int(ts or 0) for txid, ts in processed.items()},
        )


def prune_processed(
    processed: dict[str, int],
    threshold: int = PRUNE_THRESHOLD,
    keep: int = PRUNE_KEEP,
) -> dict[str, int]:
    """Evict old txids once the dedup set grows past ``threshold``.

    Nothing happens at or below ``threshold`` entries. Above it, only the
    ``keep`` most recent entries (by block time) survive. The gap between the
    two values means pruning runs once every ``threshold - keep`` new txids
    rather than on every scan.

    An evicted txid is only protected by the watermark afterwards. If the
    explorer re-serves it above the watermark it will be handled again (the
    ledger write is idempotent, so that costs a lookup, not a duplicate).
    """
    if keep > threshold:
        raise ValueError(f"keep ({keep}) must not exceed threshold ({threshold})")

    if len(processed) <= threshold:
        return processed

    newest = sorted(processed.items(), key=lambda item: item[1], reverse=True)[:keep]
    logger.debug(f"Pruned dedup set from {len(processed)} to {len(newest)} entries")
    return dict(newest)


class ScanStateStore:
    """Loads and saves all wallet cursors as one JSON file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).resolve()

    def load(self, addresses: Iterable[str] = ()) -> dict[str, WalletScanState]:
        """Read all cursors, adding fresh ones for ``addresses`` that lack one.

        A missing, empty or unreadable file yields an empty state.
        """
        data = self._read()
        wallets = data.get("wallets") if isinstance(data, dict) else None
        if not isinstance(wallets, dict):
            wallets = {}

        states: dict[str, WalletScanState] = {}
        for address, raw in wallets.items():
            try:
                states[address] = WalletScanState.from_dict(raw)
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning(f"Discarding corrupt scan state for {address}: {e}")

        for address in addresses:
            states.setdefault(address, WalletScanState())

        return states

    def save(self, states: dict[str, WalletScanState]) -> bool:
        """Write all cursors atomically.

        Returns:
            True on success. Failures are logged and reported as False.
        """
        payload = {"wallets": {address: s.to_dict() for address, s in states.items()}}
        tmp_path = self.path.with_name(self.path.name + ".tmp")

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
            return True
        except OSError as e:
            logger.error(f"Failed to write state file {self.path}: {e}")
            return False

    def _read(self) -> dict:
        if not self.path.exists():
            return {}

        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to read state file {self.path}: {e}")
            return {}

        if not raw.strip():
            return {}

        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"State file {self.path} is not valid JSON, starting fresh: {e}")
            return {}

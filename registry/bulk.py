"""Bulk mint processor.

Folds an ordered list of amounts through single-asset creation. Batch-level
violations (non-admin caller, length outside ``[1, max_batch_size]``) abort
the whole call before anything is minted. Per-item failures are soft: an
amount that creation rejects as invalid is dropped and the fold continues, so
the returned ids may be fewer than the inputs and say nothing about which
inputs were skipped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, List, Sequence

from registry.access import AccessGate
from registry.hardening import InvalidValue, Validators, require
from registry.ledger import Identity
from registry.observability import RegistryLayer, get_logger

logger = get_logger("processor", RegistryLayer.BULK)


@dataclass
class BatchMintReport:
    """Outcome of one bulk mint."""
    ids: List[int] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)  # input positions
    requested: int = 0

    @property
    def minted(self) -> int:
        return len(self.ids)


class BulkMintProcessor:
    def __init__(
        self,
        gate: AccessGate,
        create: Callable[[Identity, Any], int],
        max_batch_size: int = Validators.MAX_BATCH_SIZE,
    ):
        self._gate = gate
        self._create = create
        self.max_batch_size = max_batch_size

    def run(self, caller: Identity, amounts: Sequence[Any]) -> BatchMintReport:
        """Mint each amount in order; the caller must run this in a transaction."""
        self._gate.require_admin(caller, "create_multiple")
        items = require(Validators.validate_batch(amounts, max_size=self.max_batch_size))

        report = BatchMintReport(requested=len(items))
        for position, amount in enumerate(items):
            try:
                asset_id = self._create(caller, amount)
            except InvalidValue:
                report.skipped.append(position)
                continue
            if len(report.ids) < self.max_batch_size:
                report.ids.append(asset_id)

        logger.debug(
            "batch folded",
            operation="create_multiple",
            requested=report.requested,
            minted=report.minted,
            skipped=len(report.skipped),
        )
        return report

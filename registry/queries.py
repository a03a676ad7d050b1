"""Read-only projections over the asset ledger.

Queries take no caller and perform no authorization. Lookups of an id that
does not exist raise ``AssetNotFound``; predicates answer ``False`` instead.
``get_range`` assembles one ``AssetDetail`` per id and fails as a whole if any
id in the window is missing.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from registry.hardening import Validators, require
from registry.ledger import AssetLedger, Identity
from registry.lifecycle import AssetState, state_of


@dataclass(frozen=True)
class AssetDetail:
    """Detail record for one existing asset."""
    asset_id: int
    owner: Identity
    value: int
    deactivated: bool
    notes: Optional[str] = None

    @property
    def state(self) -> AssetState:
        return AssetState.DEACTIVATED if self.deactivated else AssetState.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["owner"] = str(self.owner)
        return d


class RegistryQueries:
    def __init__(
        self,
        ledger: AssetLedger,
        max_range_count: int = Validators.MAX_RANGE_COUNT,
        dormant_sentinel: str = "DORMANT",
    ):
        self._ledger = ledger
        self.max_range_count = max_range_count
        self.dormant_sentinel = dormant_sentinel

    # Single-id lookups

    def get_value(self, asset_id: int) -> int:
        return self._ledger.value_of(asset_id)

    def get_holder(self, asset_id: int) -> Identity:
        return self._ledger.owner_of(asset_id)

    def get_status(self, asset_id: int) -> bool:
        """True when the asset is deactivated."""
        self._ledger.require(asset_id)
        return self._ledger.is_deactivated(asset_id)

    def get_state(self, asset_id: int) -> AssetState:
        self._ledger.require(asset_id)
        return state_of(self._ledger, asset_id)

    def get_notes(self, asset_id: int) -> Optional[str]:
        self._ledger.require(asset_id)
        return self._ledger.note_of(asset_id)

    def get_details(self, asset_id: int) -> AssetDetail:
        return AssetDetail(
            asset_id=asset_id,
            owner=self.get_holder(asset_id),
            value=self.get_value(asset_id),
            deactivated=self.get_status(asset_id),
            notes=self.get_notes(asset_id),
        )

    # Predicates

    def exists(self, asset_id: int) -> bool:
        return self._ledger.exists(asset_id)

    def can_transfer(self, asset_id: int, identity: Identity) -> bool:
        return (
            self._ledger.exists(asset_id)
            and self._ledger.owner_of(asset_id) == identity
            and not self._ledger.is_deactivated(asset_id)
        )

    def can_deactivate(self, asset_id: int, identity: Identity) -> bool:
        # Same gate as transfer: owner match on an active asset.
        return self.can_transfer(asset_id, identity)

    def is_dormant(self, asset_id: int) -> bool:
        return self._ledger.exists(asset_id) and self._ledger.note_of(asset_id) == self.dormant_sentinel

    # Aggregates

    def total_created(self) -> int:
        return self._ledger.counter

    def current_count(self) -> int:
        return self._ledger.counter

    def existing_count(self) -> int:
        """Assets that still exist (combine deletes sources)."""
        return len(self._ledger)

    # Scans

    def get_range(self, start: int, count: int) -> List[AssetDetail]:
        """Detail records for ids [start, start + count)."""
        start, count = require(Validators.validate_range(start, count, self.max_range_count))
        return [self.get_details(asset_id) for asset_id in range(start, start + count)]

    def list_assets(self, owner: Optional[Identity] = None) -> List[AssetDetail]:
        ids = self._ledger.asset_ids()
        if owner is not None:
            ids = [i for i in ids if self._ledger.owner_of(i) == owner]
        return [self.get_details(i) for i in ids]

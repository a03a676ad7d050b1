"""
Asset Ledger

The single source of truth for the registry: four id-keyed stores (owner,
value, deactivated flag, notes) and a monotonic id counter.

Existence of an asset is defined solely by its owner entry. Ids are assigned
sequentially from the counter and never reused; a destructive merge deletes
the owner and value entries but leaves notes and the deactivated flag behind
as orphans.

Every mutation from the operation layer runs inside ``transaction()``, which
snapshots the stores and restores them if an exception escapes, so a rejected
operation never leaves partial writes.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import json
import os
import pathlib
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Hashable, Iterator, List, Optional, Union

from jsonschema import Draft202012Validator

from registry.hardening import (
    AssetNotFound,
    AtomicCounter,
    InvariantChecker,
    InvariantViolation,
)

LEDGER_FORMAT_VERSION = 1
SCHEMA_DIR = pathlib.Path(__file__).resolve().parent / "schemas"

Identity = Hashable


class LedgerFormatError(ValueError):
    """Persisted ledger does not match the ledger schema."""
    pass


@dataclass(frozen=True)
class LedgerSnapshot:
    """Point-in-time copy of every store and the counter."""
    counter: int
    owners: Dict[int, Identity]
    values: Dict[int, int]
    deactivated: Dict[int, bool]
    notes: Dict[int, str]


class AssetLedger:
    """Id-keyed asset stores plus the last-assigned id."""

    def __init__(self) -> None:
        self._owners: Dict[int, Identity] = {}
        self._values: Dict[int, int] = {}
        self._deactivated: Dict[int, bool] = {}
        self._notes: Dict[int, str] = {}
        self._counter = AtomicCounter(0)
        self._lock = threading.RLock()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @property
    def counter(self) -> int:
        return self._counter.get()

    def exists(self, asset_id: int) -> bool:
        return asset_id in self._owners

    def require(self, asset_id: int) -> None:
        if asset_id not in self._owners:
            raise AssetNotFound(asset_id)

    def owner_of(self, asset_id: int) -> Identity:
        self.require(asset_id)
        return self._owners[asset_id]

    def value_of(self, asset_id: int) -> int:
        self.require(asset_id)
        return self._values.get(asset_id, 0)

    def is_deactivated(self, asset_id: int) -> bool:
        return self._deactivated.get(asset_id, False)

    def note_of(self, asset_id: int) -> Optional[str]:
        return self._notes.get(asset_id)

    def asset_ids(self) -> List[int]:
        """Ids of existing assets in ascending order."""
        return sorted(self._owners)

    def __len__(self) -> int:
        return len(self._owners)

    def __contains__(self, asset_id: object) -> bool:
        return asset_id in self._owners

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def allocate(self, owner: Identity, value: int) -> int:
        """Assign the next id to a new active asset."""
        asset_id = self._counter.get() + 1
        self._owners[asset_id] = owner
        self._values[asset_id] = value
        self._deactivated[asset_id] = False
        self._counter.increment()
        return asset_id

    def set_owner(self, asset_id: int, owner: Identity) -> None:
        self._owners[asset_id] = owner

    def set_value(self, asset_id: int, value: int) -> None:
        InvariantChecker.check_non_negative(f"value[{asset_id}]", value)
        self._values[asset_id] = value

    def set_deactivated(self, asset_id: int, deactivated: bool) -> None:
        self._deactivated[asset_id] = deactivated

    def set_note(self, asset_id: int, text: str) -> None:
        self._notes[asset_id] = text

    def clear_note(self, asset_id: int) -> bool:
        return self._notes.pop(asset_id, None) is not None

    def delete(self, asset_id: int) -> None:
        """Remove the owner and value entries; notes are left in place."""
        self._owners.pop(asset_id, None)
        self._values.pop(asset_id, None)

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def snapshot(self) -> LedgerSnapshot:
        with self._lock:
            return LedgerSnapshot(
                counter=self._counter.get(),
                owners=dict(self._owners),
                values=dict(self._values),
                deactivated=dict(self._deactivated),
                notes=dict(self._notes),
            )

    def restore(self, snap: LedgerSnapshot) -> None:
        with self._lock:
            self._owners = dict(snap.owners)
            self._values = dict(snap.values)
            self._deactivated = dict(snap.deactivated)
            self._notes = dict(snap.notes)
            self._counter.reset(snap.counter)

    @contextmanager
    def transaction(self) -> Iterator["AssetLedger"]:
        """
        Run a block of writes all-or-nothing.

        The ledger lock is held for the whole block; on any exception the
        stores and counter are restored to their state on entry and the
        exception propagates.
        """
        with self._lock:
            snap = self.snapshot()
            try:
                yield self
            except BaseException:
                self.restore(snap)
                raise
            InvariantChecker.check_monotonic_increase("counter", snap.counter, self._counter.get())

    # -------------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------------

    def verify(self) -> None:
        """Raise InvariantViolation if the stores are inconsistent."""
        counter = self._counter.get()
        for asset_id, value in self._values.items():
            InvariantChecker.check_non_negative(f"value[{asset_id}]", value)
        for asset_id in self._owners:
            if asset_id < 1 or asset_id > counter:
                raise InvariantViolation(f"asset id {asset_id} outside assigned range 1..{counter}")
            if asset_id not in self._values:
                raise InvariantViolation(f"asset {asset_id} has an owner but no value")
        stray = set(self._values) - set(self._owners)
        if stray:
            raise InvariantViolation(f"values recorded for non-existent assets: {sorted(stray)}")

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "version": LEDGER_FORMAT_VERSION,
                "counter": self._counter.get(),
                "owners": {str(k): self._owners[k] for k in sorted(self._owners)},
                "values": {str(k): self._values[k] for k in sorted(self._values)},
                "deactivated": {str(k): self._deactivated[k] for k in sorted(self._deactivated)},
                "notes": {str(k): self._notes[k] for k in sorted(self._notes)},
            }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AssetLedger":
        """Build a ledger from its persisted form, validating it first."""
        validator = ledger_schema_validator()
        errs = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
        if errs:
            where = "/".join(str(p) for p in errs[0].path) or "<root>"
            raise LedgerFormatError(f"invalid ledger at {where}: {errs[0].message}")

        ledger = cls()
        ledger._owners = {int(k): v for k, v in data["owners"].items()}
        ledger._values = {int(k): v for k, v in data["values"].items()}
        ledger._deactivated = {int(k): v for k, v in data.get("deactivated", {}).items()}
        ledger._notes = {int(k): v for k, v in data.get("notes", {}).items()}
        ledger._counter.reset(data["counter"])
        try:
            ledger.verify()
        except InvariantViolation as e:
            raise LedgerFormatError(f"invalid ledger: {e}") from e
        return ledger


_schema_cache: Dict[str, Draft202012Validator] = {}


def ledger_schema_validator() -> Draft202012Validator:
    path = SCHEMA_DIR / "ledger.schema.json"
    key = str(path)
    if key not in _schema_cache:
        schema = json.loads(path.read_text(encoding="utf-8"))
        _schema_cache[key] = Draft202012Validator(schema)
    return _schema_cache[key]


def load_ledger(path: Union[str, pathlib.Path]) -> AssetLedger:
    """Load a ledger file; a missing file yields an empty ledger."""
    path = pathlib.Path(path)
    if not path.exists():
        return AssetLedger()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise LedgerFormatError(f"ledger file is not valid JSON: {path}: {e}") from e
    return AssetLedger.from_dict(data)


def save_ledger(path: Union[str, pathlib.Path], ledger: AssetLedger) -> None:
    """Write the ledger atomically (temp file then replace)."""
    path = pathlib.Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(ledger.to_dict(), indent=2, sort_keys=True) + "\n"
    fd, tmp = tempfile.mkstemp(prefix=".ledger-", suffix=".json", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp, path)
    except BaseException:
        pathlib.Path(tmp).unlink(missing_ok=True)
        raise

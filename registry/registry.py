"""
Asset Registry

The public operation surface. Every mutating operation runs under the
registry lock inside a ledger transaction:

    caller ─► AccessGate ─► precondition checks ─► ledger writes ─► result
                                   │
                                   └─ first failure raises a RegistryError;
                                      the transaction restores the ledger

Each operation is logged with its duration and recorded in the audit trail
with outcome ``success``, ``denied`` (authorization) or ``failure``.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence

from registry.access import AccessGate
from registry.bulk import BatchMintReport, BulkMintProcessor
from registry.config import RegistryConfig
from registry.hardening import (
    InvalidValue,
    InvariantChecker,
    RegistryError,
    UnauthorizedAdmin,
    UnauthorizedAsset,
    Validators,
    atomic,
    require,
)
from registry.ledger import AssetLedger, Identity
from registry.lifecycle import (
    AssetState,
    LifecycleAction,
    apply_transition,
    require_active,
)
from registry.observability import (
    AuditEventType,
    AuditLogger,
    RegistryLayer,
    get_logger,
)
from registry.queries import AssetDetail, RegistryQueries

logger = get_logger("registry", RegistryLayer.LEDGER)
lifecycle_logger = get_logger("registry", RegistryLayer.LIFECYCLE)


class AssetRegistry:
    """
    Stateful registry of uniquely identified assets.

    The administrator is fixed for the lifetime of the instance. Callers are
    passed explicitly to every operation that needs authorization.
    """

    def __init__(
        self,
        admin: Identity,
        ledger: Optional[AssetLedger] = None,
        config: Optional[RegistryConfig] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self._config = config or RegistryConfig()
        limits = self._config.limits
        self._ledger = ledger if ledger is not None else AssetLedger()
        self._gate = AccessGate(admin, self._ledger)
        self._audit = audit if audit is not None else AuditLogger(
            enabled=self._config.observability.audit_enabled.get()
        )
        self._lock = threading.RLock()

        self.max_note_length: int = limits.max_note_length.get()
        self.dormant_sentinel: str = limits.dormant_sentinel.get()
        self._queries = RegistryQueries(
            self._ledger,
            max_range_count=limits.max_range_count.get(),
            dormant_sentinel=self.dormant_sentinel,
        )
        self._bulk = BulkMintProcessor(
            self._gate,
            self._create,
            max_batch_size=limits.max_batch_size.get(),
        )

    @property
    def admin(self) -> Identity:
        return self._gate.admin

    @property
    def ledger(self) -> AssetLedger:
        return self._ledger

    @property
    def audit(self) -> AuditLogger:
        return self._audit

    # -------------------------------------------------------------------------
    # Operation envelope
    # -------------------------------------------------------------------------

    @contextmanager
    def _operation(
        self,
        action: str,
        caller: Identity,
        resource: Any,
        event_type: AuditEventType,
    ) -> Iterator[Dict[str, Any]]:
        """Lock, transaction, timing, logging and audit around one operation."""
        details: Dict[str, Any] = {}
        start = time.monotonic()
        with self._lock:
            try:
                with self._ledger.transaction():
                    yield details
            except RegistryError as e:
                duration_ms = (time.monotonic() - start) * 1000
                outcome = "denied" if isinstance(e, (UnauthorizedAdmin, UnauthorizedAsset)) else "failure"
                logger.warning(
                    f"{action} rejected: {e.message}",
                    operation=action,
                    error_code=str(int(e.code)),
                    duration_ms=duration_ms,
                    caller=str(caller),
                    resource=str(resource),
                )
                self._audit.log(
                    event_type, caller, resource, action, outcome,
                    {"code": int(e.code), "message": e.message},
                )
                raise
            duration_ms = (time.monotonic() - start) * 1000
            logger.operation(action, duration_ms, True, caller=str(caller), resource=str(resource))
            self._audit.log(event_type, caller, resource, action, "success", details)

    @staticmethod
    def _asset_id(value: Any, field_name: str = "asset_id") -> int:
        return require(Validators.validate_asset_id(value, field_name))

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def _create(self, caller: Identity, amount: Any) -> int:
        """Admin-checked single creation; no envelope."""
        self._gate.require_admin(caller, "create")
        amount = require(Validators.validate_amount(amount))
        before = self._ledger.counter
        asset_id = self._ledger.allocate(caller, amount)
        InvariantChecker.check_monotonic_increase("counter", before + 1, self._ledger.counter)
        return asset_id

    def create_single(self, caller: Identity, amount: int) -> int:
        """Mint one asset owned by the administrator; returns the new id."""
        with self._operation("create_single", caller, "-", AuditEventType.ASSET_CREATED) as details:
            asset_id = self._create(caller, amount)
            details.update(asset_id=asset_id, value=amount)
        return asset_id

    def create_multiple_report(self, caller: Identity, amounts: Sequence[int]) -> BatchMintReport:
        with self._operation("create_multiple", caller, "-", AuditEventType.BATCH_MINTED) as details:
            report = self._bulk.run(caller, amounts)
            details.update(ids=report.ids, requested=report.requested)
        return report

    def create_multiple(self, caller: Identity, amounts: Sequence[int]) -> List[int]:
        """Mint a batch; invalid amounts are dropped without an error."""
        return self.create_multiple_report(caller, amounts).ids

    # -------------------------------------------------------------------------
    # Ownership
    # -------------------------------------------------------------------------

    def transfer(self, caller: Identity, asset_id: int, sender: Identity, recipient: Identity) -> None:
        """
        Pull-style transfer: only the recipient may execute it, naming the
        current owner as sender, and only while the asset is active.
        """
        with self._operation("transfer", caller, asset_id, AuditEventType.ASSET_TRANSFERRED) as details:
            asset_id = self._asset_id(asset_id)
            owner = self._ledger.owner_of(asset_id)
            if recipient != caller:
                raise UnauthorizedAsset("transfer must be executed by the recipient", asset_id=asset_id)
            if sender != owner:
                raise UnauthorizedAsset(f"sender does not own asset {asset_id}", asset_id=asset_id)
            require_active(self._ledger, asset_id)
            self._ledger.set_owner(asset_id, recipient)
            details.update(sender=str(sender), recipient=str(recipient))

    def reclaim(self, caller: Identity, asset_id: int) -> None:
        """Administrator takes ownership of an active asset."""
        with self._operation("reclaim", caller, asset_id, AuditEventType.OWNERSHIP_RECLAIMED) as details:
            asset_id = self._asset_id(asset_id)
            self._gate.require_admin(caller, "reclaim")
            previous = self._ledger.owner_of(asset_id)
            require_active(self._ledger, asset_id)
            self._ledger.set_owner(asset_id, self._gate.admin)
            details.update(previous_owner=str(previous))

    def claim_ownership(self, caller: Identity, asset_id: int) -> None:
        """
        Make the caller the owner of any existing asset.

        There is no check of the caller's relationship to the asset: any
        identity may seize any existing asset. Every claim is logged at
        warning level and audited.
        """
        with self._operation("claim_ownership", caller, asset_id, AuditEventType.OWNERSHIP_CLAIMED) as details:
            asset_id = self._asset_id(asset_id)
            previous = self._ledger.owner_of(asset_id)
            self._ledger.set_owner(asset_id, caller)
            details.update(previous_owner=str(previous))
        if previous != caller:
            logger.warning(
                "unrestricted ownership claim",
                operation="claim_ownership",
                asset_id=asset_id,
                previous_owner=str(previous),
                caller=str(caller),
            )

    # -------------------------------------------------------------------------
    # Value
    # -------------------------------------------------------------------------

    def modify_value(self, caller: Identity, asset_id: int, new_value: int) -> None:
        """Overwrite the value of an existing asset; no ownership check."""
        with self._operation("modify_value", caller, asset_id, AuditEventType.VALUE_CHANGED) as details:
            asset_id = self._asset_id(asset_id)
            old = self._ledger.value_of(asset_id)
            new_value = require(Validators.validate_amount(new_value, "new_value"))
            self._ledger.set_value(asset_id, new_value)
            details.update(old_value=old, new_value=new_value)

    def reduce_value(self, caller: Identity, asset_id: int, amount: int) -> None:
        with self._operation("reduce_value", caller, asset_id, AuditEventType.VALUE_CHANGED) as details:
            asset_id = self._asset_id(asset_id)
            self._gate.require_admin(caller, "reduce_value")
            old = self._ledger.value_of(asset_id)
            amount = require(Validators.validate_reduction(amount))
            InvariantChecker.check_value_sufficient(asset_id, old, amount)
            self._ledger.set_value(asset_id, old - amount)
            details.update(old_value=old, new_value=old - amount)

    def redeem(self, caller: Identity, asset_id: int) -> None:
        """Owner zeroes the asset's value."""
        with self._operation("redeem", caller, asset_id, AuditEventType.VALUE_CHANGED) as details:
            asset_id = self._asset_id(asset_id)
            self._gate.require_owner(caller, asset_id, "redeem")
            details.update(old_value=self._ledger.value_of(asset_id), new_value=0)
            self._ledger.set_value(asset_id, 0)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _transition(self, caller: Identity, asset_id: Any, action: LifecycleAction, admin_only: bool) -> AssetState:
        with self._operation(action.value, caller, asset_id, AuditEventType.LIFECYCLE_CHANGED) as details:
            asset_id = self._asset_id(asset_id)
            if admin_only:
                self._gate.require_admin(caller, action.value)
            else:
                self._gate.require_owner(caller, asset_id, action.value)
            source, target = apply_transition(self._ledger, asset_id, action)
            details.update(from_state=source.value, to_state=target.value)
        lifecycle_logger.debug(
            "lifecycle transition",
            operation=action.value,
            asset_id=asset_id,
            from_state=source.value,
            to_state=target.value,
        )
        return target

    def deactivate(self, caller: Identity, asset_id: int) -> AssetState:
        """Owner deactivates an active asset. Reversible, see ``restore_deactivated``."""
        return self._transition(caller, asset_id, LifecycleAction.DEACTIVATE, admin_only=False)

    def suspend(self, caller: Identity, asset_id: int) -> AssetState:
        return self._transition(caller, asset_id, LifecycleAction.SUSPEND, admin_only=False)

    def reactivate(self, caller: Identity, asset_id: int) -> AssetState:
        return self._transition(caller, asset_id, LifecycleAction.REACTIVATE, admin_only=False)

    def mark_inactive(self, caller: Identity, asset_id: int) -> AssetState:
        return self._transition(caller, asset_id, LifecycleAction.MARK_INACTIVE, admin_only=True)

    def restore_deactivated(self, caller: Identity, asset_id: int) -> AssetState:
        return self._transition(caller, asset_id, LifecycleAction.RESTORE, admin_only=True)

    # -------------------------------------------------------------------------
    # Merging
    # -------------------------------------------------------------------------

    def _merge_operands(self, source: Any, target: Any) -> tuple:
        source = self._asset_id(source, "source")
        target = self._asset_id(target, "target")
        return source, target

    def _check_merge(self, source: int, target: int) -> tuple:
        source_value = self._ledger.value_of(source)
        target_value = self._ledger.value_of(target)
        if source == target:
            raise InvalidValue(f"cannot merge asset {source} into itself", asset_id=source)
        return source_value, target_value

    def combine(self, caller: Identity, source: int, target: int) -> int:
        """
        Add the source's value to the target and delete the source.

        The source stops existing; its id is never reissued and any notes it
        had stay behind. Open to any caller. Merging an asset into itself is
        rejected with InvalidValue. Returns the target's new value.
        """
        with self._operation("combine", caller, f"{source}->{target}", AuditEventType.ASSETS_MERGED) as details:
            source, target = self._merge_operands(source, target)
            source_value, target_value = self._check_merge(source, target)
            self._ledger.set_value(target, target_value + source_value)
            self._ledger.delete(source)
            details.update(source=source, target=target, moved=source_value, destructive=True)
        return target_value + source_value

    def consolidate(self, caller: Identity, source: int, target: int) -> int:
        """
        Administrator moves the source's value to the target, keeping the
        source at zero. A source equal to the target is rejected with
        InvalidValue.
        """
        with self._operation("consolidate", caller, f"{source}->{target}", AuditEventType.ASSETS_MERGED) as details:
            source, target = self._merge_operands(source, target)
            self._gate.require_admin(caller, "consolidate")
            source_value, target_value = self._check_merge(source, target)
            self._ledger.set_value(target, target_value + source_value)
            self._ledger.set_value(source, 0)
            details.update(source=source, target=target, moved=source_value, destructive=False)
        return target_value + source_value

    # -------------------------------------------------------------------------
    # Notes
    # -------------------------------------------------------------------------

    def add_information(self, caller: Identity, asset_id: int, text: str) -> None:
        with self._operation("add_information", caller, asset_id, AuditEventType.NOTES_CHANGED) as details:
            asset_id = self._asset_id(asset_id)
            self._gate.require_owner(caller, asset_id, "add_information")
            text = require(Validators.validate_note(text, max_length=self.max_note_length))
            self._ledger.set_note(asset_id, text)
            details.update(length=len(text))

    def remove_information(self, caller: Identity, asset_id: int) -> bool:
        with self._operation("remove_information", caller, asset_id, AuditEventType.NOTES_CHANGED) as details:
            asset_id = self._asset_id(asset_id)
            self._gate.require_owner(caller, asset_id, "remove_information")
            removed = self._ledger.clear_note(asset_id)
            details.update(removed=removed)
        return removed

    def purge_information(self, caller: Identity, asset_id: int) -> bool:
        with self._operation("purge_information", caller, asset_id, AuditEventType.NOTES_CHANGED) as details:
            asset_id = self._asset_id(asset_id)
            self._gate.require_admin(caller, "purge_information")
            self._ledger.require(asset_id)
            removed = self._ledger.clear_note(asset_id)
            details.update(removed=removed)
        return removed

    def mark_dormant(self, caller: Identity, asset_id: int) -> None:
        """Annotate the asset as dormant. The lifecycle flag is untouched."""
        with self._operation("mark_dormant", caller, asset_id, AuditEventType.NOTES_CHANGED):
            asset_id = self._asset_id(asset_id)
            self._gate.require_owner(caller, asset_id, "mark_dormant")
            self._ledger.set_note(asset_id, self.dormant_sentinel)

    def restore_active(self, caller: Identity, asset_id: int) -> bool:
        """End dormancy. Only the dormant marker is cleared; any other note stays."""
        with self._operation("restore_active", caller, asset_id, AuditEventType.NOTES_CHANGED) as details:
            asset_id = self._asset_id(asset_id)
            self._gate.require_owner(caller, asset_id, "restore_active")
            cleared = self._ledger.note_of(asset_id) == self.dormant_sentinel
            if cleared:
                self._ledger.clear_note(asset_id)
            details.update(cleared=cleared)
        return cleared

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @atomic
    def get_value(self, asset_id: int) -> int:
        return self._queries.get_value(asset_id)

    @atomic
    def get_holder(self, asset_id: int) -> Identity:
        return self._queries.get_holder(asset_id)

    @atomic
    def get_status(self, asset_id: int) -> bool:
        return self._queries.get_status(asset_id)

    @atomic
    def get_state(self, asset_id: int) -> AssetState:
        return self._queries.get_state(asset_id)

    @atomic
    def get_notes(self, asset_id: int) -> Optional[str]:
        return self._queries.get_notes(asset_id)

    @atomic
    def get_details(self, asset_id: int) -> AssetDetail:
        return self._queries.get_details(asset_id)

    @atomic
    def exists(self, asset_id: int) -> bool:
        return self._queries.exists(asset_id)

    @atomic
    def can_transfer(self, asset_id: int, identity: Identity) -> bool:
        return self._queries.can_transfer(asset_id, identity)

    @atomic
    def can_deactivate(self, asset_id: int, identity: Identity) -> bool:
        return self._queries.can_deactivate(asset_id, identity)

    @atomic
    def is_dormant(self, asset_id: int) -> bool:
        return self._queries.is_dormant(asset_id)

    @atomic
    def total_created(self) -> int:
        return self._queries.total_created()

    @atomic
    def current_count(self) -> int:
        return self._queries.current_count()

    @atomic
    def existing_count(self) -> int:
        return self._queries.existing_count()

    @atomic
    def get_range(self, start: int, count: int) -> List[AssetDetail]:
        return self._queries.get_range(start, count)

    @atomic
    def list_assets(self, owner: Optional[Identity] = None) -> List[AssetDetail]:
        return self._queries.list_assets(owner)

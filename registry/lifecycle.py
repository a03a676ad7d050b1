"""Asset lifecycle state machine.

Two states, Active and Deactivated, with no terminal state. Each lifecycle
action is described by a rule naming who may run it, which state it requires
(if any) and the state it produces. Applying an action checks the rule's
precondition against the ledger and then writes the deactivated flag.

Dormancy (see ``AssetRegistry.mark_dormant``) is an annotation on the notes
store and is not part of this machine.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Set, Tuple

from registry.hardening import (
    AlreadyDeactivated,
    AssetNotDeactivated,
    InvariantChecker,
)
from registry.ledger import AssetLedger


class AssetState(Enum):
    ACTIVE = "active"
    DEACTIVATED = "deactivated"


class Authority(Enum):
    OWNER = "owner"
    ADMIN = "admin"


class LifecycleAction(Enum):
    DEACTIVATE = "deactivate"
    SUSPEND = "suspend"
    REACTIVATE = "reactivate"
    MARK_INACTIVE = "mark_inactive"
    RESTORE = "restore_deactivated"


@dataclass(frozen=True)
class TransitionRule:
    action: LifecycleAction
    authority: Authority
    requires: Optional[AssetState]
    target: AssetState


TRANSITION_RULES: Dict[LifecycleAction, TransitionRule] = {
    LifecycleAction.DEACTIVATE: TransitionRule(
        LifecycleAction.DEACTIVATE, Authority.OWNER, AssetState.ACTIVE, AssetState.DEACTIVATED
    ),
    LifecycleAction.SUSPEND: TransitionRule(
        LifecycleAction.SUSPEND, Authority.OWNER, AssetState.ACTIVE, AssetState.DEACTIVATED
    ),
    LifecycleAction.REACTIVATE: TransitionRule(
        LifecycleAction.REACTIVATE, Authority.OWNER, None, AssetState.ACTIVE
    ),
    LifecycleAction.MARK_INACTIVE: TransitionRule(
        LifecycleAction.MARK_INACTIVE, Authority.ADMIN, None, AssetState.DEACTIVATED
    ),
    LifecycleAction.RESTORE: TransitionRule(
        LifecycleAction.RESTORE, Authority.ADMIN, AssetState.DEACTIVATED, AssetState.ACTIVE
    ),
}


def _valid_transitions() -> Dict[AssetState, Set[AssetState]]:
    out: Dict[AssetState, Set[AssetState]] = {s: set() for s in AssetState}
    for rule in TRANSITION_RULES.values():
        sources = [rule.requires] if rule.requires else list(AssetState)
        for src in sources:
            out[src].add(rule.target)
    return out


# Every state reaches every other (and itself via the unconditional rules).
VALID_TRANSITIONS = _valid_transitions()


def state_of(ledger: AssetLedger, asset_id: int) -> AssetState:
    return AssetState.DEACTIVATED if ledger.is_deactivated(asset_id) else AssetState.ACTIVE


def require_active(ledger: AssetLedger, asset_id: int) -> None:
    if ledger.is_deactivated(asset_id):
        raise AlreadyDeactivated(asset_id)


def check_transition(ledger: AssetLedger, asset_id: int, action: LifecycleAction) -> TransitionRule:
    """Validate the rule's precondition without writing."""
    rule = TRANSITION_RULES[action]
    current = state_of(ledger, asset_id)
    if rule.requires is AssetState.ACTIVE and current is not AssetState.ACTIVE:
        raise AlreadyDeactivated(asset_id)
    if rule.requires is AssetState.DEACTIVATED and current is not AssetState.DEACTIVATED:
        raise AssetNotDeactivated(asset_id)
    InvariantChecker.check_state_transition(current, rule.target, VALID_TRANSITIONS)
    return rule


def apply_transition(
    ledger: AssetLedger,
    asset_id: int,
    action: LifecycleAction,
) -> Tuple[AssetState, AssetState]:
    """Apply a lifecycle action; returns (from_state, to_state)."""
    ledger.require(asset_id)
    current = state_of(ledger, asset_id)
    rule = check_transition(ledger, asset_id, action)
    ledger.set_deactivated(asset_id, rule.target is AssetState.DEACTIVATED)
    return current, rule.target

"""
Identity/Access Gate

Two authorization modes composed by every mutating operation:

- admin-only: the caller must be the administrator fixed at construction
- owner-only: the caller must be the recorded owner of the asset

Identities are opaque and compared by equality. There is no ambient caller;
each check receives the caller explicitly.
"""

from __future__ import annotations

from typing import Hashable

from registry.hardening import UnauthorizedAdmin, UnauthorizedAsset
from registry.ledger import AssetLedger, Identity
from registry.observability import RegistryLayer, get_logger

logger = get_logger("gate", RegistryLayer.ACCESS)


class AccessGate:
    """Checks callers against the administrator or an asset's owner."""

    def __init__(self, admin: Identity, ledger: AssetLedger):
        if admin is None or admin == "":
            raise ValueError("administrator identity is required")
        if not isinstance(admin, Hashable):
            raise TypeError("administrator identity must be hashable")
        self._admin = admin
        self._ledger = ledger

    @property
    def admin(self) -> Identity:
        return self._admin

    def require_admin(self, caller: Identity, action: str = "") -> None:
        if caller != self._admin:
            logger.debug("admin check failed", operation=action, caller=str(caller))
            raise UnauthorizedAdmin(f"{action or 'operation'} requires the administrator")

    def require_owner(self, caller: Identity, asset_id: int, action: str = "") -> None:
        """Raise AssetNotFound for a missing asset, UnauthorizedAsset for another owner."""
        owner = self._ledger.owner_of(asset_id)
        if owner != caller:
            logger.debug("owner check failed", operation=action, asset_id=asset_id, caller=str(caller))
            raise UnauthorizedAsset(
                f"{action or 'operation'} requires the owner of asset {asset_id}",
                asset_id=asset_id,
            )

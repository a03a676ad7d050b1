"""
Asset Registry

A stateful registry of uniquely identified digital assets. The administrator
mints assets carrying an integer value; owners pull transfers, deactivate,
suspend and annotate their assets; the administrator reclaims, reduces,
consolidates and restores.

Architecture
────────────

    ┌─────────────────────────────────────────────────────────────────────────┐
    │                           ASSET REGISTRY                                 │
    │                                                                          │
    │  SURFACE                                                                 │
    │    registry.py    AssetRegistry: every guarded operation               │
    │    queries.py     Read-only projections and range scans                 │
    │    bulk.py        Bulk mint with per-item soft failure                  │
    │    cli.py         Command line over a persisted ledger                  │
    │                                                                          │
    │  RULES                                                                   │
    │    access.py      Admin-only and owner-only gates                       │
    │    lifecycle.py   Active / Deactivated state machine                    │
    │    hardening.py   Error codes, validators, invariants                   │
    │                                                                          │
    │  STATE                                                                   │
    │    ledger.py      Four id-keyed stores, counter, transactions, JSON     │
    │                                                                          │
    │  AMBIENT                                                                 │
    │    config.py         YAML + environment configuration                   │
    │    observability.py  Structured logging and hash-chained audit trail    │
    │                                                                          │
    └─────────────────────────────────────────────────────────────────────────┘

Core Concepts
─────────────

    Asset: a positive integer id with an owner, a non-negative value, a
    deactivated flag and an optional note. The owner entry alone decides
    whether an asset exists.

    Counter: the last assigned id. It only grows; ids are never reissued,
    even after ``combine`` deletes an asset.

    Atomicity: each operation checks every precondition before writing and
    runs inside a snapshot/restore transaction, so a rejected call leaves
    no trace in the ledger. Bulk mint is the one soft-failure path.

Copyright © 2026 Momentum. All rights reserved.
"""

__version__ = "0.1.0"


# Lazy imports keep ``python -m registry`` start-up light
def __getattr__(name):
    """Lazy import registry modules on first access."""

    if name in ("AssetRegistry",):
        from registry import registry
        return getattr(registry, name)

    if name in ("AssetLedger", "LedgerSnapshot", "LedgerFormatError", "load_ledger", "save_ledger"):
        from registry import ledger
        return getattr(ledger, name)

    if name in ("AssetDetail", "RegistryQueries"):
        from registry import queries
        return getattr(queries, name)

    if name in ("BatchMintReport", "BulkMintProcessor"):
        from registry import bulk
        return getattr(bulk, name)

    if name in ("AssetState", "LifecycleAction", "TRANSITION_RULES"):
        from registry import lifecycle
        return getattr(lifecycle, name)

    if name in ("ErrorCode", "RegistryError", "UnauthorizedAdmin", "UnauthorizedAsset",
                "AssetNotFound", "InvalidValue", "AssetNotDeactivated", "InsufficientValue",
                "AlreadyDeactivated", "ValueExists", "InvariantViolation"):
        from registry import hardening
        return getattr(hardening, name)

    if name in ("RegistryConfig", "ConfigManager", "ConfigError", "get_config_manager"):
        from registry import config
        return getattr(config, name)

    if name in ("AuditLogger", "AuditEvent", "AuditEventType"):
        from registry import observability
        return getattr(observability, name)

    raise AttributeError(f"module 'registry' has no attribute '{name}'")


__all__ = [
    "__version__",
    # Registry
    "AssetRegistry",
    # Ledger
    "AssetLedger",
    "LedgerSnapshot",
    "LedgerFormatError",
    "load_ledger",
    "save_ledger",
    # Queries
    "AssetDetail",
    "RegistryQueries",
    # Bulk
    "BatchMintReport",
    "BulkMintProcessor",
    # Lifecycle
    "AssetState",
    "LifecycleAction",
    "TRANSITION_RULES",
    # Errors
    "ErrorCode",
    "RegistryError",
    "UnauthorizedAdmin",
    "UnauthorizedAsset",
    "AssetNotFound",
    "InvalidValue",
    "AssetNotDeactivated",
    "InsufficientValue",
    "AlreadyDeactivated",
    "ValueExists",
    "InvariantViolation",
    # Config
    "RegistryConfig",
    "ConfigManager",
    "ConfigError",
    "get_config_manager",
    # Audit
    "AuditLogger",
    "AuditEvent",
    "AuditEventType",
]

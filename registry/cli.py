#!/usr/bin/env python3
"""
Registry CLI

Command-line interface over a persisted asset ledger. Each invocation loads
the ledger file, runs one operation as the identity given by ``--caller`` and
writes the ledger back when the operation mutated it.

Usage:
    registry [--state FILE] [--config FILE] <command> [options]

Commands:
    create, mint                  Mint one asset / a batch (administrator)
    transfer                      Pull an asset from its owner
    deactivate, suspend,          Owner lifecycle actions
    reactivate
    mark-inactive, restore        Administrator lifecycle actions
    set-value, reduce, redeem     Value adjustments
    reclaim, claim                Ownership changes
    combine, consolidate          Merge two assets
    note                          Notes and dormancy
    show, range, list, stats      Queries
    config                        Configuration management

Exit status: 0 on success, 2 when the registry rejects the operation
(the message carries the numeric error code), 1 for any other error.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import argparse
import json
import sys
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from registry import __version__
from registry.config import ConfigError, ConfigManager
from registry.hardening import RegistryError
from registry.ledger import LedgerFormatError, load_ledger, save_ledger
from registry.observability import (
    RegistryLayer,
    configure_logging,
    get_logger,
    set_correlation_id,
    generate_correlation_id,
)
from registry.queries import RegistryQueries
from registry.registry import AssetRegistry

logger = get_logger("cli", RegistryLayer.CLI)

EXIT_REJECTED = 2

MUTATING_COMMANDS = {
    "create", "mint", "transfer", "deactivate", "suspend", "reactivate",
    "mark-inactive", "restore", "set-value", "reduce", "redeem", "reclaim",
    "claim", "combine", "consolidate", "note",
}

# Queries need no authorization and run without an administrator
QUERY_COMMANDS = {"show", "range", "list", "stats"}


class OutputFormat(Enum):
    """Output format options."""
    JSON = "json"
    YAML = "yaml"
    TABLE = "table"
    TEXT = "text"


class CLIError(Exception):
    """CLI error with exit code."""
    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code


def format_output(data: Any, fmt: OutputFormat = OutputFormat.JSON) -> str:
    """Format data for output."""
    if fmt == OutputFormat.JSON:
        return json.dumps(data, indent=2, default=str)
    elif fmt == OutputFormat.YAML:
        return yaml.dump(data, default_flow_style=False)
    elif fmt == OutputFormat.TABLE:
        return _format_table(data)
    return str(data)


def _format_table(data: Any) -> str:
    """Format data as ASCII table."""
    if isinstance(data, dict) and len(data) == 1:
        only = next(iter(data.values()))
        if isinstance(only, list):
            data = only
    if isinstance(data, list) and data and isinstance(data[0], dict):
        headers = list(data[0].keys())
        rows = [[str(row.get(h, ""))[:40] for h in headers] for row in data]
        widths = [max(len(h), max(len(r[i]) for r in rows)) for i, h in enumerate(headers)]

        lines = []
        lines.append(" | ".join(h.ljust(widths[i]) for i, h in enumerate(headers)))
        lines.append("-+-".join("-" * w for w in widths))
        for row in rows:
            lines.append(" | ".join(c.ljust(widths[i]) for i, c in enumerate(row)))
        return "\n".join(lines)
    elif isinstance(data, dict):
        return "\n".join(f"{k}: {v}" for k, v in data.items())
    return str(data)


class RegistryCLI:
    """Main CLI application."""

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        self.config_manager = config_manager or ConfigManager()
        self.registry: Optional[AssetRegistry] = None
        self.queries: Optional[RegistryQueries] = None

        self.parser = argparse.ArgumentParser(
            prog="registry",
            description="Asset registry CLI",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self.parser.add_argument(
            "--version", "-V",
            action="version",
            version=f"registry {__version__}",
        )
        self.parser.add_argument(
            "--format", "-f",
            choices=["json", "yaml", "table", "text"],
            default="json",
            help="Output format (default: json)",
        )
        self.parser.add_argument("--state", "-s", help="Ledger file (default: registry.state_file)")
        self.parser.add_argument("--config", "-c", help="YAML configuration file")
        self.parser.add_argument(
            "--quiet", "-q",
            action="store_true",
            help="Suppress error messages",
        )

        self.subparsers = self.parser.add_subparsers(dest="command", help="Commands")
        self._register_commands()

    # -------------------------------------------------------------------------
    # Parser
    # -------------------------------------------------------------------------

    @staticmethod
    def _caller(p: argparse.ArgumentParser) -> None:
        p.add_argument("--caller", "-u", required=True, help="Identity executing the operation")

    def _id_command(self, name: str, help_text: str) -> argparse.ArgumentParser:
        p = self.subparsers.add_parser(name, help=help_text)
        p.add_argument("asset_id", type=int, help="Asset id")
        self._caller(p)
        return p

    def _register_commands(self) -> None:
        self._register_creation_commands()
        self._register_ownership_commands()
        self._register_lifecycle_commands()
        self._register_value_commands()
        self._register_merge_commands()
        self._register_note_commands()
        self._register_query_commands()
        self._register_config_commands()

    def _register_creation_commands(self) -> None:
        create = self.subparsers.add_parser("create", help="Mint one asset")
        create.add_argument("amount", type=int, help="Asset value (>= 1)")
        self._caller(create)

        mint = self.subparsers.add_parser("mint", help="Mint a batch; invalid amounts are skipped")
        mint.add_argument("amounts", type=int, nargs="+", help="Asset values")
        self._caller(mint)

    def _register_ownership_commands(self) -> None:
        transfer = self._id_command("transfer", "Pull an asset from its owner")
        transfer.add_argument("--from", dest="sender", required=True, help="Current owner")
        transfer.add_argument("--to", dest="recipient", required=True, help="Recipient (must be the caller)")

        self._id_command("reclaim", "Administrator takes ownership of an active asset")
        self._id_command("claim", "Take ownership of any existing asset")

    def _register_lifecycle_commands(self) -> None:
        self._id_command("deactivate", "Owner deactivates an active asset")
        self._id_command("suspend", "Owner pauses an active asset")
        self._id_command("reactivate", "Owner reactivates an asset")
        self._id_command("mark-inactive", "Administrator deactivates an asset")
        self._id_command("restore", "Administrator restores a deactivated asset")

    def _register_value_commands(self) -> None:
        set_value = self.subparsers.add_parser("set-value", help="Overwrite an asset's value")
        set_value.add_argument("asset_id", type=int, help="Asset id")
        set_value.add_argument("value", type=int, help="New value (>= 1)")
        self._caller(set_value)

        reduce = self._id_command("reduce", "Administrator reduces an asset's value")
        reduce.add_argument("amount", type=int, help="Amount to subtract")

        self._id_command("redeem", "Owner zeroes an asset's value")

    def _register_merge_commands(self) -> None:
        for name, help_text in (
            ("combine", "Merge source into target and delete the source"),
            ("consolidate", "Administrator merges source into target, keeping it at zero"),
        ):
            p = self.subparsers.add_parser(name, help=help_text)
            p.add_argument("source", type=int, help="Source asset id")
            p.add_argument("target", type=int, help="Target asset id")
            self._caller(p)

    def _register_note_commands(self) -> None:
        note = self.subparsers.add_parser("note", help="Notes and dormancy")
        note_sub = note.add_subparsers(dest="subcommand")

        add = note_sub.add_parser("add", help="Set an asset's note")
        add.add_argument("asset_id", type=int, help="Asset id")
        add.add_argument("text", help="Note text")
        self._caller(add)

        for name, help_text in (
            ("remove", "Owner clears the note"),
            ("purge", "Administrator clears the note"),
            ("dormant", "Owner marks the asset dormant"),
            ("restore", "Owner clears the dormant marker"),
        ):
            p = note_sub.add_parser(name, help=help_text)
            p.add_argument("asset_id", type=int, help="Asset id")
            self._caller(p)

    def _register_query_commands(self) -> None:
        show = self.subparsers.add_parser("show", help="Show one asset")
        show.add_argument("asset_id", type=int, help="Asset id")

        range_cmd = self.subparsers.add_parser("range", help="Show a window of consecutive ids")
        range_cmd.add_argument("start", type=int, help="First id")
        range_cmd.add_argument("count", type=int, help="Number of ids")

        list_cmd = self.subparsers.add_parser("list", help="List existing assets")
        list_cmd.add_argument("--owner", "-o", help="Filter by owner")

        self.subparsers.add_parser("stats", help="Registry counters")

    def _register_config_commands(self) -> None:
        config = self.subparsers.add_parser("config", help="Configuration management")
        config_sub = config.add_subparsers(dest="subcommand")

        get = config_sub.add_parser("get", help="Get configuration value")
        get.add_argument("path", help="Config path (e.g., limits.max_batch_size)")

        config_sub.add_parser("show", help="Show all configuration")
        config_sub.add_parser("validate", help="Validate configuration")
        config_sub.add_parser("schema", help="Export configuration schema")

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def run(self, args: Optional[List[str]] = None) -> int:
        """Run the CLI."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 0

        set_correlation_id(generate_correlation_id())

        try:
            self._load_config(parsed)
            fmt = OutputFormat(parsed.format)
            result = self._dispatch(parsed)

            if result is not None:
                print(format_output(result, fmt))
            return 0

        except RegistryError as e:
            if not parsed.quiet:
                print(f"Error [{int(e.code)}]: {e.message}", file=sys.stderr)
            return EXIT_REJECTED

        except CLIError as e:
            if not parsed.quiet:
                print(f"Error: {e}", file=sys.stderr)
            return e.exit_code

        except (ConfigError, LedgerFormatError, OSError) as e:
            if not parsed.quiet:
                print(f"Error: {e}", file=sys.stderr)
            return 1

    def _load_config(self, args: argparse.Namespace) -> None:
        if args.config:
            self.config_manager.load_from_file(args.config)
        else:
            self.config_manager.load_defaults()
        configure_logging(self.config_manager.get("observability.log_level"))

    def _state_path(self, args: argparse.Namespace) -> Path:
        return Path(args.state or self.config_manager.get("registry.state_file"))

    def _open_registry(self, args: argparse.Namespace) -> AssetRegistry:
        admin = self.config_manager.get("registry.admin")
        if not admin:
            raise CLIError("administrator identity not configured (set registry.admin or REGISTRY_ADMIN)")
        ledger = load_ledger(self._state_path(args))
        return AssetRegistry(admin, ledger=ledger, config=self.config_manager.config)

    def _open_queries(self, args: argparse.Namespace) -> RegistryQueries:
        limits = self.config_manager.config.limits
        return RegistryQueries(
            load_ledger(self._state_path(args)),
            max_range_count=limits.max_range_count.get(),
            dormant_sentinel=limits.dormant_sentinel.get(),
        )

    def _dispatch(self, args: argparse.Namespace) -> Any:
        """Dispatch command to handler."""
        cmd = args.command.replace("-", "_")
        subcmd = getattr(args, "subcommand", None)

        if args.command in ("note", "config") and not subcmd:
            raise CLIError(f"{args.command} requires a subcommand")

        handler_name = f"_handle_{cmd}_{subcmd}" if subcmd else f"_handle_{cmd}"
        handler = getattr(self, handler_name, None)
        if handler is None:
            raise CLIError(f"Unknown command: {args.command} {subcmd or ''}")

        if args.command == "config":
            return handler(args)

        if args.command in QUERY_COMMANDS:
            self.queries = self._open_queries(args)
            return handler(args)

        self.registry = self._open_registry(args)
        result = handler(args)
        if args.command in MUTATING_COMMANDS:
            path = self._state_path(args)
            save_ledger(path, self.registry.ledger)
            logger.info("ledger saved", operation=args.command, path=str(path))
        return result

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    def _details(self, asset_id: int) -> Dict[str, Any]:
        return self.registry.get_details(asset_id).to_dict()

    def _handle_create(self, args: argparse.Namespace) -> Any:
        asset_id = self.registry.create_single(args.caller, args.amount)
        return self._details(asset_id)

    def _handle_mint(self, args: argparse.Namespace) -> Any:
        ids = self.registry.create_multiple(args.caller, args.amounts)
        return {"ids": ids, "requested": len(args.amounts), "minted": len(ids)}

    def _handle_transfer(self, args: argparse.Namespace) -> Any:
        self.registry.transfer(args.caller, args.asset_id, args.sender, args.recipient)
        return self._details(args.asset_id)

    def _handle_reclaim(self, args: argparse.Namespace) -> Any:
        self.registry.reclaim(args.caller, args.asset_id)
        return self._details(args.asset_id)

    def _handle_claim(self, args: argparse.Namespace) -> Any:
        self.registry.claim_ownership(args.caller, args.asset_id)
        return self._details(args.asset_id)

    def _lifecycle(self, args: argparse.Namespace, method: str) -> Any:
        state = getattr(self.registry, method)(args.caller, args.asset_id)
        return {"asset_id": args.asset_id, "state": state.value}

    def _handle_deactivate(self, args: argparse.Namespace) -> Any:
        return self._lifecycle(args, "deactivate")

    def _handle_suspend(self, args: argparse.Namespace) -> Any:
        return self._lifecycle(args, "suspend")

    def _handle_reactivate(self, args: argparse.Namespace) -> Any:
        return self._lifecycle(args, "reactivate")

    def _handle_mark_inactive(self, args: argparse.Namespace) -> Any:
        return self._lifecycle(args, "mark_inactive")

    def _handle_restore(self, args: argparse.Namespace) -> Any:
        return self._lifecycle(args, "restore_deactivated")

    def _handle_set_value(self, args: argparse.Namespace) -> Any:
        self.registry.modify_value(args.caller, args.asset_id, args.value)
        return self._details(args.asset_id)

    def _handle_reduce(self, args: argparse.Namespace) -> Any:
        self.registry.reduce_value(args.caller, args.asset_id, args.amount)
        return self._details(args.asset_id)

    def _handle_redeem(self, args: argparse.Namespace) -> Any:
        self.registry.redeem(args.caller, args.asset_id)
        return self._details(args.asset_id)

    def _handle_combine(self, args: argparse.Namespace) -> Any:
        value = self.registry.combine(args.caller, args.source, args.target)
        return {"target": args.target, "value": value, "source_exists": self.registry.exists(args.source)}

    def _handle_consolidate(self, args: argparse.Namespace) -> Any:
        value = self.registry.consolidate(args.caller, args.source, args.target)
        return {"target": args.target, "value": value, "source_exists": self.registry.exists(args.source)}

    def _handle_note_add(self, args: argparse.Namespace) -> Any:
        self.registry.add_information(args.caller, args.asset_id, args.text)
        return self._details(args.asset_id)

    def _handle_note_remove(self, args: argparse.Namespace) -> Any:
        removed = self.registry.remove_information(args.caller, args.asset_id)
        return {"asset_id": args.asset_id, "removed": removed}

    def _handle_note_purge(self, args: argparse.Namespace) -> Any:
        removed = self.registry.purge_information(args.caller, args.asset_id)
        return {"asset_id": args.asset_id, "removed": removed}

    def _handle_note_dormant(self, args: argparse.Namespace) -> Any:
        self.registry.mark_dormant(args.caller, args.asset_id)
        return {"asset_id": args.asset_id, "dormant": self.registry.is_dormant(args.asset_id)}

    def _handle_note_restore(self, args: argparse.Namespace) -> Any:
        cleared = self.registry.restore_active(args.caller, args.asset_id)
        return {"asset_id": args.asset_id, "cleared": cleared, "dormant": self.registry.is_dormant(args.asset_id)}

    def _handle_show(self, args: argparse.Namespace) -> Any:
        return self.queries.get_details(args.asset_id).to_dict()

    def _handle_range(self, args: argparse.Namespace) -> Any:
        return {"assets": [d.to_dict() for d in self.queries.get_range(args.start, args.count)]}

    def _handle_list(self, args: argparse.Namespace) -> Any:
        return {"assets": [d.to_dict() for d in self.queries.list_assets(args.owner)]}

    def _handle_stats(self, args: argparse.Namespace) -> Any:
        return {
            "total_created": self.queries.total_created(),
            "existing": self.queries.existing_count(),
            "admin": self.config_manager.get("registry.admin") or None,
        }

    # Config handlers
    def _handle_config_get(self, args: argparse.Namespace) -> Any:
        return {"path": args.path, "value": self.config_manager.get(args.path)}

    def _handle_config_show(self, args: argparse.Namespace) -> Any:
        return self.config_manager.config.to_dict()

    def _handle_config_validate(self, args: argparse.Namespace) -> Any:
        errors = self.config_manager.validate()
        return {"valid": len(errors) == 0, "errors": errors}

    def _handle_config_schema(self, args: argparse.Namespace) -> Any:
        return self.config_manager.export_schema()


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    cli = RegistryCLI()
    return cli.run(argv)


if __name__ == "__main__":
    sys.exit(main())

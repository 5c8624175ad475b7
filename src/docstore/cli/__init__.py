"""CLI for docstore profile management, collection inspection and backups.

Usage:
    DOCSTORE_PROFILE=local docstore connect
    docstore status
    docstore profiles
    docstore collections
    docstore backup --collections users,bookings --output backups/users.json
    docstore restore backups/users.json --mode overwrite --dry-run

Commands:
    connect      - Connect to a profile and self-heal every declared collection
    status       - Show current connection status
    profiles     - List available profiles
    collections  - Show declared collections with record counts
    backup       - Export collections to a JSON backup file
    restore      - Restore collections from a JSON backup file
"""

import argparse
import asyncio
import sys

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from docstore.backup.backup_restore import (
    backup_collections,
    restore_collections,
    validate_backup,
)
from docstore.config.loader import DEFAULT_CONFIG_NAME, load_config
from docstore.config.models import DocstoreConfig
from docstore.factory import (
    ProfileNotFoundError,
    build_registry,
    connect,
    get_store,
    read_profile_lock,
)
from docstore.registry import CollectionRegistry
from docstore.stores.postgres import AsyncPostgresDocumentStore

console = Console()


def _load(args: argparse.Namespace) -> DocstoreConfig | None:
    """Load the config named by ``--config``, printing the error on failure."""
    try:
        return load_config(getattr(args, "config", None))
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return None


async def _open_registry(
    args: argparse.Namespace, config: DocstoreConfig
) -> CollectionRegistry:
    """Create the active profile's store and a registry over it.

    Raises:
        ProfileNotFoundError: If no profile is active or it is unknown.
    """
    store = get_store(config=config, env_prefix=getattr(args, "env_prefix", ""))
    if isinstance(store, AsyncPostgresDocumentStore):
        await store.ensure_table()
    return build_registry(config, store)


def _split_names(value: str | None) -> list[str] | None:
    if not value:
        return None
    return [n.strip() for n in value.split(",") if n.strip()]


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_connect(args: argparse.Namespace) -> int:
    """Async implementation for connect command.

    Returns:
        0 on success, 1 on failure.
    """
    config = _load(args)
    if config is None:
        return 1

    previous_profile = read_profile_lock()
    console.print("Connecting to store...", style="dim")

    result = await connect(config=config, env_prefix=getattr(args, "env_prefix", ""))

    if not result.success:
        console.print()
        console.print(f"[bold red]x[/bold red] {escape(result.error or '')}")
        return 1

    console.print()
    console.print(
        f"[bold green]v[/bold green] Connected to profile: "
        f"[bold cyan]{result.profile_name}[/bold cyan]"
    )
    if result.healed_count:
        healed = ", ".join(f"{name} ({n})" for name, n in result.healed.items() if n)
        console.print(f"  Healed records: [yellow]{healed}[/yellow]")
    else:
        console.print("  Collections: [green]up to date[/green]")

    if previous_profile and previous_profile != result.profile_name:
        console.print(
            f"\n[dim]Switched from[/dim] [bold]{previous_profile}[/bold] "
            f"[dim]to[/dim] [bold cyan]{result.profile_name}[/bold cyan]"
        )
    return 0


async def _async_collections(args: argparse.Namespace) -> int:
    """Async implementation for collections command.

    Returns:
        0 on success, 1 on failure.
    """
    config = _load(args)
    if config is None:
        return 1

    try:
        registry = await _open_registry(args, config)
    except ProfileNotFoundError as e:
        console.print(f"[yellow]{escape(str(e))}[/yellow]")
        return 1

    try:
        table = Table(title="Collections", show_header=True, header_style="bold")
        table.add_column("Collection")
        table.add_column("Fields", justify="right")
        table.add_column("Relations")
        table.add_column("Records", justify="right")

        for client in registry:
            table.add_row(
                client.name,
                str(len(client.schema.fields)),
                ", ".join(
                    f"{r.name} -> {r.target}" for r in client.relations.values()
                ) or "-",
                str(await client.count()),
            )
    finally:
        await registry.close()

    console.print(table)
    return 0


async def _async_backup(args: argparse.Namespace) -> int:
    """Async implementation for backup command.

    Returns:
        0 on success, 1 on failure.
    """
    config = _load(args)
    if config is None:
        return 1

    try:
        registry = await _open_registry(args, config)
    except ProfileNotFoundError as e:
        console.print(f"[yellow]{escape(str(e))}[/yellow]")
        return 1

    try:
        path = await backup_collections(
            registry,
            names=_split_names(args.collections),
            output_path=args.output,
        )
    except KeyError as e:
        console.print(f"[bold red]x[/bold red] Backup failed: {escape(str(e.args[0]))}")
        return 1
    finally:
        await registry.close()

    console.print(f"[bold green]v[/bold green] Backup written to [cyan]{path}[/cyan]")
    return 0


async def _async_restore(args: argparse.Namespace) -> int:
    """Async implementation for restore command.

    Returns:
        0 on success, 1 on failure.
    """
    config = _load(args)
    if config is None:
        return 1

    try:
        registry = await _open_registry(args, config)
    except ProfileNotFoundError as e:
        console.print(f"[yellow]{escape(str(e))}[/yellow]")
        return 1

    try:
        summary = await restore_collections(
            registry,
            args.backup_path,
            names=_split_names(args.collections),
            mode=args.mode,
            dry_run=args.dry_run,
        )
    except (FileNotFoundError, KeyError, ValueError) as e:
        message = e.args[0] if isinstance(e, KeyError) else e
        console.print(f"[bold red]x[/bold red] Restore failed: {escape(str(message))}")
        return 1
    finally:
        await registry.close()

    table = Table(title="Restore Summary", show_header=True, header_style="bold")
    table.add_column("Collection", style="dim")
    table.add_column("Inserted", justify="right", style="green")
    table.add_column("Updated", justify="right", style="yellow")
    table.add_column("Skipped", justify="right")
    for name, counts in summary.items():
        if not isinstance(counts, dict):
            continue
        table.add_row(
            name,
            str(counts["inserted"]),
            str(counts["updated"]),
            str(counts["skipped"]),
        )
    console.print(table)

    if args.dry_run:
        console.print("[bold yellow]DRY RUN[/bold yellow] - No changes made.")
    return 0


# ============================================================================
# Sync command wrappers (cmd_status, cmd_profiles read local files only)
# ============================================================================


def cmd_connect(args: argparse.Namespace) -> int:
    """Connect to a profile and heal declared collections.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_connect(args))


def cmd_collections(args: argparse.Namespace) -> int:
    """Show declared collections with their record counts."""
    return asyncio.run(_async_collections(args))


def cmd_backup(args: argparse.Namespace) -> int:
    """Export collections to a JSON backup file."""
    return asyncio.run(_async_backup(args))


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore collections from a JSON backup file.

    The backup is validated against the declared collections before any
    store is opened.
    """
    config = _load(args)
    if config is None:
        return 1

    names = _split_names(args.collections) or list(config.collections)
    report = validate_backup(args.backup_path, names)
    for warning in report["warnings"]:
        console.print(f"[yellow]Warning: {escape(warning)}[/yellow]")
    if not report["valid"]:
        console.print(f"[bold red]x[/bold red] Invalid backup: {args.backup_path}")
        for error in report["errors"]:
            console.print(f"  - {escape(error)}")
        return 1

    args.collections = ",".join(names)
    return asyncio.run(_async_restore(args))


def cmd_status(args: argparse.Namespace) -> int:
    """Show current connection status.

    Reads only local files (lock file and TOML config), no store calls.

    Returns:
        0 always (informational command).
    """
    profile = read_profile_lock()

    if not profile:
        console.print("[yellow]No connected profile.[/yellow]")
        console.print(
            "[dim]Run:[/dim] [cyan]DOCSTORE_PROFILE=<name> docstore connect[/cyan]"
        )
        return 0

    table = Table(title="Connection Status", show_header=False)
    table.add_column("Key", style="dim")
    table.add_column("Value")
    table.add_row("Current profile", f"[bold cyan]{profile}[/bold cyan]")
    table.add_row("Profile source", ".docstore-profile (connected)")

    try:
        config = load_config(getattr(args, "config", None))
        if profile in config.profiles:
            p = config.profiles[profile]
            table.add_row("Provider", p.provider)
            if p.description:
                table.add_row("Description", p.description)
        table.add_row("Collections", str(len(config.collections)))
    except FileNotFoundError:
        table.add_row("Warning", f"[yellow]{DEFAULT_CONFIG_NAME} not found[/yellow]")
    except ValueError as e:
        table.add_row("Warning", f"[yellow]{escape(str(e))}[/yellow]")

    console.print(table)
    return 0


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles.

    Returns:
        0 on success, 1 if the config cannot be loaded.
    """
    config = _load(args)
    if config is None:
        return 1

    current = read_profile_lock()

    table = Table(title="Store Profiles", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("Provider")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        marker = "[bold green]*[/bold green]" if name == current else " "
        table.add_row(
            marker,
            f"[bold cyan]{name}[/bold cyan]" if name == current else name,
            profile.provider,
            profile.description or "",
        )

    console.print(table)
    if current:
        console.print("\n[bold green]*[/bold green] = current profile")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Args:
        argv: Arguments to parse.  Defaults to ``sys.argv[1:]``.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="docstore",
        description="Schema-validated document collections toolkit",
    )
    parser.add_argument(
        "--config",
        default=None,
        help=f"Path to config file (default: ./{DEFAULT_CONFIG_NAME})",
    )
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_DOCSTORE_PROFILE)"
        ),
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_connect = subparsers.add_parser(
        "connect", help="Connect to a profile and heal declared collections"
    )
    p_connect.set_defaults(func=cmd_connect)

    p_status = subparsers.add_parser("status", help="Show current connection status")
    p_status.set_defaults(func=cmd_status)

    p_profiles = subparsers.add_parser("profiles", help="List available profiles")
    p_profiles.set_defaults(func=cmd_profiles)

    p_collections = subparsers.add_parser(
        "collections", help="Show declared collections with record counts"
    )
    p_collections.set_defaults(func=cmd_collections)

    p_backup = subparsers.add_parser("backup", help="Export collections to JSON")
    p_backup.add_argument(
        "--output", "-o",
        default=None,
        help="Output file path (default: backups/backup-{timestamp}.json)",
    )
    p_backup.add_argument(
        "--collections", "-c",
        default=None,
        help="Comma-separated collections to export (default: all declared)",
    )
    p_backup.set_defaults(func=cmd_backup)

    p_restore = subparsers.add_parser("restore", help="Restore collections from JSON")
    p_restore.add_argument("backup_path", help="Path to backup JSON file")
    p_restore.add_argument(
        "--mode", "-m",
        choices=["skip", "overwrite", "fail"],
        default="skip",
        help="How to handle existing records (default: skip)",
    )
    p_restore.add_argument(
        "--collections", "-c",
        default=None,
        help="Comma-separated collections to restore (default: all declared)",
    )
    p_restore.add_argument(
        "--dry-run",
        action="store_true",
        help="Preview changes without applying them",
    )
    p_restore.set_defaults(func=cmd_restore)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

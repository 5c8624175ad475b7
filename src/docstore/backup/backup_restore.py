"""Collection backup and restore.

Backups are JSON files holding a ``metadata`` section plus one list of
records per collection.  Restore preserves record ids and timestamps,
keeps only schema fields, and writes each collection in one atomic
batch.

Usage:
    from docstore.backup.backup_restore import (
        backup_collections,
        restore_collections,
        validate_backup,
    )

    path = await backup_collections(registry, ["users", "bookings"])
    report = validate_backup(path, ["users", "bookings"])
    summary = await restore_collections(registry, path, mode="skip")
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Literal

from docstore.registry import CollectionRegistry
from docstore.schema.validation import filter_to_schema

logger = logging.getLogger(__name__)

BACKUP_VERSION = "1.1"


async def backup_collections(
    registry: CollectionRegistry,
    names: list[str] | None = None,
    output_path: str | None = None,
    metadata: dict | None = None,
) -> str:
    """Export collections to a JSON backup file.

    Args:
        registry: Registry holding the collections.
        names: Collections to export.  ``None`` exports every registered
            collection.
        output_path: Path to save the backup.  When ``None``, generates a
            timestamped path under ``./backups/``.
        metadata: Extra metadata merged into the ``metadata`` section.

    Returns:
        Path of the written backup file.

    Raises:
        KeyError: If a name is not registered.
    """
    names = names if names is not None else registry.names()
    created_at = registry.now()

    if output_path is None:
        backups_dir = Path.cwd() / "backups"
        backups_dir.mkdir(exist_ok=True)
        timestamp = datetime.fromisoformat(created_at).strftime("%Y-%m-%d-%H%M")
        output_path = str(backups_dir / f"backup-{timestamp}.json")

    backup_data: dict[str, Any] = {
        "metadata": {
            "created_at": created_at,
            "collections": list(names),
            "version": BACKUP_VERSION,
        },
    }
    if metadata:
        backup_data["metadata"].update(metadata)

    for name in names:
        records = await registry.get(name).read()
        backup_data[name] = records
        backup_data["metadata"][f"{name}_count"] = len(records)

    output_path_obj = Path(output_path)
    output_path_obj.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(backup_data, f, indent=2, default=str)

    logger.info("Backed up %d collections to %s", len(names), output_path)
    return output_path


async def restore_collections(
    registry: CollectionRegistry,
    backup_path: str,
    names: list[str] | None = None,
    mode: Literal["skip", "overwrite", "fail"] = "skip",
    dry_run: bool = False,
) -> dict:
    """Restore collections from a JSON backup file.

    Args:
        registry: Registry holding the collections.
        backup_path: Path to the backup JSON file.
        names: Collections to restore.  ``None`` restores every registered
            collection present in the backup.
        mode: How to handle records whose id already exists:
            - ``"skip"``: keep the existing record (default, safest).
            - ``"overwrite"``: replace it with the backup record.
            - ``"fail"``: raise ``ValueError`` before committing that collection.
        dry_run: When ``True``, count changes without writing.

    Returns:
        Summary dict with per-collection ``inserted``/``updated``/
        ``skipped`` counts plus a ``dry_run`` flag.

    Raises:
        ValueError: If the backup is invalid, or ``mode="fail"`` and a
            record already exists.
    """
    with open(backup_path, "r") as f:
        backup_data = json.load(f)

    if names is None:
        names = [n for n in registry.names() if n in backup_data]

    validation = validate_backup(backup_path, names)
    if validation["errors"]:
        raise ValueError(f"Invalid backup file: {'; '.join(validation['errors'])}")

    summary: dict[str, Any] = {"dry_run": dry_run}
    for name in names:
        client = registry.get(name)
        existing = {r["id"] for r in await client.store.get_all(name)}
        counts = {"inserted": 0, "updated": 0, "skipped": 0}
        batch = client.store.batch()

        for row in backup_data.get(name, []):
            record = filter_to_schema(client.schema, row)
            if row["id"] in existing:
                if mode == "fail":
                    raise ValueError(f"{name} '{row['id']}' already exists (mode=fail)")
                if mode == "skip":
                    counts["skipped"] += 1
                    continue
                counts["updated"] += 1
            else:
                counts["inserted"] += 1
            batch.set(name, row["id"], record)

        if not dry_run and counts["inserted"] + counts["updated"]:
            await batch.commit()
            client.invalidate()
        summary[name] = counts

    return summary


def validate_backup(backup_path: str, names: list[str]) -> dict:
    """Validate backup file format.

    Checks that the file is well-formed JSON, carries ``metadata`` with
    version ``"1.1"``, has a record list for each of *names*, and that
    every record has a non-empty, unique ``id``.

    Returns:
        Dict with ``valid`` (bool), ``errors`` (list[str]),
        and ``warnings`` (list[str]).
    """
    errors: list[str] = []
    warnings: list[str] = []

    try:
        with open(backup_path, "r") as f:
            backup_data = json.load(f)
    except FileNotFoundError:
        errors.append(f"Backup file not found: {backup_path}")
        return {"valid": False, "errors": errors, "warnings": warnings}
    except json.JSONDecodeError as e:
        errors.append(f"Invalid JSON: {e}")
        return {"valid": False, "errors": errors, "warnings": warnings}

    for key in ["metadata", *names]:
        if key not in backup_data:
            errors.append(f"Missing required key: {key}")
    if errors:
        return {"valid": False, "errors": errors, "warnings": warnings}

    metadata = backup_data["metadata"]
    if "created_at" not in metadata:
        warnings.append("Missing metadata field: created_at")
    version = metadata.get("version")
    if version != BACKUP_VERSION:
        errors.append(
            f"Unsupported backup version '{version}' (expected '{BACKUP_VERSION}')"
        )

    for name in names:
        rows = backup_data[name]
        if not isinstance(rows, list):
            errors.append(f"{name} must be a list of records")
            continue
        seen: set = set()
        for row in rows:
            doc_id = row.get("id") if isinstance(row, dict) else None
            if not doc_id:
                errors.append(f"{name} record missing 'id'")
            elif doc_id in seen:
                errors.append(f"{name} has duplicate id '{doc_id}'")
            else:
                seen.add(doc_id)

    return {"valid": not errors, "errors": errors, "warnings": warnings}

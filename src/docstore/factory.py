"""Store and registry factory.

Resolves the active profile, creates the matching ``DocumentStore``,
builds a ``CollectionRegistry`` from declared collections and runs the
self-heal migration on connect.

Profile resolution order:

1. Explicit ``profile_name`` argument.
2. ``{env_prefix}DOCSTORE_PROFILE`` environment variable.
3. ``.docstore-profile`` lock file written by a successful ``connect()``.

Usage:
    from docstore.factory import connect, get_store, build_registry

    result = await connect("local")
    if result.success:
        print(result.healed)

    config = load_config()
    store = get_store("local", config)
    registry = build_registry(config, store)
"""

import logging
import os
from pathlib import Path
from urllib.parse import quote

from docstore.audit.sinks import LogSink, NullLogSink, StoreLogSink
from docstore.config.loader import load_config
from docstore.config.models import ConnectionResult, DocstoreConfig, StoreProfile
from docstore.registry import CollectionRegistry
from docstore.stores.base import DocumentStore
from docstore.stores.memory import InMemoryDocumentStore
from docstore.stores.postgres import AsyncPostgresDocumentStore

logger = logging.getLogger(__name__)

# Profile lock file path (relative to CWD)
_PROFILE_LOCK_FILE = Path(".docstore-profile")


class ProfileNotFoundError(Exception):
    """Raised when no profile is configured or the named one is unknown."""

    pass


# ============================================================================
# Profile Lock File Operations
# ============================================================================


def read_profile_lock() -> str | None:
    """Read profile name from lock file, or ``None`` if absent."""
    if _PROFILE_LOCK_FILE.exists():
        return _PROFILE_LOCK_FILE.read_text().strip() or None
    return None


def write_profile_lock(profile_name: str) -> None:
    """Write profile name to lock file.  Call only after a successful connect."""
    _PROFILE_LOCK_FILE.write_text(profile_name)


def clear_profile_lock() -> None:
    """Remove profile lock file."""
    if _PROFILE_LOCK_FILE.exists():
        _PROFILE_LOCK_FILE.unlink()


def get_active_profile_name(env_prefix: str = "") -> str:
    """Get active profile name from env var or lock file.

    Args:
        env_prefix: Prefix for the environment variable, e.g. ``"APP_"``
            reads ``APP_DOCSTORE_PROFILE``.

    Raises:
        ProfileNotFoundError: If no profile is configured.
    """
    env_profile = os.environ.get(f"{env_prefix}DOCSTORE_PROFILE")
    if env_profile:
        return env_profile

    lock_profile = read_profile_lock()
    if lock_profile:
        return lock_profile

    raise ProfileNotFoundError(
        "No docstore profile configured.\n"
        f"Run: {env_prefix}DOCSTORE_PROFILE=<name> docstore connect"
    )


# ============================================================================
# Store Construction
# ============================================================================


def resolve_url(profile: StoreProfile) -> str:
    """Resolve profile URL with password substitution."""
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


def create_store(profile: StoreProfile) -> DocumentStore:
    """Instantiate the store for one profile.

    Raises:
        ValueError: If a postgres profile has no URL.
        ImportError: If a firestore profile is used without the
            ``firestore`` extra installed.
    """
    if profile.provider == "memory":
        return InMemoryDocumentStore()
    if profile.provider == "postgres":
        if not profile.url:
            raise ValueError("postgres profile requires a url")
        return AsyncPostgresDocumentStore(resolve_url(profile), table=profile.table)

    from docstore.stores.firestore import AsyncFirestoreDocumentStore

    return AsyncFirestoreDocumentStore(
        project=profile.project,
        credentials_path=profile.credentials_path,
    )


def _resolve_profile(
    config: DocstoreConfig, profile_name: str | None, env_prefix: str
) -> tuple[str, StoreProfile]:
    if profile_name is None:
        profile_name = get_active_profile_name(env_prefix=env_prefix)
    if profile_name not in config.profiles:
        available = ", ".join(config.profiles.keys()) or "(none)"
        raise ProfileNotFoundError(
            f"Profile '{profile_name}' not found. Available: {available}"
        )
    return profile_name, config.profiles[profile_name]


def get_store(
    profile_name: str | None = None,
    config: DocstoreConfig | None = None,
    env_prefix: str = "",
) -> DocumentStore:
    """Create the document store for a profile.

    Raises:
        ProfileNotFoundError: If no profile is resolved or it is unknown.
        FileNotFoundError: If *config* is ``None`` and docstore.toml is missing.
    """
    if config is None:
        config = load_config()
    _, profile = _resolve_profile(config, profile_name, env_prefix)
    return create_store(profile)


def build_registry(
    config: DocstoreConfig,
    store: DocumentStore,
    log_sink: LogSink | None = None,
) -> CollectionRegistry:
    """Register every declared collection and its relations.

    When *log_sink* is ``None`` the sink follows ``[logging]``: a
    ``StoreLogSink`` on the configured partition, or ``NullLogSink`` when
    logging is disabled.
    """
    if log_sink is None:
        if config.logging.enabled:
            log_sink = StoreLogSink(store, partition=config.logging.partition)
        else:
            log_sink = NullLogSink()

    registry = CollectionRegistry(store, log_sink=log_sink)
    for name, collection in config.collections.items():
        registry.register(name, collection.fields)
    for name, collection in config.collections.items():
        client = registry.get(name)
        for rel in collection.relations:
            client.set_relation(
                rel.name,
                rel.target,
                rel.kind,
                rel.foreign_key,
                local_key=rel.local_key,
                on_delete_null=rel.on_delete_null,
                cascade=rel.cascade,
            )
    return registry


# ============================================================================
# Connection
# ============================================================================


async def connect(
    profile_name: str | None = None,
    config: DocstoreConfig | None = None,
    env_prefix: str = "",
    write_lock: bool = True,
) -> ConnectionResult:
    """Connect to a profile's store and heal every declared collection.

    On success the profile name is written to the lock file (unless
    *write_lock* is ``False``) so later commands reuse it.

    Returns:
        ``ConnectionResult`` with per-collection heal counts, or the
        error message on failure.
    """
    try:
        if config is None:
            config = load_config()
        profile_name, profile = _resolve_profile(config, profile_name, env_prefix)
    except (ProfileNotFoundError, FileNotFoundError, ValueError) as e:
        return ConnectionResult(success=False, profile_name=profile_name, error=str(e))

    try:
        store = create_store(profile)
    except (ValueError, ImportError) as e:
        return ConnectionResult(success=False, profile_name=profile_name, error=str(e))

    try:
        if isinstance(store, AsyncPostgresDocumentStore):
            await store.ensure_table()
        registry = build_registry(config, store)
        healed = await registry.heal_all() if config.heal_on_connect else {}
    except Exception as e:
        logger.exception("Connect to profile %s failed", profile_name)
        return ConnectionResult(
            success=False,
            profile_name=profile_name,
            error=f"Failed to connect to store: {e}",
        )
    finally:
        await store.close()

    if write_lock:
        write_profile_lock(profile_name)

    return ConnectionResult(success=True, profile_name=profile_name, healed=healed)

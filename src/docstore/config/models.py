"""Pydantic models for docstore configuration."""

from typing import Any, Literal

from pydantic import BaseModel, Field

from docstore.collection.relations import RelationKind


# ============================================================================
# Profile Models
# ============================================================================


class StoreProfile(BaseModel):
    """Document store connection profile from docstore.toml."""

    provider: Literal["memory", "postgres", "firestore"] = "memory"
    url: str = ""                    # postgres connection URL
    description: str = ""
    db_password: str | None = None   # For [YOUR-PASSWORD] placeholder substitution
    table: str = "documents"         # postgres documents table
    project: str | None = None       # firestore project id
    credentials_path: str | None = None  # firestore service account JSON


# ============================================================================
# Collection Models
# ============================================================================


class RelationDef(BaseModel):
    """A relation declared under ``[[collections.<name>.relations]]``."""

    name: str
    target: str
    kind: RelationKind
    foreign_key: str
    local_key: str = "id"
    on_delete_null: bool = False
    cascade: bool = True


class CollectionDef(BaseModel):
    """A collection declared under ``[collections.<name>]``."""

    fields: dict[str, Any] = Field(default_factory=dict)
    relations: list[RelationDef] = Field(default_factory=list)


# ============================================================================
# Top-level Config
# ============================================================================


class LoggingSettings(BaseModel):
    """Operation log settings from ``[logging]``."""

    enabled: bool = True
    partition: str = "logs"


class DocstoreConfig(BaseModel):
    """Complete configuration from docstore.toml."""

    profiles: dict[str, StoreProfile] = Field(default_factory=dict)
    collections: dict[str, CollectionDef] = Field(default_factory=dict)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    heal_on_connect: bool = True


# ============================================================================
# Connection Result
# ============================================================================


class ConnectionResult(BaseModel):
    """Result of ``connect()``."""

    success: bool
    profile_name: str | None = None
    healed: dict[str, int] = Field(default_factory=dict)
    error: str | None = None

    @property
    def healed_count(self) -> int:
        return sum(self.healed.values())

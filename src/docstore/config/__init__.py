"""Configuration management: profiles, collections, TOML loading.

Usage:
    >>> from docstore.config import load_config, DocstoreConfig, StoreProfile
"""

from docstore.config.loader import load_config
from docstore.config.models import (
    CollectionDef,
    ConnectionResult,
    DocstoreConfig,
    LoggingSettings,
    RelationDef,
    StoreProfile,
)

__all__ = [
    "load_config",
    "CollectionDef",
    "ConnectionResult",
    "DocstoreConfig",
    "LoggingSettings",
    "RelationDef",
    "StoreProfile",
]

"""
Text Store - texts with one-word translations per language.

This package provides:
- An in-memory store of texts and their localized texts, indexed both by
  text id and by localized text id
- JSON snapshot persistence after every change
- A Flask REST interface and the `textstore` command line tool
"""

__version__ = "1.0.0"
__author__ = "Text Store Contributors"

# Errors
from .errors import (
    DuplicateError,
    IntegrityFault,
    InvalidClientSuppliedIdError,
    NotFoundError,
    PersistenceError,
    TextStoreError,
    ValidationError,
)

# Model
from .languages import LanguageCode
from .models import LocalizedEntry, MultiLangRecord, TextRecord

# Persistence
from .persistence import JsonSnapshotGateway, MemoryGateway, PersistenceGateway

# Store
from .store import TextStore, open_store

__all__ = [
    # Errors
    "TextStoreError",
    "ValidationError",
    "DuplicateError",
    "InvalidClientSuppliedIdError",
    "NotFoundError",
    "IntegrityFault",
    "PersistenceError",
    # Model
    "LanguageCode",
    "TextRecord",
    "LocalizedEntry",
    "MultiLangRecord",
    # Persistence
    "PersistenceGateway",
    "JsonSnapshotGateway",
    "MemoryGateway",
    # Store
    "TextStore",
    "open_store",
    # Version
    "__version__",
]

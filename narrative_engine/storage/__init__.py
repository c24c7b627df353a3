"""Save and settings persistence.

Two interchangeable backends implement the StorageProvider protocol:

    LocalStorage   — JSON files on disk, one process.
    RemoteStorage  — HTTP key-value service, namespaced per player/session.

Both share KeyValueStorage, so upsert, ordering (most recent first), export
and import behave identically. Export bundles are JSON:

    {"version": 1, "exported_at": "...", "saves": [...], "settings": {...}}

Importing rejects bundles from a newer storage version (BundleVersionError)
or with unparseable/invalid content (MalformedBundleError) before writing.

Use create_storage(config) to build whichever backend an EngineConfig names.
"""

from narrative_engine.config import EngineConfig

from .base import (  # noqa: F401
    DEFAULT_PREFIX,
    STORAGE_VERSION,
    BundleVersionError,
    ExportBundle,
    KeyValueStorage,
    MalformedBundleError,
    StorageError,
    StorageProvider,
    parse_bundle,
    parse_save,
)
from .local import LocalStorage  # noqa: F401
from .remote import RemoteStorage  # noqa: F401


def create_storage(config: EngineConfig) -> KeyValueStorage:
    """Pick the backend an EngineConfig asks for.

    RemoteStorage when `storage_url` is set, LocalStorage under `data_dir`
    otherwise. Both use `storage_prefix` as their namespace.
    """
    if config.storage_url:
        return RemoteStorage(
            config.storage_url,
            session_id=config.session_id,
            prefix=config.storage_prefix,
            api_key=config.api_key,
        )
    return LocalStorage(config.data_dir, prefix=config.storage_prefix)

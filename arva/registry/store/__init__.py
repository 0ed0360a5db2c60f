from arva.registry.store.base import AssetRecordStore
from arva.registry.store.snapshot import SnapshotStore

__all__ = ["AssetRecordStore", "SnapshotStore"]

"""Snapshot storage mirroring API resource paths on disk."""

from ci_snapshot.storage.mirror_store import MirrorStore

__all__ = ["MirrorStore"]

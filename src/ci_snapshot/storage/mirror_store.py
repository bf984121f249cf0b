"""Path-mirroring snapshot store.

Every resource is written to a directory that mirrors its API path, with the
body in a fixed-name file so a static file server can replay the snapshot.

Storage structure:
    {root}/{resource_path}/GET.json

Example:
    mocks/api/pipelines/github.com/acme/app/GET.json
    mocks/api/pipelines/github.com/acme/app/builds/42/logs/GET.json

All I/O operations are async-compatible using asyncio.to_thread for non-blocking
execution.
"""

import asyncio
import logging
from pathlib import Path, PurePosixPath

from ci_snapshot.errors import PersistError
from ci_snapshot.models import APIModel

logger = logging.getLogger(__name__)

SNAPSHOT_FILENAME = "GET.json"


class MirrorStore:
    """Async snapshot store keyed by API resource path.

    Writes overwrite unconditionally (snapshot semantics). Within one store
    instance a resource path can only be written once, so two units of work
    can never race on the same file.

    Args:
        base_path: Root directory for the snapshot. Defaults to 'mocks'.
    """

    def __init__(self, base_path: str | Path = "mocks") -> None:
        self.base_path = Path(base_path)
        self._written: set[str] = set()

    def _get_dir_path(self, resource_path: str) -> Path:
        """Directory for a resource path.

        Separators are normalized and empty or ``.`` segments dropped, so
        ``/api//pipelines/`` and ``api/pipelines`` map to the same directory.

        Raises:
            PersistError: If the path is empty or escapes the root with ``..``
        """
        parts = [
            part
            for part in PurePosixPath(resource_path.replace("\\", "/")).parts
            if part not in ("/", ".")
        ]
        if not parts:
            raise PersistError(f"Empty resource path: {resource_path!r}")
        if ".." in parts:
            raise PersistError(f"Resource path escapes snapshot root: {resource_path!r}")
        return self.base_path.joinpath(*parts)

    def get_file_path(self, resource_path: str) -> Path:
        """File that holds the snapshot of ``resource_path``."""
        return self._get_dir_path(resource_path) / SNAPSHOT_FILENAME

    async def write(self, resource_path: str, data: bytes) -> Path:
        """Write raw bytes as the snapshot of a resource.

        Args:
            resource_path: API path of the resource
            data: Body to store

        Returns:
            Path to the written file

        Raises:
            PersistError: If the path was already written by this store, or
                the directory or file cannot be written
        """
        target_dir = self._get_dir_path(resource_path)
        key = target_dir.as_posix()
        if key in self._written:
            raise PersistError(f"Resource already written in this run: {resource_path}")
        self._written.add(key)

        file_path = target_dir / SNAPSHOT_FILENAME

        def _write() -> None:
            target_dir.mkdir(parents=True, exist_ok=True)
            file_path.write_bytes(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise PersistError(f"Failed to write {file_path}: {e}") from e

        logger.info("Fetched and saved %s", resource_path)
        return file_path

    async def write_model(self, resource_path: str, model: APIModel) -> Path:
        """Write a model as pretty-printed JSON using upstream field names."""
        return await self.write(resource_path, model.to_json())

    @property
    def written_count(self) -> int:
        """Number of resources written by this store."""
        return len(self._written)

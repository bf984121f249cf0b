"""Tests for MirrorStore — path-mirroring snapshot files."""

import json
from pathlib import Path

import pytest

from ci_snapshot.errors import PersistError
from ci_snapshot.models import Pagination
from ci_snapshot.storage import MirrorStore


@pytest.fixture
def store(tmp_path: Path) -> MirrorStore:
    """Create a temporary MirrorStore for testing."""
    return MirrorStore(base_path=tmp_path / "mocks")


class TestMirrorStoreLayout:
    """Files land at <root>/<resource path>/GET.json."""

    @pytest.mark.asyncio
    async def test_write_creates_mirrored_path(self, store: MirrorStore, tmp_path: Path) -> None:
        file_path = await store.write("/api/pipelines/github.com/acme/app", b"{}")

        expected = tmp_path / "mocks" / "api" / "pipelines" / "github.com" / "acme" / "app" / "GET.json"
        assert file_path == expected
        assert expected.read_bytes() == b"{}"

    @pytest.mark.asyncio
    async def test_nested_logs_path(self, store: MirrorStore) -> None:
        path = "/api/pipelines/github.com/acme/app/builds/42/logs"
        file_path = await store.write(path, b"log line\n")

        assert file_path.parent.name == "logs"
        assert file_path.parent.parent.name == "42"
        assert file_path.read_bytes() == b"log line\n"

    def test_separators_normalized(self, store: MirrorStore) -> None:
        assert store.get_file_path("/api//pipelines/") == store.get_file_path("api/pipelines")

    @pytest.mark.asyncio
    async def test_overwrites_existing_file(self, tmp_path: Path) -> None:
        """A file from a previous run is replaced."""
        first = MirrorStore(base_path=tmp_path)
        await first.write("/api/pipelines", b"old")

        second = MirrorStore(base_path=tmp_path)
        file_path = await second.write("/api/pipelines", b"new")

        assert file_path.read_bytes() == b"new"


class TestMirrorStoreErrors:
    """Rejected writes."""

    @pytest.mark.asyncio
    async def test_duplicate_write_in_same_run(self, store: MirrorStore) -> None:
        await store.write("/api/pipelines", b"1")

        with pytest.raises(PersistError, match="already written"):
            await store.write("api/pipelines/", b"2")

    @pytest.mark.asyncio
    async def test_parent_traversal_rejected(self, store: MirrorStore) -> None:
        with pytest.raises(PersistError, match="escapes"):
            await store.write("/api/../../etc", b"x")

    @pytest.mark.asyncio
    async def test_empty_path_rejected(self, store: MirrorStore) -> None:
        with pytest.raises(PersistError, match="Empty"):
            await store.write("/", b"x")

    @pytest.mark.asyncio
    async def test_unwritable_root(self, tmp_path: Path) -> None:
        """A file where a directory is needed surfaces as PersistError."""
        blocker = tmp_path / "blocked"
        blocker.write_text("not a directory")
        store = MirrorStore(base_path=blocker)

        with pytest.raises(PersistError, match="Failed to write"):
            await store.write("/api/pipelines", b"{}")


class TestMirrorStoreModels:
    """Model serialization."""

    @pytest.mark.asyncio
    async def test_write_model_pretty_json(self, store: MirrorStore) -> None:
        model = Pagination(page=1, size=12, total_pages=1, total_items=3)

        file_path = await store.write_model("/api/pagination", model)
        text = file_path.read_text()

        assert "\n  " in text
        assert json.loads(text) == {"page": 1, "size": 12, "totalPages": 1, "totalItems": 3}

    @pytest.mark.asyncio
    async def test_written_count(self, store: MirrorStore) -> None:
        await store.write("/api/a", b"1")
        await store.write("/api/b", b"2")

        assert store.written_count == 2

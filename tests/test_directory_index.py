import asyncio
import os

import pytest

from services import DirectoryAccessError, DirectoryIndex, EmbeddingStore, MediaReadError
from tests.helpers import DIM, make_image


@pytest.fixture
def index(session_factory, embedder):
    return DirectoryIndex(EmbeddingStore(session_factory, embed_fn=embedder, dim=DIM))


class TestEligibleFiles:
    def test_filters_by_extension_and_kind(self, index, image_dir):
        names = [os.path.basename(f) for f in index.eligible_files(str(image_dir))]
        assert names == ["a.jpg", "b.png", "c.jpeg"]

    def test_custom_extensions(self, session_factory, embedder, image_dir):
        index = DirectoryIndex(EmbeddingStore(session_factory, embed_fn=embedder, dim=DIM), extensions=[".png"])
        assert [os.path.basename(f) for f in index.eligible_files(str(image_dir))] == ["b.png"]

    def test_missing_directory(self, index, tmp_path):
        with pytest.raises(DirectoryAccessError):
            index.eligible_files(str(tmp_path / "missing"))

    def test_path_is_a_file(self, index, image_dir):
        with pytest.raises(DirectoryAccessError):
            index.eligible_files(str(image_dir / "a.jpg"))


class TestListImages:
    def test_sorted_by_id_and_cached(self, index, embedder, image_dir):
        async def scan_twice():
            return await index.list_images(image_dir), await index.list_images(image_dir)

        first, second = asyncio.run(scan_twice())
        assert [image.id for image in first] == sorted(image.id for image in first)
        assert [os.path.basename(image.file) for image in first] == ["a.jpg", "b.png", "c.jpeg"]
        assert [image.id for image in second] == [image.id for image in first]
        assert embedder.total == 3
        assert index.is_cached(image_dir)

    def test_returned_list_is_a_copy(self, index, image_dir):
        async def mutate_then_rescan():
            listing = await index.list_images(image_dir)
            listing.clear()
            return await index.list_images(image_dir)

        assert len(asyncio.run(mutate_then_rescan())) == 3

    def test_empty_directory(self, index, tmp_path):
        assert asyncio.run(index.list_images(tmp_path)) == []

    def test_unreadable_image_fails_listing(self, index, tmp_path):
        make_image(tmp_path / "ok.png")
        (tmp_path / "broken.jpg").write_bytes(b"nope")
        with pytest.raises(MediaReadError):
            asyncio.run(index.list_images(tmp_path))
        assert not index.is_cached(tmp_path)

    def test_new_file_appears_only_after_invalidation(self, index, embedder, image_dir):
        async def scenario():
            before = await index.list_images(image_dir)
            make_image(image_dir / "d.png", (90, 90, 90))
            cached = await index.list_images(image_dir)
            index.invalidate_all(1)
            refreshed = await index.list_images(image_dir)
            return before, cached, refreshed

        before, cached, refreshed = asyncio.run(scenario())
        assert len(before) == len(cached) == 3
        assert len(refreshed) == 4
        # existing files are not re-embedded after invalidation
        assert embedder.total == 4

    def test_invalidation_clears_every_directory(self, index, image_dir, tmp_path):
        other = tmp_path / "other"
        other.mkdir()
        make_image(other / "x.png")

        async def scan_both():
            await index.list_images(image_dir)
            await index.list_images(other)

        asyncio.run(scan_both())
        index.invalidate_all()
        assert not index.is_cached(image_dir)
        assert not index.is_cached(other)

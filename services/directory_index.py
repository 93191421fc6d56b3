# File: simlabel/services/directory_index.py
# Per-directory ordered image lists, cleared whenever a retrain installs a new classifier.

import logging
import os
from typing import Dict, List, Sequence, Tuple

from config import IMAGE_EXTENSIONS
from .embedding_store import EmbeddingStore, StoredImage, canonical_path
from .errors import DirectoryAccessError

log = logging.getLogger(__name__)


class DirectoryIndex:
    def __init__(self, embedding_store: EmbeddingStore, extensions: Sequence[str] = IMAGE_EXTENSIONS):
        self._store = embedding_store
        self.extensions = tuple(extensions)
        self._cache: Dict[str, Tuple[StoredImage, ...]] = {}

    def is_cached(self, directory) -> bool:
        return canonical_path(directory) in self._cache

    async def list_images(self, directory) -> List[StoredImage]:
        """Images directly inside ``directory``, ascending by id.

        Any file that cannot be embedded fails the whole listing.
        """
        key = canonical_path(directory)
        cached = self._cache.get(key)
        if cached is not None:
            return list(cached)

        files = self.eligible_files(key)
        images = await self._store.get_embeddings(files)
        ordered = tuple(sorted(images, key=lambda image: image.id))
        self._cache[key] = ordered
        log.info("[INDEX] %s: %d image(s)", key, len(ordered))
        return list(ordered)

    def eligible_files(self, directory: str) -> List[str]:
        """Allow-listed regular files directly in ``directory``, sorted by name."""
        try:
            with os.scandir(directory) as entries:
                files = [
                    entry.path
                    for entry in entries
                    if entry.name.endswith(self.extensions) and entry.is_file()
                ]
        except (FileNotFoundError, NotADirectoryError) as e:
            raise DirectoryAccessError(f"Directory not found: {directory}") from e
        except OSError as e:
            raise DirectoryAccessError(f"Cannot list directory {directory}: {e}") from e
        return sorted(files)

    def invalidate_all(self, *_):
        """Drop every cached listing (used as a trainer listener)."""
        self._cache = {}
        log.debug("[INDEX] Directory caches cleared")

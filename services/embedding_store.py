# File: simlabel/services/embedding_store.py
# Computes, persists and caches one embedding per image file.
#
# The in-memory cache is append-only for the lifetime of the process: entries are
# added after their row is committed and are never evicted or invalidated, even
# if the file changes on disk.

import asyncio
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Tuple

import numpy as np

from config import EMBEDDING_DIM
from models import Image
from .db_utils import get_session
from .embedding_image import embed_image_file
from .errors import MediaReadError
from .vector_codec import decode_embedding, encode_embedding

log = logging.getLogger(__name__)

# keeps IN (...) queries under SQLite's bound-parameter limit
_QUERY_CHUNK = 500


@dataclass(frozen=True, eq=False)
class StoredImage:
    id: int
    file: str
    embedding: np.ndarray = field(repr=False)
    created_at: datetime = None

    @property
    def path(self) -> Path:
        return Path(self.file)


def canonical_path(file) -> str:
    return str(Path(os.path.abspath(os.fspath(file))))


def _chunks(items: List, size: int = _QUERY_CHUNK):
    for start in range(0, len(items), size):
        yield items[start:start + size]


class EmbeddingStore:
    """Owner of the ``image`` table.

    ``embed_fn`` is the opaque extractor (file path -> vector). It is called from a
    worker thread because it is CPU and I/O bound.
    """

    def __init__(self, session_factory, embed_fn: Callable = embed_image_file, dim: int = EMBEDDING_DIM):
        self._session_factory = session_factory
        self._embed_fn = embed_fn
        self.dim = dim
        self._by_file: Dict[str, StoredImage] = {}
        self._by_id: Dict[int, StoredImage] = {}
        # sequences creation so concurrent scans never embed the same file twice
        self._create_lock = asyncio.Lock()

    def __len__(self):
        return len(self._by_file)

    def cached(self, file) -> StoredImage:
        return self._by_file.get(canonical_path(file))

    async def get_embedding(self, file) -> Tuple[int, np.ndarray]:
        image = (await self.get_embeddings([file]))[0]
        return image.id, image.embedding

    async def get_embeddings(self, files: Iterable) -> List[StoredImage]:
        """Resolve every file to its stored image, creating rows for new files.

        All new files are embedded before anything is written; if one of them fails
        nothing is persisted. New rows are inserted in the order given.
        """
        canonical = [canonical_path(f) for f in files]
        if any(f not in self._by_file for f in canonical):
            async with self._create_lock:
                missing = [f for f in dict.fromkeys(canonical) if f not in self._by_file]
                if missing:
                    self._load_existing(missing)
                    missing = [f for f in missing if f not in self._by_file]
                if missing:
                    await self._create(missing)
        return [self._by_file[f] for f in canonical]

    def images_by_id(self, image_ids: Iterable[int]) -> Dict[int, StoredImage]:
        """Look up stored images by id without ever invoking the extractor.

        Unknown ids are simply absent from the result.
        """
        wanted = list(dict.fromkeys(image_ids))
        found = {i: self._by_id[i] for i in wanted if i in self._by_id}
        pending = [i for i in wanted if i not in found]
        if pending:
            with get_session(self._session_factory) as session:
                for chunk in _chunks(pending):
                    rows = session.query(Image).filter(Image.id.in_(chunk)).all()
                    for row in rows:
                        found[row.id] = self._remember(row)
        return found

    def _load_existing(self, files: List[str]):
        with get_session(self._session_factory) as session:
            for chunk in _chunks(files):
                for row in session.query(Image).filter(Image.file.in_(chunk)).all():
                    self._remember(row)

    async def _create(self, files: List[str]):
        vectors = []
        for file in files:
            vec = await asyncio.to_thread(self._embed_one, file)
            vectors.append(vec)

        with get_session(self._session_factory) as session:
            rows = [Image(file=file, embedding=encode_embedding(vec, self.dim)) for file, vec in zip(files, vectors)]
            # one flush per row keeps id assignment in the given order
            for row in rows:
                session.add(row)
                session.flush()
            session.commit()
            for row in rows:
                self._remember(row)
        log.info("[EMBEDDINGS] Stored %d new image embedding(s)", len(rows))

    def _embed_one(self, file: str) -> np.ndarray:
        try:
            vec = self._embed_fn(file)
        except MediaReadError:
            raise
        except (OSError, ValueError) as e:
            raise MediaReadError(f"Cannot read image {file}: {e}") from e
        arr = np.asarray(vec, dtype=np.float32).reshape(-1)
        if arr.shape[0] != self.dim:
            raise MediaReadError(f"Extractor produced {arr.shape[0]} values for {file}, expected {self.dim}")
        return arr

    def _remember(self, row: Image) -> StoredImage:
        image = self._by_id.get(row.id)
        if image is None:
            image = StoredImage(
                id=row.id,
                file=row.file,
                embedding=decode_embedding(row.embedding, self.dim),
                created_at=row.created_at,
            )
            self._by_id[image.id] = image
            self._by_file[image.file] = image
        return image

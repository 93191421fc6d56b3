# File: simlabel/services/similarity_service.py
# Collaborator-facing operations: scan a directory, pick the next pair, record a label,
# resolve an image id back to its file.

import asyncio
import logging
from pathlib import Path
from typing import Callable, List, Optional

from config import (
    CLASSIFIER_HIDDEN_DIMS,
    DATABASE_URL,
    EMBEDDING_DIM,
    IMAGE_EXTENSIONS,
    SCAN_TIME_BUDGET_S,
    TRAIN_SEED,
)
from .annotation_store import AnnotationStore
from .classifier import ClassifierSlot
from .db_utils import make_engine, make_session_factory
from .directory_index import DirectoryIndex
from .embedding_image import embed_image_file
from .embedding_store import EmbeddingStore, StoredImage
from .errors import ImageNotFoundError
from .pair_selector import PairCandidate, select_next_pair
from .trainer import Trainer, new_classifier

log = logging.getLogger(__name__)


class SimilarityService:
    def __init__(
        self,
        embeddings: EmbeddingStore,
        index: DirectoryIndex,
        annotations: AnnotationStore,
        trainer: Trainer,
        slot: ClassifierSlot,
        time_budget: float = SCAN_TIME_BUDGET_S,
    ):
        self.embeddings = embeddings
        self.index = index
        self.annotations = annotations
        self.trainer = trainer
        self.slot = slot
        self.time_budget = time_budget

    async def scan_directory(self, path) -> List[StoredImage]:
        return await self.index.list_images(path)

    async def next_pair(self, path, time_budget: Optional[float] = None) -> Optional[PairCandidate]:
        images = await self.index.list_images(path)
        if len(images) < 2:
            return None
        labeled = self.annotations.labeled_pairs()
        # the whole scan scores with one classifier, even if a retrain lands meanwhile
        classifier = self.slot.current
        budget = self.time_budget if time_budget is None else time_budget
        return await asyncio.to_thread(select_next_pair, images, labeled, classifier, budget)

    async def record_annotation(self, a_image_id, b_image_id, is_similar) -> int:
        """Persist the label; the retrain it triggers runs in the background."""
        return self.annotations.submit(a_image_id, b_image_id, is_similar)

    def resolve_image_file(self, image_id: int) -> Path:
        image = self.embeddings.images_by_id([image_id]).get(image_id)
        if image is None:
            raise ImageNotFoundError(f"No image with id {image_id}")
        return image.path


def build_service(
    session_factory=None,
    embed_fn: Callable = embed_image_file,
    dim: int = EMBEDDING_DIM,
    extensions=IMAGE_EXTENSIONS,
    time_budget: float = SCAN_TIME_BUDGET_S,
    **trainer_options,
) -> SimilarityService:
    """Wire the components: annotation writes trigger retrains, installs clear the index."""
    if session_factory is None:
        session_factory = make_session_factory(make_engine(DATABASE_URL))

    embeddings = EmbeddingStore(session_factory, embed_fn=embed_fn, dim=dim)
    index = DirectoryIndex(embeddings, extensions=extensions)
    annotations = AnnotationStore(session_factory)
    slot = ClassifierSlot(
        new_classifier(
            dim,
            trainer_options.get("hidden_dims", CLASSIFIER_HIDDEN_DIMS),
            trainer_options.get("seed", TRAIN_SEED),
        )
    )
    trainer = Trainer(annotations, embeddings, slot, **trainer_options)

    annotations.add_listener(trainer.schedule_retrain)
    trainer.add_listener(index.invalidate_all)

    return SimilarityService(embeddings, index, annotations, trainer, slot, time_budget=time_budget)
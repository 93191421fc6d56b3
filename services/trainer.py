# File: simlabel/services/trainer.py
# Refits the pair classifier from the full annotation history and hot-swaps it in.
#
# Retrains are serialized (at most one in flight) and coalesced: a queued request
# that was superseded by a newer one is skipped, because the newer one will read
# every annotation the older one would have. The last model installed is therefore
# always trained on the newest history.

import asyncio
import logging
import time
from typing import Callable, List, Optional, Sequence, Set, Tuple

import numpy as np
import torch
import torch.nn as nn

from config import CLASSIFIER_HIDDEN_DIMS, EMBEDDING_DIM, TRAIN_EPOCHS, TRAIN_LR, TRAIN_SEED
from .classifier import ClassifierSlot, PairClassifier
from .errors import TrainingError

log = logging.getLogger(__name__)

# (embedding of a_image, embedding of b_image, is_similar)
TrainingExample = Tuple[np.ndarray, np.ndarray, bool]


def new_classifier(
    embed_dim: int = EMBEDDING_DIM,
    hidden_dims: Sequence[int] = CLASSIFIER_HIDDEN_DIMS,
    seed: Optional[int] = None,
) -> PairClassifier:
    """Freshly initialized, untrained classifier. Seeding does not touch the global RNG."""
    if seed is None:
        model = PairClassifier(embed_dim=embed_dim, hidden_dims=hidden_dims)
    else:
        with torch.random.fork_rng(devices=[]):
            torch.manual_seed(seed)
            model = PairClassifier(embed_dim=embed_dim, hidden_dims=hidden_dims)
    model.eval()
    return model


def build_training_tensors(examples: Sequence[TrainingExample], embed_dim: int):
    """Stack examples into (emb_a, emb_b, labels) tensors, rejecting malformed rows."""
    emb_a, emb_b, labels = [], [], []
    for idx, (a, b, label) in enumerate(examples):
        a = np.asarray(a, dtype=np.float32).reshape(-1)
        b = np.asarray(b, dtype=np.float32).reshape(-1)
        if a.shape[0] != embed_dim or b.shape[0] != embed_dim:
            raise TrainingError(
                f"example {idx} has embedding sizes {a.shape[0]}/{b.shape[0]}, expected {embed_dim}"
            )
        if not (np.isfinite(a).all() and np.isfinite(b).all()):
            raise TrainingError(f"example {idx} has non-finite embedding values")
        emb_a.append(a)
        emb_b.append(b)
        labels.append(1.0 if label else 0.0)
    return (
        torch.tensor(np.stack(emb_a), dtype=torch.float32),
        torch.tensor(np.stack(emb_b), dtype=torch.float32),
        torch.tensor(labels, dtype=torch.float32),
    )


def fit_classifier(
    examples: Sequence[TrainingExample],
    embed_dim: int = EMBEDDING_DIM,
    hidden_dims: Sequence[int] = CLASSIFIER_HIDDEN_DIMS,
    epochs: int = TRAIN_EPOCHS,
    lr: float = TRAIN_LR,
    seed: Optional[int] = None,
) -> PairClassifier:
    """Train a fresh classifier on every example, full batch, no validation split.

    Zero examples returns the untrained cold-start model. Raises TrainingError when
    inputs are malformed or the loss or weights stop being finite.
    """
    model = new_classifier(embed_dim, hidden_dims, seed)
    if not examples:
        return model

    emb_a, emb_b, labels = build_training_tensors(examples, embed_dim)
    optimizer = torch.optim.Adam(model.parameters(), lr=lr)
    criterion = nn.BCELoss()

    model.train()
    for epoch in range(epochs):
        optimizer.zero_grad()
        preds = model(emb_a, emb_b).squeeze(-1)
        loss = criterion(preds, labels)
        if not torch.isfinite(loss):
            raise TrainingError(f"loss diverged at epoch {epoch + 1}: {loss.item()}")
        loss.backward()
        optimizer.step()
        log.debug("[TRAINER] epoch %d/%d loss=%.4f", epoch + 1, epochs, loss.item())

    for name, param in model.named_parameters():
        if not torch.isfinite(param).all():
            raise TrainingError(f"parameter {name} is no longer finite")

    model.eval()
    return model


class Trainer:
    """Schedules background retrains and installs their results into the slot."""

    def __init__(
        self,
        annotation_store,
        embedding_store,
        slot: ClassifierSlot,
        epochs: int = TRAIN_EPOCHS,
        lr: float = TRAIN_LR,
        hidden_dims: Sequence[int] = CLASSIFIER_HIDDEN_DIMS,
        seed: Optional[int] = TRAIN_SEED,
    ):
        self._annotations = annotation_store
        self._embeddings = embedding_store
        self.slot = slot
        self.epochs = epochs
        self.lr = lr
        self.hidden_dims = tuple(hidden_dims)
        self.seed = seed
        self._listeners: List[Callable[[int], object]] = []
        self._tasks: Set[asyncio.Task] = set()
        self._lock = asyncio.Lock()
        self._requested = 0
        self.completed = 0
        self.failed = 0

    def add_listener(self, listener: Callable[[int], object]):
        """Register a callable run with the new generation after each install."""
        self._listeners.append(listener)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule_retrain(self) -> Optional[asyncio.Task]:
        """Fire-and-forget retrain on the running event loop.

        Returns the task so callers may await it; without a running loop the
        request is logged and dropped.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log.warning("[TRAINER] No running event loop, retrain request dropped")
            return None
        self._requested += 1
        task = loop.create_task(self._run(self._requested))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self):
        """Wait until every scheduled retrain has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run(self, ticket: int) -> Optional[PairClassifier]:
        async with self._lock:
            if ticket < self._requested:
                log.info("[TRAINER] Retrain #%d superseded by #%d, skipping", ticket, self._requested)
                return None
            try:
                return await self.retrain_now()
            except Exception:
                self.failed += 1
                log.exception("[TRAINER] Retrain #%d failed, keeping classifier generation %d",
                              ticket, self.slot.generation)
                return None

    async def retrain_now(self) -> PairClassifier:
        """Fit on the current history, install the result and notify listeners."""
        examples = self.load_examples()
        start = time.time()
        classifier = await asyncio.to_thread(
            fit_classifier,
            examples,
            self._embeddings.dim,
            self.hidden_dims,
            self.epochs,
            self.lr,
            self.seed,
        )
        generation = self.slot.install(classifier)
        self.completed += 1
        log.info("[TRAINER] Installed classifier generation %d (%d annotations, %.2fs)",
                 generation, len(examples), time.time() - start)
        for listener in self._listeners:
            listener(generation)
        return classifier

    def load_examples(self) -> List[TrainingExample]:
        annotations = self._annotations.all_annotations()
        ids = [i for ann in annotations for i in ann.pair]
        images = self._embeddings.images_by_id(ids)
        missing = sorted(set(ids) - set(images))
        if missing:
            raise TrainingError(f"annotations reference missing image ids {missing}")
        return [
            (images[ann.a_image_id].embedding, images[ann.b_image_id].embedding, ann.is_similar)
            for ann in annotations
        ]

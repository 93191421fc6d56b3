# File: simlabel/services/classifier.py
# Pairwise similarity head on frozen image embeddings, plus the slot holding the active instance.

import threading
from typing import Sequence, Tuple

import numpy as np
import torch
import torch.nn as nn

from config import CLASSIFIER_HIDDEN_DIMS, EMBEDDING_DIM


class PairClassifier(nn.Module):
    """MLP that predicts P(similar) for an ordered pair of embeddings.

    Input: the concatenation A‖B (2 * embed_dim). Not symmetric under swapping
    A and B, so callers pass pairs in canonical (smaller id first) order.
    Output: scalar probability in [0, 1].
    """

    def __init__(self, embed_dim: int = EMBEDDING_DIM, hidden_dims: Sequence[int] = CLASSIFIER_HIDDEN_DIMS):
        super().__init__()
        if len(hidden_dims) != 2:
            raise ValueError(f"expected two hidden layer widths, got {tuple(hidden_dims)}")
        h1, h2 = hidden_dims
        self.embed_dim = embed_dim
        self.hidden_dims = (h1, h2)
        self.net = nn.Sequential(
            nn.Linear(embed_dim * 2, h1),
            nn.ReLU(),
            nn.Linear(h1, h2),
            nn.ReLU(),
            nn.Linear(h2, 1),
            nn.Sigmoid(),
        )

    def forward(self, emb_a: torch.Tensor, emb_b: torch.Tensor) -> torch.Tensor:
        """
        Args:
            emb_a: (batch, embed_dim) tensor
            emb_b: (batch, embed_dim) tensor

        Returns:
            (batch, 1) tensor of probabilities
        """
        return self.net(torch.cat([emb_a, emb_b], dim=-1))

    def score(self, emb_a, emb_b) -> float:
        """Single-pair score (no grad, returns Python float)."""
        a = torch.as_tensor(np.array(emb_a, dtype=np.float32)).reshape(1, -1)
        b = torch.as_tensor(np.array(emb_b, dtype=np.float32)).reshape(1, -1)
        with torch.no_grad():
            return float(self.forward(a, b).item())

    def score_many(self, anchor, others) -> np.ndarray:
        """Score one anchor (as A) against each row of ``others`` (as B).

        Returns a (N,) float array; matches ``score`` per row up to float rounding.
        """
        others = np.array(others, dtype=np.float32)
        if others.shape[0] == 0:
            return np.zeros(0, dtype=np.float32)
        b = torch.as_tensor(others).reshape(others.shape[0], -1)
        a = torch.as_tensor(np.array(anchor, dtype=np.float32)).reshape(1, -1).expand(b.shape[0], -1)
        with torch.no_grad():
            return self.forward(a, b).squeeze(-1).numpy()


class ClassifierSlot:
    """Holds the active classifier. Installing is a single reference swap.

    Readers take ``current`` once and keep using that instance; an installed
    classifier is never trained further.
    """

    def __init__(self, classifier: PairClassifier):
        self._state: Tuple[int, PairClassifier] = (0, classifier)
        self._install_lock = threading.Lock()

    @property
    def current(self) -> PairClassifier:
        return self._state[1]

    @property
    def generation(self) -> int:
        return self._state[0]

    def snapshot(self) -> Tuple[int, PairClassifier]:
        return self._state

    def install(self, classifier: PairClassifier) -> int:
        classifier.eval()
        with self._install_lock:
            generation = self._state[0] + 1
            self._state = (generation, classifier)
        return generation

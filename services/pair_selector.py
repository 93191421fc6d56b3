# File: simlabel/services/pair_selector.py
# Deterministic, time-bounded scan for the best-scoring unannotated image pair.
#
# Pairs are visited in ascending (i, j) order over images sorted by id, so the
# first image of every candidate has the smaller id (canonical order). The time
# budget is checked only after a full inner loop, so up to n - 1 extra pairs may
# be scored once the budget is spent; this keeps the covered prefix a whole
# number of rows.

import logging
import time
from dataclasses import dataclass
from typing import Callable, Collection, Optional, Sequence, Tuple

import numpy as np

from config import SCAN_TIME_BUDGET_S

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PairCandidate:
    a_image_id: int
    b_image_id: int
    score: float

    @property
    def pair(self) -> Tuple[int, int]:
        return (self.a_image_id, self.b_image_id)


def select_next_pair(
    images: Sequence,
    annotated: Collection[Tuple[int, int]],
    classifier,
    time_budget: float = SCAN_TIME_BUDGET_S,
    clock: Callable[[], float] = time.monotonic,
) -> Optional[PairCandidate]:
    """Return the highest-scoring pair not in ``annotated``, or None.

    ``images`` are objects with ``id`` and ``embedding``; ``annotated`` holds
    canonical (smaller, larger) id pairs; ``classifier`` provides
    ``score_many(anchor, others)``. Ties keep the first pair found.
    """
    ordered = sorted(images, key=lambda image: image.id)
    n = len(ordered)
    labeled = annotated if isinstance(annotated, (set, frozenset)) else set(annotated)

    start = clock()
    best: Optional[PairCandidate] = None
    rows_done = 0
    for i in range(n):
        a = ordered[i]
        others = [b for b in ordered[i + 1:] if (a.id, b.id) not in labeled]
        if others:
            scores = classifier.score_many(a.embedding, np.stack([b.embedding for b in others]))
            for b, score in zip(others, scores):
                score = float(score)
                if best is None or score > best.score:
                    best = PairCandidate(a.id, b.id, score)
        rows_done += 1
        if clock() - start > time_budget:
            break

    if rows_done < n:
        log.info("[SELECTOR] Time budget %.2fs spent after %d/%d rows", time_budget, rows_done, n)
    return best

"""Test helpers shared by several test modules."""

from collections import Counter
from types import SimpleNamespace

import numpy as np
from PIL import Image as PILImage

from models import Image
from services import encode_embedding, get_session
from utils.image_utils import load_rgb_image

DIM = 8

COLORS = {
    "a.jpg": (250, 10, 10),
    "b.png": (10, 250, 10),
    "c.jpeg": (10, 10, 250),
}


class CountingEmbedder:
    """Deterministic stand-in for the EfficientNet extractor.

    Derives an 8-dim vector from the mean colour and counts calls per file.
    """

    def __init__(self):
        self.calls = Counter()

    def __call__(self, path):
        self.calls[str(path)] += 1
        img = load_rgb_image(path)
        r, g, b = (np.asarray(img, dtype=np.float32).reshape(-1, 3).mean(axis=0) / 255.0)
        return np.array([r, g, b, 1 - r, 1 - g, 1 - b, (r + g + b) / 3, 0.5], dtype=np.float32)

    @property
    def total(self):
        return sum(self.calls.values())


def make_image(path, color=(128, 128, 128), size=(32, 32)):
    PILImage.new("RGB", size, color=color).save(path)
    return path


def fake_image(image_id, *values):
    """Minimal object with the attributes the pair selector reads."""
    return SimpleNamespace(id=image_id, embedding=np.array(values or (image_id,), dtype=np.float32))


def insert_images(session_factory, count, dim=DIM):
    """Insert ``count`` image rows directly and return their ids."""
    ids = []
    with get_session(session_factory) as session:
        for i in range(count):
            row = Image(file=f"/virtual/img_{i}.jpg", embedding=encode_embedding(np.full(dim, i, dtype=np.float32), dim))
            session.add(row)
            session.flush()
            ids.append(row.id)
        session.commit()
    return ids


def count_rows(session_factory, model):
    with get_session(session_factory) as session:
        return session.query(model).count()

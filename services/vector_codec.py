# File: simlabel/services/vector_codec.py
# Byte layout of the image.embedding column: raw little-endian float32, fixed length.

import numpy as np

from .errors import EmbeddingDecodeError

EMBEDDING_DTYPE = np.dtype("<f4")


def encode_embedding(vec, dim: int = None) -> bytes:
    arr = np.asarray(vec, dtype=EMBEDDING_DTYPE).reshape(-1)
    if dim is not None and arr.shape[0] != dim:
        raise ValueError(f"embedding has {arr.shape[0]} values, expected {dim}")
    return arr.tobytes()


def decode_embedding(blob: bytes, dim: int) -> np.ndarray:
    """Decode a stored blob into a read-only float32 vector of length ``dim``.

    Any length mismatch is a decode error rather than a silent truncation.
    """
    if blob is None:
        raise EmbeddingDecodeError("embedding blob is missing")
    expected = dim * EMBEDDING_DTYPE.itemsize
    if len(blob) != expected:
        raise EmbeddingDecodeError(
            f"embedding blob has {len(blob)} bytes, expected {expected} ({dim} x float32)"
        )
    arr = np.frombuffer(blob, dtype=EMBEDDING_DTYPE).astype(np.float32)
    arr.flags.writeable = False
    return arr
